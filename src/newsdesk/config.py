"""
Configuration for the newsdesk content store.

Everything the store needs (the repository credential, the coordinates of
the content repository and of the site that gets rebuilt) is passed in
explicitly. ``Settings.from_env()`` is the only place the process
environment is read.
"""

from dataclasses import dataclass, field
import os
from typing import Mapping, Optional


# -------------------------------
# Credentials Model
# -------------------------------


@dataclass
class Credentials:
    """
    A GitHub token with contents read/write access on the content repository.
    """
    token: str

    def __post_init__(self) -> None:
        if not self.token or not self.token.strip():
            raise ValueError("A repository token must be provided.")
        self.token = self.token.strip()

    def __repr__(self) -> str:
        return "Credentials(token='***')"


# -------------------------------
# Repository coordinates
# -------------------------------


@dataclass
class RepoConfig:
    """
    Where articles and images live inside the remote tree.

    ``images_public_prefix`` is the logical path handed out to callers for an
    image, independent of the tree path and of any download URL.
    """
    owner: str
    repo: str
    branch: str = "main"
    articles_dir: str = "out/news"
    images_dir: str = "public/images/news"
    images_public_prefix: str = "/images/news"
    api_url: str = "https://api.github.com"

    def __post_init__(self) -> None:
        if not self.owner or not self.repo:
            raise ValueError("Both owner and repo must be provided.")
        self.articles_dir = self.articles_dir.strip("/")
        self.images_dir = self.images_dir.strip("/")
        self.images_public_prefix = "/" + self.images_public_prefix.strip("/")
        self.api_url = self.api_url.rstrip("/")


@dataclass
class PublishConfig:
    """
    Target of the rebuild signal sent after every article mutation.

    Leaving ``owner`` or ``repo`` empty disables the signal.
    """
    owner: str = ""
    repo: str = ""
    event_type: str = "content_update"
    source: str = "newsdesk"

    @property
    def enabled(self) -> bool:
        return bool(self.owner and self.repo)


@dataclass
class Settings:
    credentials: Credentials
    repo: RepoConfig
    publish: PublishConfig = field(default_factory=PublishConfig)
    default_timeout: float = 30.0
    retries: int = 0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Required: GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO and
        NEWSDESK_REBUILD_REPO, the site rebuilt after every article change.
        Optional: GITHUB_BRANCH, NEWSDESK_ARTICLES_DIR, NEWSDESK_IMAGES_DIR,
        NEWSDESK_REBUILD_OWNER, NEWSDESK_REBUILD_EVENT.

        Setting NEWSDESK_REBUILD_REPO to ``none`` turns the rebuild signal off.

        Raises:
            ValueError: If a required variable is missing
        """
        env = os.environ if environ is None else environ

        missing = [
            name
            for name in ("GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "NEWSDESK_REBUILD_REPO")
            if not env.get(name)
        ]
        if missing:
            raise ValueError(f"Missing environment variables: {', '.join(missing)}")

        owner = env["GITHUB_OWNER"]
        repo = RepoConfig(
            owner=owner,
            repo=env["GITHUB_REPO"],
            branch=env.get("GITHUB_BRANCH") or "main",
            articles_dir=env.get("NEWSDESK_ARTICLES_DIR") or "out/news",
            images_dir=env.get("NEWSDESK_IMAGES_DIR") or "public/images/news",
        )
        rebuild_repo = env["NEWSDESK_REBUILD_REPO"]
        if rebuild_repo.strip().lower() == "none":
            publish = PublishConfig()
        else:
            publish = PublishConfig(
                owner=env.get("NEWSDESK_REBUILD_OWNER") or owner,
                repo=rebuild_repo,
                event_type=env.get("NEWSDESK_REBUILD_EVENT") or "content_update",
            )
        return cls(
            credentials=Credentials(env["GITHUB_TOKEN"]),
            repo=repo,
            publish=publish,
        )
