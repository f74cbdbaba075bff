"""
Entry point bundling the tree client, the stores and the publish notifier.
"""

from typing import Any, Dict, Optional

from .api_client import TreeClient
from .config import Settings
from .entities.articles import ArticleStore
from .entities.assets import AssetStore
from .notifier import PublishNotifier


class ContentClient:
    """
    Articles and images of one content repository.

    Example:
        >>> client = ContentClient.from_env()
        >>> for article in client.articles.list():
        ...     print(article.slug, article.status)
        >>> path = client.images.upload("logo.png", data, "image/png")
    """

    def __init__(self, settings: Settings, *, tree: Optional[TreeClient] = None) -> None:
        self.settings = settings
        self.tree = tree or TreeClient(
            settings.credentials,
            settings.repo,
            default_timeout=settings.default_timeout,
            retries=settings.retries,
        )
        self.notifier = PublishNotifier(self.tree, settings.publish)

        # Stores for the two collections
        self.articles = ArticleStore(
            self.tree,
            settings.repo.articles_dir,
            notifier=self.notifier,
        )
        self.images = AssetStore(
            self.tree,
            settings.repo.images_dir,
            settings.repo.images_public_prefix,
        )

    @classmethod
    def from_env(cls) -> "ContentClient":
        return cls(Settings.from_env())

    def ping(self) -> Dict[str, Any]:
        """Check the credential against the content repository."""
        return self.tree.ping()

    def close(self) -> None:
        self.tree.close()

    def __enter__(self) -> "ContentClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
