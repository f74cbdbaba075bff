"""
A compact HTTP adapter over the GitHub contents API (the remote tree).
"""

import base64
from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional
import urllib.parse
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from .config import Credentials, RepoConfig
from .exceptions import NotFoundError, TransportError, raise_for_api_error


logger = logging.getLogger(__name__)


# -------------------------------
# Tree models
# -------------------------------


@dataclass
class RemoteFile:
    """Content of a file in the tree together with its revision marker."""
    path: str
    content: bytes
    sha: str

    @property
    def text(self) -> str:
        return self.content.decode("utf-8")


@dataclass
class TreeEntry:
    """One entry of a directory listing."""
    name: str
    path: str
    type: str = "file"
    size: Optional[int] = None
    sha: Optional[str] = None
    download_url: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TreeEntry":
        return cls(
            name=data["name"],
            path=data["path"],
            type=data.get("type", "file"),
            size=data.get("size"),
            sha=data.get("sha"),
            download_url=data.get("download_url"),
        )


# -------------------------------
# Main Client
# -------------------------------


class TreeClient:
    """
    Path-addressed access to one branch of a GitHub repository.

    Every call is a single synchronous round trip. Writes and deletes carry
    the revision marker (blob sha) as a compare-and-swap precondition, which
    the remote enforces; nothing is locked or cached locally.

    Args:
        credentials: Credentials holding the repository token
        repo: RepoConfig with owner, repository and branch
        default_timeout: Socket timeout per request in seconds (default: 30.0)
        retries: Retries for idempotent GETs on 429/5xx (default: 0)
        pool_connections: Number of connection pools to cache (default: 3)
        pool_maxsize: Maximum number of connections to save in the pool (default: 10)

    Example:
        >>> tree = TreeClient(Credentials("ghp_..."), RepoConfig("acme", "site"))
        >>> f = tree.get("out/news/2024-03-05-hello.md")
        >>> tree.put(f.path, f.content + b"!", "Touch", sha=f.sha)
    """

    def __init__(
        self,
        credentials: Credentials,
        repo: RepoConfig,
        *,
        default_timeout: float = 30.0,
        retries: int = 0,
        pool_connections: int = 3,
        pool_maxsize: int = 10,
    ) -> None:

        self.credentials = credentials
        self.repo = repo
        self.default_timeout = default_timeout

        self._session = requests.Session()

        # Configure connection pooling
        retry_strategy = Retry(
            total=retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=frozenset({"GET"}),
            raise_on_status=False,
        )
        adapter = HTTPAdapter(
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
            max_retries=retry_strategy,
        )
        self._session.mount("http://", adapter)
        self._session.mount("https://", adapter)

    def __enter__(self) -> "TreeClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Release pooled connections."""
        self._session.close()

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def _join(self, base: str, path: str) -> str:
        """Join base and path cleanly without stripping segments."""
        return urllib.parse.urljoin(base.rstrip("/") + "/", path.lstrip("/"))

    def endpoint(self, endpoint: str) -> str:
        """
        Construct absolute URL for an API endpoint.

        Args:
            endpoint: Path relative to the API root (e.g. 'repos/acme/site')

        Returns:
            Complete URL (e.g. 'https://api.github.com/repos/acme/site')
        """
        return self._join(self.repo.api_url, endpoint)

    def repo_endpoint(self, *parts: str) -> str:
        """API path below ``repos/{owner}/{repo}``."""
        base = f"repos/{self.repo.owner}/{self.repo.repo}"
        return "/".join([base, *(p.strip("/") for p in parts if p)])

    def _contents(self, path: str) -> str:
        return self.repo_endpoint("contents", urllib.parse.quote(path.strip("/"), safe="/"))

    # ------------------------------------------------------------------
    # Low-level request
    # ------------------------------------------------------------------

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        path: Optional[str] = None,
        timeout=None,
        headers=None,
        params=None,
        **kwargs,
    ) -> requests.Response:
        """
        Authenticated request against the API.

        Args:
            method: HTTP method (GET, POST, PUT, DELETE)
            endpoint: Path relative to the API root
            path: Tree path the call is about, attached to raised errors
            timeout: Request timeout in seconds (uses default_timeout if None)
            headers: Additional HTTP headers to include
            params: Query parameters for the request
            **kwargs: Additional arguments passed to requests (e.g. json)

        Returns:
            requests.Response object

        Raises:
            ValueError: If a GET request includes a body
            APIError: A typed subclass for any failed call
        """
        url = self.endpoint(endpoint)

        req_headers: Dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if headers:
            req_headers.update(
                {k: v for k, v in headers.items() if k.lower() != "authorization"}
            )
        req_headers["Authorization"] = f"Bearer {self.credentials.token}"

        # GET must not have a body; the contents API takes one on DELETE
        if kwargs and method.upper() == "GET":
            raise ValueError("GET requests cannot include a request body.")

        logger.debug("%s %s", method.upper(), url)
        try:
            resp = self._session.request(
                method.upper(),
                url,
                headers=req_headers,
                params=params,
                timeout=self.default_timeout if timeout is None else timeout,
                **kwargs,
            )
        except requests.RequestException as exc:
            raise TransportError(detail=f"{method.upper()} {url} failed: {exc}", path=path) from exc

        raise_for_api_error(resp, path=path)

        return resp

    # ------------------------------------------------------------------
    # Tree operations
    # ------------------------------------------------------------------

    def ping(self) -> Dict[str, Any]:
        """
        Check that the credential can see the repository.

        Raises:
            AuthError: If the token is rejected
            NotFoundError: If the repository is not visible to the token
        """
        data = self.request("GET", self.repo_endpoint()).json()
        return {
            "full_name": data.get("full_name"),
            "default_branch": data.get("default_branch"),
            "permissions": data.get("permissions", {}),
        }

    def get(self, path: str) -> RemoteFile:
        """
        Fetch a file and its current revision marker.

        Raises:
            NotFoundError: If the path does not exist or is a directory
        """
        resp = self.request(
            "GET", self._contents(path), path=path, params={"ref": self.repo.branch}
        )
        data = resp.json()

        if not isinstance(data, dict) or data.get("type") != "file":
            raise NotFoundError(status_code=404, detail="Not a file", path=path)

        if data.get("encoding") == "none" or (not data.get("content") and data.get("size")):
            # Above the inline size limit; content is only served as a blob
            content = self._get_blob(data["sha"], path)
        else:
            content = base64.b64decode(data.get("content") or "")

        return RemoteFile(path=data.get("path", path), content=content, sha=data["sha"])

    def _get_blob(self, sha: str, path: str) -> bytes:
        resp = self.request("GET", self.repo_endpoint("git", "blobs", sha), path=path)
        data = resp.json()
        if data.get("encoding") == "base64":
            return base64.b64decode(data.get("content") or "")
        return (data.get("content") or "").encode("utf-8")

    def put(
        self,
        path: str,
        content: bytes,
        message: str,
        sha: Optional[str] = None,
    ) -> str:
        """
        Create or update a file in one commit.

        Without ``sha`` the file must not exist yet; with ``sha`` it must be
        the current marker of the file.

        Returns:
            The new revision marker

        Raises:
            ConflictError: If the marker is stale, or missing for an existing file
        """
        body: Dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.repo.branch,
        }
        if sha:
            body["sha"] = sha

        resp = self.request("PUT", self._contents(path), path=path, json=body)
        new_sha = resp.json()["content"]["sha"]
        logger.debug("Wrote %s (%s -> %s)", path, sha, new_sha)
        return new_sha

    def delete(self, path: str, sha: str, message: str) -> None:
        """
        Delete a file in one commit.

        Raises:
            ConflictError: If the marker is stale
            NotFoundError: If the path does not exist
        """
        body = {"message": message, "sha": sha, "branch": self.repo.branch}
        self.request("DELETE", self._contents(path), path=path, json=body)
        logger.debug("Deleted %s (%s)", path, sha)

    def list(self, directory: str) -> List[TreeEntry]:
        """
        List the entries of a directory.

        Raises:
            NotFoundError: If the directory does not exist or is a file
        """
        resp = self.request(
            "GET", self._contents(directory), path=directory, params={"ref": self.repo.branch}
        )
        data = resp.json()
        if not isinstance(data, list):
            raise NotFoundError(status_code=404, detail="Not a directory", path=directory)
        return [TreeEntry.from_dict(item) for item in data]
