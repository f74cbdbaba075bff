# entities/assets.py
from __future__ import annotations

import logging
import re
import time
from typing import Dict, List, Optional, Tuple, TYPE_CHECKING

from ..exceptions import NotFoundError, ValidationError
from ..models import Asset
from .base import BaseStore

if TYPE_CHECKING:
    from ..api_client import TreeClient, TreeEntry


logger = logging.getLogger(__name__)

# Extensions shown in listings
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".webp")

EXTENSION_TO_MIME: Dict[str, str] = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".svg": "image/svg+xml",
}

MIME_TO_EXTENSION: Dict[str, str] = {
    "image/jpeg": "jpeg",
    "image/jpg": "jpeg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/avif": "avif",
}

_UNSAFE_NAME = re.compile(r"[^a-z0-9.-]")
_HYPHENS = re.compile(r"-+")


def make_filename(original: str, mime_type: str, timestamp: Optional[float] = None) -> str:
    """
    Build a collision-resistant asset name for an uploaded file.

    >>> make_filename("My Photo.JPG", "image/jpeg", timestamp=1700000000.0)
    '1700000000000-my-photo.jpeg'
    """
    base = re.sub(r"\.[^.]*$", "", original).strip() or "image"
    base = _HYPHENS.sub("-", _UNSAFE_NAME.sub("-", base.lower())).strip("-") or "image"
    ext = MIME_TO_EXTENSION.get((mime_type or "").lower(), "png")
    millis = int((time.time() if timestamp is None else timestamp) * 1000)
    return f"{millis}-{base}.{ext}"


def mime_type_for(name: str) -> str:
    """Content type for an asset name, by extension."""
    dot = name.rfind(".")
    ext = name[dot:].lower() if dot >= 0 else ""
    return EXTENSION_TO_MIME.get(ext, "image/jpeg")


class AssetStore(BaseStore):
    """
    Images stored flat under one directory of the tree.

    Callers address an image by its logical path ``<public_prefix>/<name>``,
    which stays valid while download URLs may expire. Uploading a name that
    already exists replaces it.
    """

    def __init__(self, tree: "TreeClient", directory: str, public_prefix: str) -> None:
        super().__init__(tree, directory)
        self.public_prefix = "/" + public_prefix.strip("/")

    def _accepts(self, name: str) -> bool:
        return name.lower().endswith(IMAGE_EXTENSIONS)

    def _asset(self, entry: "TreeEntry") -> Asset:
        return Asset(
            name=entry.name,
            path=self.path_for(entry.name),
            size=entry.size,
            url=entry.download_url,
        )

    @staticmethod
    def _check_name(name: str) -> None:
        if not name or not name.strip():
            raise ValidationError(status_code=422, detail="Asset name must not be empty")
        if "/" in name or "\\" in name or name.startswith("."):
            raise ValidationError(status_code=422, detail=f"Invalid asset name {name!r}")

    def path_for(self, name: str) -> str:
        return f"{self.public_prefix}/{name}"

    def _tree_path(self, name: str) -> str:
        return f"{self.directory}/{name}"

    # ------------------------------------------------------------------ #
    # Operations
    # ------------------------------------------------------------------ #

    def list(self) -> List[Asset]:
        """Every image in the namespace, sorted by name."""
        return sorted((self._asset(e) for e in self._entries()), key=lambda a: a.name)

    def get(self, name: str) -> Asset:
        """
        Raises:
            NotFoundError: If no image has this name
        """
        for entry in self._entries():
            if entry.name == name:
                return self._asset(entry)
        raise NotFoundError(status_code=404, detail=f"No image named {name!r}", path=self.directory)

    def upload(self, name: str, data: bytes, mime_type: str) -> str:
        """
        Insert or replace an image and return its logical path.

        Only names that ``list()`` shows are accepted.

        Raises:
            ValidationError: If the name, payload or mime type is unusable
        """
        self._check_name(name)
        if not self._accepts(name):
            raise ValidationError(
                status_code=422,
                detail=f"Image name must end with one of {', '.join(IMAGE_EXTENSIONS)}: {name!r}",
            )
        if not isinstance(data, (bytes, bytearray)):
            raise ValidationError(status_code=422, detail="Asset data must be bytes")
        if not (mime_type or "").lower().startswith("image/"):
            raise ValidationError(status_code=422, detail=f"Not an image type: {mime_type!r}")

        path = self._tree_path(name)
        try:
            sha: Optional[str] = self.tree.get(path).sha
        except NotFoundError:
            sha = None

        self.tree.put(path, bytes(data), f"Upload image: {name}", sha=sha)
        logger.info("%s image %s (%d bytes)", "Replaced" if sha else "Uploaded", name, len(data))
        return self.path_for(name)

    def read(self, path: str) -> Tuple[bytes, str]:
        """
        Content and content type of the image at a logical path.

        Raises:
            ValidationError: If the path is outside the namespace
            NotFoundError: If the image does not exist
        """
        prefix = self.public_prefix + "/"
        if not path.startswith(prefix):
            raise ValidationError(status_code=422, detail=f"Path outside {prefix}: {path!r}")
        name = path[len(prefix):]
        self._check_name(name)
        remote = self.tree.get(self._tree_path(name))
        return remote.content, mime_type_for(name)
