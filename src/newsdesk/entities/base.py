# entities/base.py
from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from typing import Any, Iterator, List, TYPE_CHECKING

from ..exceptions import APIError, NotFoundError

if TYPE_CHECKING:
    from ..api_client import TreeClient, TreeEntry


logger = logging.getLogger(__name__)


class BaseStore(ABC):
    """
    A flat collection of files under one directory of the remote tree.

    Subclasses decide which file names belong to the collection
    (``_accepts``), how a name maps to a key (``_key``) and how a key is
    resolved (``get``). Nothing is cached: every access lists the
    directory again.
    """

    def __init__(self, tree: "TreeClient", directory: str) -> None:
        self.tree = tree
        self.directory = directory.strip("/")

    # ------------------------------------------------------------------ #
    # Low-level helpers
    # ------------------------------------------------------------------ #

    def _accepts(self, name: str) -> bool:
        return True

    def _key(self, entry: "TreeEntry") -> str:
        return entry.name

    def _entries(self) -> List["TreeEntry"]:
        """
        Files of the collection, in directory order.

        A directory that does not exist yet is an empty collection; git
        does not keep empty directories.
        """
        try:
            entries = self.tree.list(self.directory)
        except NotFoundError:
            logger.debug("Directory %s does not exist, treating as empty", self.directory)
            return []
        return [e for e in entries if e.type == "file" and self._accepts(e.name)]

    @abstractmethod
    def get(self, key: str) -> Any:
        """The item stored under `key`; NotFoundError when absent."""

    def keys(self) -> List[str]:
        """Keys of every item currently in the collection."""
        seen: List[str] = []
        for entry in self._entries():
            key = self._key(entry)
            if key not in seen:
                seen.append(key)
        return seen

    # ------------------------------------------------------------------ #
    # Python container protocol
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self.keys())

    def __iter__(self) -> Iterator[Any]:
        """Iterate over items (one fetch per item)."""
        for key in self.keys():
            yield self.get(key)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self.keys()

    def __getitem__(self, key: str) -> Any:
        if not isinstance(key, str):
            raise TypeError(f"Unsupported key type: {type(key)!r}")
        try:
            return self.get(key)
        except NotFoundError as exc:
            raise KeyError(key) from exc

    def _ipython_key_completions_(self) -> List[str]:
        try:
            return self.keys()
        except APIError:
            return []
