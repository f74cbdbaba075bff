# entities/articles.py
from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from .. import codec
from ..exceptions import (
    APIError,
    ConflictError,
    DocumentError,
    ListingError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    CATEGORIES,
    DEFAULT_AUTHOR,
    Article,
    parse_timestamp,
    slug_from_filename,
    slugify,
    utcnow_iso,
)
from .base import BaseStore

if TYPE_CHECKING:
    from ..api_client import TreeClient, TreeEntry
    from ..notifier import PublishNotifier


logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

_TEXT_FIELDS = ("title", "excerpt", "category", "published_at", "cover_image", "author", "content")
_LIST_FIELDS = ("tags", "seo_keywords")
_BOOL_FIELDS = ("featured", "draft")

# Accepted input keys -> Article attribute
_FIELD_ALIASES: Dict[str, str] = {name: name for name in (*Article.HEADER_KEYS, "content")}
_FIELD_ALIASES.update({key: name for name, key in Article.HEADER_KEYS.items()})

# Derived from storage, never taken from input
_READ_ONLY = {"slug", "filename", "sha"}


def _sort_key(article: Article):
    try:
        published = article.published_datetime
    except ValueError:
        logger.warning("Unparsable publishedAt %r in %s", article.published_at, article.filename)
        published = _EPOCH
    return (published, article.filename)


def sort_articles(articles: List[Article]) -> List[Article]:
    """Most recent ``published_at`` first, ties by filename descending."""
    return sorted(articles, key=_sort_key, reverse=True)


class ArticleStore(BaseStore):
    """
    Articles stored as ``<directory>/<YYYY-MM-DD>-<slug>.md`` in the tree.

    Files whose name starts with an underscore are reserved and never listed.
    Every successful create, update or delete fires the publish notifier.

    Example:
        >>> slug = client.articles.create({"title": "Hello"}, "Body")
        >>> article = client.articles.get(slug)
        >>> client.articles.update(slug, {"excerpt": "Short"}, sha=article.sha)
    """

    EXTENSION = ".md"

    def __init__(
        self,
        tree: "TreeClient",
        directory: str,
        notifier: Optional["PublishNotifier"] = None,
    ) -> None:
        super().__init__(tree, directory)
        self.notifier = notifier

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _accepts(self, name: str) -> bool:
        return name.endswith(self.EXTENSION) and not name.startswith("_")

    def _key(self, entry: "TreeEntry") -> str:
        return slug_from_filename(entry.name)

    def _path(self, filename: str) -> str:
        return f"{self.directory}/{filename}{self.EXTENSION}"

    def _read(self, entry: "TreeEntry") -> Article:
        remote = self.tree.get(entry.path)
        try:
            text = remote.text
        except UnicodeDecodeError as exc:
            raise DocumentError(detail=f"Not UTF-8 text: {exc}", path=entry.path) from exc
        try:
            return codec.decode(text, filename=entry.name[: -len(self.EXTENSION)], sha=remote.sha)
        except DocumentError as exc:
            exc.path = entry.path
            raise

    def _notify(self) -> None:
        if self.notifier is not None:
            self.notifier.notify()

    @staticmethod
    def normalize_fields(fields: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Validate caller-supplied fields and map them to Article attributes.

        Keys may be attribute names (``published_at``) or header keys
        (``publishedAt``); ``status`` ("draft" / "published") sets ``draft``.
        ``None`` values are treated as not supplied.

        Raises:
            ValidationError: Listing every invalid field
        """
        values: Dict[str, Any] = {}
        problems: List[str] = []
        status_draft: Optional[bool] = None

        for key, value in fields.items():
            if value is None or key in _READ_ONLY:
                continue
            if key == "status":
                if value not in ("draft", "published"):
                    problems.append(f"status: must be 'draft' or 'published', got {value!r}")
                else:
                    status_draft = value == "draft"
                continue
            name = _FIELD_ALIASES.get(key)
            if name is None:
                problems.append(f"{key}: unknown field")
                continue
            values[name] = value

        # An explicit draft flag wins over status
        if status_draft is not None:
            values.setdefault("draft", status_draft)

        for name, value in values.items():
            if name in _TEXT_FIELDS and not isinstance(value, str):
                problems.append(f"{name}: must be a string")
            elif name in _LIST_FIELDS and (
                not isinstance(value, (list, tuple)) or not all(isinstance(v, str) for v in value)
            ):
                problems.append(f"{name}: must be a list of strings")
            elif name in _BOOL_FIELDS and not isinstance(value, bool):
                problems.append(f"{name}: must be true or false")
            elif name == "title" and not value.strip():
                problems.append("title: must not be empty")
            elif name == "category" and value not in CATEGORIES:
                problems.append(f"category: must be one of {', '.join(CATEGORIES)}")
            elif name == "published_at":
                try:
                    parse_timestamp(value)
                except ValueError:
                    problems.append("published_at: must be an ISO 8601 date or timestamp")

        if problems:
            raise ValidationError(
                status_code=422,
                detail="Invalid article fields: " + "; ".join(problems),
                errors=problems,
            )

        if "title" in values:
            values["title"] = values["title"].strip()
        for name in _LIST_FIELDS:
            if name in values:
                values[name] = [v.strip() for v in values[name] if v.strip()]
        if "author" in values and not values["author"].strip():
            values["author"] = DEFAULT_AUTHOR
        return values

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def list(self, strict: bool = True) -> List[Article]:
        """
        Every article, most recently published first.

        Args:
            strict: Raise if any single file cannot be read (default: True).
                With ``strict=False`` unreadable files are logged and left out.

        Raises:
            ListingError: In strict mode, carrying per-file errors and the
                partial result
            APIError: If the directory itself cannot be listed
        """
        articles: List[Article] = []
        failures: Dict[str, APIError] = {}

        for entry in self._entries():
            try:
                articles.append(self._read(entry))
            except APIError as exc:
                failures[entry.path] = exc

        articles = sort_articles(articles)

        if failures:
            if strict:
                raise ListingError(path=self.directory, failures=failures, partial=articles)
            for path, exc in failures.items():
                logger.warning("Skipping unreadable article %s: %s", path, exc)

        return articles

    def get(self, slug: str) -> Article:
        """
        The article with ``slug``; the most recently published one if
        several share it.

        Raises:
            NotFoundError: If no article has this slug
        """
        candidates = [e for e in self._entries() if self._key(e) == slug]
        if not candidates:
            raise NotFoundError(status_code=404, detail=f"No article with slug {slug!r}", path=self.directory)
        return sort_articles([self._read(e) for e in candidates])[0]

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def create(self, fields: Mapping[str, Any], content: Optional[str] = None) -> str:
        """
        Store a new article and return its slug.

        The storage key is ``<publish date>-<slugified title>`` and never
        changes afterwards.

        Raises:
            ValidationError: If the fields are invalid
            ConflictError: If an article with the same slug or file exists
        """
        values = self.normalize_fields(fields)
        if content is not None:
            values["content"] = content

        title = values.get("title", "")
        if not title:
            raise ValidationError(status_code=422, detail="Invalid article fields: title: is required")
        slug = slugify(title)
        if not slug:
            raise ValidationError(
                status_code=422,
                detail=f"Invalid article fields: title: {title!r} has no letters or digits",
            )

        values.setdefault("published_at", utcnow_iso())
        publish_date = parse_timestamp(values["published_at"]).astimezone(timezone.utc).date().isoformat()
        filename = f"{publish_date}-{slug}"
        path = self._path(filename)

        if any(self._key(e) == slug for e in self._entries()):
            raise ConflictError(status_code=409, detail=f"Slug {slug!r} is already in use", path=path)

        article = Article(filename=filename, **values)
        article.sha = self.tree.put(
            path,
            codec.encode(article).encode("utf-8"),
            f"Create article: {title}",
        )
        logger.info("Created article %s", filename)
        self._notify()
        return slug

    def update(self, slug: str, fields: Mapping[str, Any], sha: Optional[str] = None) -> Article:
        """
        Merge ``fields`` over the current article and store it.

        The write is conditional on ``sha`` when given, otherwise on the
        marker of the fetch made here. Fields not supplied are unchanged;
        the storage key is kept even when the title changes.

        Raises:
            NotFoundError: If no article has this slug
            ValidationError: If the fields are invalid
            ConflictError: If the article changed since the marker was read
        """
        values = self.normalize_fields(fields)
        current = self.get(slug)

        updated = dataclasses.replace(current, **values)
        updated.sha = self.tree.put(
            self._path(current.filename),
            codec.encode(updated).encode("utf-8"),
            f"Update article: {updated.title}",
            sha=sha or current.sha,
        )
        logger.info("Updated article %s", current.filename)
        self._notify()
        return updated

    def delete(self, slug: str, sha: Optional[str] = None) -> None:
        """
        Remove the article.

        Raises:
            NotFoundError: If no article has this slug
            ConflictError: If the article changed since the marker was read
        """
        current = self.get(slug)
        self.tree.delete(
            self._path(current.filename),
            sha or current.sha,
            f"Delete article: {slug}",
        )
        logger.info("Deleted article %s", current.filename)
        self._notify()
