"""
Records handled by the content store, and the naming rules for articles.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import re
from typing import Any, ClassVar, Dict, List, Optional, Tuple


DEFAULT_CATEGORY = "company-news"
DEFAULT_AUTHOR = "Red Flag Security Team"

CATEGORIES: Tuple[str, ...] = (
    "threat-intel",
    "technology",
    "company-news",
    "guides",
    "security-tips",
    "industry-trends",
)

SLUG_MAX_LENGTH = 80

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}-")


# -------------------------------
# Naming helpers
# -------------------------------


def slugify(title: str) -> str:
    """
    Lower-case ``title`` and collapse every non-alphanumeric run to one hyphen.

    >>> slugify("CCTV for Retail: A Guide!")
    'cctv-for-retail-a-guide'
    """
    slug = _NON_ALNUM.sub("-", title.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-")


def slug_from_filename(filename: str) -> str:
    """Strip the ``.md`` extension and the ``YYYY-MM-DD-`` prefix."""
    if filename.endswith(".md"):
        filename = filename[: -len(".md")]
    return _DATE_PREFIX.sub("", filename, count=1)


def utcnow_iso() -> str:
    """Current time as an ISO 8601 UTC string with millisecond precision."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime:
    """
    Parse an ISO 8601 date or timestamp into an aware datetime.

    Date-only values are midnight UTC and naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not ISO 8601
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        parsed = datetime.combine(date.fromisoformat(text), datetime.min.time())
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


# -------------------------------
# Records
# -------------------------------


@dataclass(eq=False)
class Article:
    """
    One article document.

    ``filename`` is the storage key (``<date>-<slug>``, no extension) and
    ``sha`` the revision marker of the stored file the record was read
    from. Neither is part of the document header.
    """

    filename: str = ""
    title: str = ""
    excerpt: str = ""
    category: str = DEFAULT_CATEGORY
    published_at: str = field(default_factory=utcnow_iso)
    cover_image: str = ""
    tags: List[str] = field(default_factory=list)
    seo_keywords: List[str] = field(default_factory=list)
    author: str = DEFAULT_AUTHOR
    featured: bool = False
    draft: bool = False
    content: str = ""
    sha: Optional[str] = field(default=None, repr=False)

    # Attribute name -> header key, in the order the header is written
    HEADER_KEYS: ClassVar[Dict[str, str]] = {
        "title": "title",
        "excerpt": "excerpt",
        "category": "category",
        "published_at": "publishedAt",
        "cover_image": "coverImage",
        "tags": "tags",
        "seo_keywords": "seoKeywords",
        "author": "author",
        "featured": "featured",
        "draft": "draft",
    }

    @property
    def slug(self) -> str:
        return slug_from_filename(self.filename)

    @property
    def status(self) -> str:
        return "draft" if self.draft else "published"

    @property
    def published_datetime(self) -> datetime:
        return parse_timestamp(self.published_at)

    def _key(self) -> Tuple[Any, ...]:
        values = []
        for name in ("filename", *self.HEADER_KEYS, "content"):
            value = getattr(self, name)
            if name in ("tags", "seo_keywords"):
                value = tuple(sorted(value))
            values.append(value)
        return tuple(values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Article):
            return NotImplemented
        return self._key() == other._key()

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> Dict[str, Any]:
        """CamelCase mapping used by the HTTP layer in front of the store."""
        data: Dict[str, Any] = {"slug": self.slug, "filename": self.filename}
        for name, key in self.HEADER_KEYS.items():
            value = getattr(self, name)
            data[key] = list(value) if isinstance(value, list) else value
        data["status"] = self.status
        data["content"] = self.content
        return data


@dataclass
class Asset:
    """An image in the asset namespace."""
    name: str
    path: str
    size: Optional[int] = None
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "path": self.path, "size": self.size, "url": self.url}
