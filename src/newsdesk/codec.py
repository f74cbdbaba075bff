"""
Article documents: a YAML front-matter header followed by a markdown body.

    ---
    title: "CCTV for Retail: A Guide"
    excerpt: "..."
    category: "guides"
    publishedAt: "2024-03-05T09:00:00.000Z"
    coverImage: "/images/news/cctv.png"
    tags: ["cctv", "retail"]
    seoKeywords: ["retail cctv"]
    author: "Red Flag Security Team"
    featured: false
    draft: false
    ---

    Markdown body...

The header keys and their order are a durable format shared with the site
builder. Decoding does not depend on key order and ignores unknown keys.
"""

from datetime import date, datetime, timezone
import json
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .exceptions import DocumentError
from .models import DEFAULT_AUTHOR, DEFAULT_CATEGORY, Article, utcnow_iso


logger = logging.getLogger(__name__)

DELIMITER = "---"

# Characters the YAML reader refuses or treats as line breaks when raw
_YAML_UNSAFE = re.compile("[\x7f-\x9f\u2028\u2029\ufeff\ufffe\uffff]")


# -------------------------------
# Encoding
# -------------------------------


def _quote(text: str) -> str:
    quoted = json.dumps(text, ensure_ascii=False)
    return _YAML_UNSAFE.sub(lambda m: "\\u%04x" % ord(m.group()), quoted)


def _scalar(value: Any) -> str:
    # JSON strings, lists and booleans are valid YAML flow scalars
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return "[" + ", ".join(_quote(str(v)) for v in value) + "]"
    return _quote(str(value))


def encode(article: Article) -> str:
    """Serialize ``article`` to its document text."""
    lines = [DELIMITER]
    for name, key in Article.HEADER_KEYS.items():
        lines.append(f"{key}: {_scalar(getattr(article, name))}")
    lines.append(DELIMITER)
    lines.append("")
    return "\n".join(lines) + "\n" + article.content + "\n"


# -------------------------------
# Decoding
# -------------------------------


def split(text: str) -> Tuple[Optional[str], str]:
    """
    Split document text into (header, body).

    Returns ``(None, text)`` when the text has no front-matter block.
    """
    text = text.lstrip("\ufeff")
    if text.replace("\r\n", "\n").split("\n", 1)[0].rstrip() != DELIMITER:
        return None, text

    lines = text.splitlines(keepends=True)
    for index in range(1, len(lines)):
        if lines[index].rstrip("\r\n").rstrip() == DELIMITER:
            header = "".join(lines[1:index])
            body = "".join(lines[index + 1:])
            return header, body
    raise DocumentError(detail="Unterminated front-matter header")


def _trim_body(body: str) -> str:
    # Undo the blank line after the header and the final newline of encode()
    if body.startswith("\r\n"):
        body = body[2:]
    elif body.startswith("\n"):
        body = body[1:]
    if body.endswith("\r\n"):
        body = body[:-2]
    elif body.endswith("\n"):
        body = body[:-1]
    return body


def _as_text(value: Any, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "on")
    return bool(value)


def parse_header(header: str) -> Dict[str, Any]:
    """
    Parse the header block into a mapping.

    Raises:
        DocumentError: If the block is not valid YAML or not a mapping
    """
    try:
        data = yaml.safe_load(header)
    except (yaml.YAMLError, ValueError, TypeError) as exc:
        # SafeLoader builds unquoted dates itself, so 2024-13-45 is a ValueError
        raise DocumentError(detail=f"Invalid front-matter: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise DocumentError(detail="Front-matter is not a mapping")
    return data


def decode(text: str, filename: str = "", sha: Optional[str] = None) -> Article:
    """
    Parse document text into an Article with every field populated.

    Missing header keys take their defaults; unknown keys are ignored.

    Raises:
        DocumentError: If the header cannot be parsed
    """
    header, body = split(text)
    data = parse_header(header) if header is not None else {}

    known = set(Article.HEADER_KEYS.values()) | {"status"}
    unknown = sorted(str(k) for k in data if k not in known)
    if unknown:
        logger.debug("Ignoring unknown header keys in %s: %s", filename or "<text>", unknown)

    if "draft" in data and data["draft"] is not None:
        draft = _as_bool(data["draft"])
    else:
        draft = str(data.get("status", "")).strip().lower() == "draft"

    return Article(
        filename=filename,
        title=_as_text(data.get("title"), ""),
        excerpt=_as_text(data.get("excerpt"), ""),
        category=_as_text(data.get("category"), "") or DEFAULT_CATEGORY,
        published_at=_as_text(data.get("publishedAt"), "") or utcnow_iso(),
        cover_image=_as_text(data.get("coverImage"), ""),
        tags=_as_list(data.get("tags")),
        seo_keywords=_as_list(data.get("seoKeywords")),
        author=_as_text(data.get("author"), "") or DEFAULT_AUTHOR,
        featured=_as_bool(data.get("featured")),
        draft=draft,
        content=_trim_body(body) if header is not None else body,
        sha=sha,
    )
