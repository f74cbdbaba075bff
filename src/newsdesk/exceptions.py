from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, List, Optional


@dataclass
class APIError(Exception):
    """
    Base error for every failure surfaced by the content store.

    Remote failures mirror the GitHub error body:
        {
          "message": "sha does not match",
          "documentation_url": "https://docs.github.com/rest/...",
          "errors": [...]
        }

    Local failures (input validation, document decoding) use
    ``status_code=0``.
    """

    status_code: int = 0
    detail: str = ""
    path: Optional[str] = None              # tree path the call targeted
    documentation_url: Optional[str] = None
    errors: Any = None                      # nested errors from the body
    response_body: Any = None               # raw parsed JSON of the response

    RETRYABLE: ClassVar[bool] = False

    def __post_init__(self) -> None:
        msg = self.detail or f"HTTP {self.status_code}"
        if self.path:
            msg = f"{msg} ({self.path})"
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        """Whether the caller may retry the same operation."""
        return self.RETRYABLE


# -------------------------------------------------
# Typed errors
# -------------------------------------------------

class NotFoundError(APIError):
    pass


class ConflictError(APIError):
    """Stale revision marker, or the target already exists."""

    RETRYABLE = True


class AuthError(APIError):
    pass


class TransportError(APIError):
    """Network failure or remote service failure."""

    RETRYABLE = True


class RateLimitError(TransportError):
    pass


class ValidationError(APIError):
    pass


class DocumentError(ValidationError):
    """A stored document could not be decoded."""


@dataclass
class ListingError(APIError):
    """
    One or more files could not be read while listing a directory.

    ``failures`` maps each failing path to its error and ``partial`` holds
    everything that was read successfully, already ordered.
    """

    failures: Dict[str, APIError] = None
    partial: List[Any] = None

    def __post_init__(self) -> None:
        if self.failures is None:
            self.failures = {}
        if self.partial is None:
            self.partial = []
        if not self.detail:
            self.detail = f"{len(self.failures)} file(s) could not be read"
        super().__post_init__()

    @property
    def retryable(self) -> bool:
        return any(e.retryable for e in self.failures.values())


# -------------------------------------------------
# Mapping helpers
# -------------------------------------------------

# Fallback mapping by HTTP status code
_STATUS_TO_EXCEPTION = {
    400: ValidationError,
    401: AuthError,
    403: AuthError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
    429: RateLimitError,
}


def _is_rate_limited(response, message: str) -> bool:
    headers = getattr(response, "headers", None) or {}
    if str(headers.get("X-RateLimit-Remaining", "")) == "0":
        return True
    return "rate limit" in message.lower()


def _pick_exception_class(response, message: str) -> type[APIError]:
    status_code = response.status_code

    if status_code == 403 and _is_rate_limited(response, message):
        return RateLimitError
    # The contents API answers 422 when a sha is missing for an existing
    # file, or does not match on some endpoints.
    if status_code == 422 and "sha" in message.lower():
        return ConflictError
    if status_code in _STATUS_TO_EXCEPTION:
        return _STATUS_TO_EXCEPTION[status_code]
    return TransportError


def _format_errors(errors: Any) -> str:
    """
    Turn the GitHub ``errors`` list into a readable string.

    Items look like:
        {"resource": "Commit", "field": "sha", "code": "invalid"}
    or carry a plain ``message``.
    """
    if isinstance(errors, str):
        return errors

    if isinstance(errors, list):
        parts = []
        for item in errors:
            if isinstance(item, dict):
                if item.get("message"):
                    parts.append(str(item["message"]))
                    continue
                field = item.get("field")
                code = item.get("code") or "invalid"
                parts.append(f"{field}: {code}" if field else str(code))
            else:
                parts.append(str(item))
        return "; ".join(parts)

    return str(errors)


def error_from_response(response, path: Optional[str] = None) -> APIError:
    """
    Build a concrete APIError subclass from a `requests.Response`.

    If the body is not JSON or doesn't carry a ``message`` we still
    build an error with whatever information we can.
    """

    status_code = response.status_code

    body: Any
    try:
        body = response.json()
    except ValueError:
        message = response.text or f"HTTP {status_code}"
        exc_cls = _pick_exception_class(response, message)
        return exc_cls(status_code=status_code, detail=message, path=path)

    if not isinstance(body, dict):
        message = str(body)
        exc_cls = _pick_exception_class(response, message)
        return exc_cls(
            status_code=status_code,
            detail=message,
            path=path,
            response_body=body,
        )

    message = str(body.get("message") or f"HTTP {status_code}")
    errors = body.get("errors")
    detail = message
    if errors:
        detail = f"{message}: {_format_errors(errors)}"

    exc_cls = _pick_exception_class(response, detail)

    return exc_cls(
        status_code=status_code,
        detail=detail,
        path=path,
        documentation_url=body.get("documentation_url"),
        errors=errors,
        response_body=body,
    )


def raise_for_api_error(response, path: Optional[str] = None) -> None:
    """
    Raise a suitable APIError subclass if `response` is not a success.

    Usage in the tree client:

        resp = self._session.request(...)
        raise_for_api_error(resp, path)
        data = resp.json()
    """
    if response.status_code >= 400:
        raise error_from_response(response, path=path)
