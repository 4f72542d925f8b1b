"""Custom exceptions for sol-gateway.

Every exception carries a short machine-readable ``error`` code and the HTTP
status the gateway answers with, so the API layer can render any of them as
``{"ok": false, "error": ..., ...}``.
"""

from typing import Any


class GatewayError(Exception):
    """Base exception for all sol-gateway errors."""

    error = "gateway_error"
    status_code = 500

    def __init__(self, message: str | None = None, *, error: str | None = None, **details: Any):
        if error is not None:
            self.error = error
        self.details = {k: v for k, v in details.items() if v is not None}
        super().__init__(message or self.error)

    def to_payload(self) -> dict[str, Any]:
        return {"ok": False, "error": self.error, **self.details}


class Unauthorized(GatewayError):
    """Missing or wrong shared secret."""

    error = "unauthorized"
    status_code = 401


class BadRequest(GatewayError):
    """Request is missing something the gateway needs."""

    error = "bad_request"
    status_code = 400


class NotFound(GatewayError):
    """Requested record does not exist."""

    error = "not_found"
    status_code = 404


class NotionAPIError(GatewayError):
    """Error from Notion API."""

    error = "notion_api_error"

    def __init__(self, status_code: int, message: str, payload: Any = None):
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Notion API error ({status_code}): {message}")
        self.details = {"status": status_code, "details": payload if payload is not None else message}


class RateLimitError(NotionAPIError):
    """Rate limit exceeded error."""

    def __init__(self, retry_after: int | None = None, payload: Any = None):
        self.retry_after = retry_after
        message = f"Rate limited (retry after {retry_after}s)" if retry_after else "Rate limited"
        super().__init__(429, message, payload)


class ConflictError(NotionAPIError):
    """Conflicting concurrent write on the Notion side."""

    def __init__(self, payload: Any = None):
        super().__init__(409, "Conflict", payload)


class NotionTransportError(NotionAPIError):
    """Notion could not be reached at all."""

    error = "notion_unreachable"

    def __init__(self, message: str):
        super().__init__(502, message)


class UpsertRejected(GatewayError):
    """Upsert aborted before anything was written."""

    status_code = 400


class RelationUnresolvedError(UpsertRejected):
    """A relation title could not be turned into a page id."""

    error = "relation_title_not_found"

    def __init__(self, unresolved: list[dict[str, Any]], suggestions: list[str] | None = None):
        self.unresolved = unresolved
        self.suggestions = suggestions
        super().__init__(
            f"Unresolved relation titles: {unresolved}",
            hint=(
                "No matching page title could be resolved for a relation. "
                "Use an exact title or supply the page ID."
            ),
            unresolved=unresolved,
            suggestions=suggestions,
        )


class TitleRequiredError(UpsertRejected):
    """A page cannot be created without a title."""

    error = "title_required"


class NoTitlePropertyError(UpsertRejected):
    """Target database has no title property."""

    error = "no_title_property"


class DocumentError(GatewayError):
    """Document could not be generated."""

    error = "document_generation_failed"


class SearchError(GatewayError):
    """Web search provider failed."""

    error = "search_failed"
    status_code = 502
