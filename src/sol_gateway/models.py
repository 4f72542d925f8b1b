"""Request and response models for sol-gateway."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# content.meta keys that steer the upsert instead of naming properties
META_CONTROL_KEYS = {"page_id", "id", "_update", "_mode"}


class UpsertRequest(BaseModel):
    """Body of POST /upsert_page.

    Expected structure:
    {
        "db": "tasks",
        "page_id": "optional existing page id",
        "title": "Ship v2",
        "fields": {"Status": "in progress", "Roadmap": "Phase 2", "Due": "2024-05-01"},
        "content": {"description": "...", "subtasks": [...], "meta": {...}},
    }
    """

    model_config = ConfigDict(extra="allow")

    db: str | None = None
    page_id: str | None = None
    title: Any = None
    fields: dict[str, Any] = Field(default_factory=dict)
    properties: dict[str, Any] = Field(default_factory=dict, description="Alias of fields")
    content: dict[str, Any] | None = None

    def resolved_fields(self) -> dict[str, Any]:
        """Fields to write, with ``content.meta`` entries merged in.

        Explicit ``fields`` (or ``properties``) win over meta values.
        """
        fields = dict(self.fields or self.properties)
        meta = (self.content or {}).get("meta")
        if isinstance(meta, dict):
            for key, value in meta.items():
                if key not in META_CONTROL_KEYS and key not in fields:
                    fields[key] = value
        return fields

    def resolved_page_id(self) -> str | None:
        page_id = str(self.page_id or "").strip()
        if not page_id:
            meta = (self.content or {}).get("meta")
            if isinstance(meta, dict):
                page_id = str(meta.get("page_id") or meta.get("id") or "").strip()
        return page_id or None


class UpsertResult(BaseModel):
    """Outcome of a successful upsert."""

    ok: bool = True
    mode: Literal["create", "update"]
    database_id: str
    page_id: str
    skipped: dict[str, dict] | None = None
    relation_normalized: list[str] | None = None
    content_ok: bool | None = None
    content_appended: int | None = None
    content_error: dict | None = None


class UpdateTaskRequest(BaseModel):
    db: str | None = None
    title: str | None = None
    status: str | None = None
    notes: str | None = None
    task_id: str | None = None


class AppendContentRequest(BaseModel):
    page_id: str | None = None
    description: str | None = None
    subtasks: list[Any] = Field(default_factory=list)
    files: list[Any] = Field(default_factory=list)
    blocks: list[Any] | None = None


class DeletePageRequest(BaseModel):
    page_id: str | None = None
    db: str | None = None
    title: str | None = None
    dry_run: bool = False
    reason: str | None = None


class FindPagesRequest(BaseModel):
    db: str | None = None
    title: str | None = None
    exact: bool = False


class ProbeCreateRequest(BaseModel):
    db: str | None = None
    title: str | None = None


class GenerateDocumentRequest(BaseModel):
    title: str | None = None
    content: str | None = None
    format: str | None = None


class SearchRequest(BaseModel):
    query: str | None = None
    recency_days: int | None = None
