"""Helpers for Notion identifiers and page text."""

import re
from typing import Any

UUID_RE = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
HEX32_RE = re.compile(r"^[0-9a-fA-F]{32}$")

MAX_FILE_NAME_LENGTH = 100


def normalize_id(value: Any) -> str:
    """Strip dashes and lowercase, for comparing ids written either way."""
    return str(value or "").replace("-", "").lower()


def to_dashed_uuid(value: Any) -> str:
    """Format a 32-char hex id as 8-4-4-4-12; anything else is returned as-is."""
    text = str(value or "")
    raw = text.replace("-", "")
    if HEX32_RE.match(raw):
        return f"{raw[:8]}-{raw[8:12]}-{raw[12:16]}-{raw[16:20]}-{raw[20:]}"
    return text


def is_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_RE.match(to_dashed_uuid(value.strip())))


def plain_text(rich_text: list[dict] | None) -> str:
    """Join the plain_text of a rich text array."""
    return "".join((part or {}).get("plain_text", "") for part in rich_text or []).strip()


def page_title(page: dict, title_property: str) -> str:
    """Extract a page's title from its title property."""
    prop = (page.get("properties") or {}).get(title_property) or {}
    return plain_text(prop.get("title"))


def text_value(content: Any) -> dict:
    """Format a rich text run."""
    return {"type": "text", "text": {"content": str(content)}}


def infer_file_name(url: Any) -> str:
    """Last path segment of a URL, without the query string."""
    without_query = str(url).split("?")[0]
    segments = [s for s in without_query.split("/") if s]
    name = segments[-1] if segments else "file"
    return name[:MAX_FILE_NAME_LENGTH]
