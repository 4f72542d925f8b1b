"""Build Notion blocks from the gateway's loose ``content`` object."""

import re
from typing import Any

from sol_gateway.notion.utils import infer_file_name, text_value

TEXT_BLOCK_TYPES = {
    "heading_1",
    "heading_2",
    "heading_3",
    "paragraph",
    "bulleted_list_item",
    "numbered_list_item",
    "toggle",
}


def _block(block_type: str, body: dict) -> dict:
    return {"object": "block", "type": block_type, block_type: body}


def paragraph(text: str, italic: bool = False) -> dict:
    run = text_value(text)
    if italic:
        run["annotations"] = {"italic": True}
    return _block("paragraph", {"rich_text": [run]})


def _explicit_block(entry: dict) -> dict | None:
    block_type = entry.get("type")
    text = entry.get("text")
    rich_text = [text_value("" if text is None else text)]

    if block_type in TEXT_BLOCK_TYPES:
        return _block(block_type, {"rich_text": rich_text})
    if block_type == "callout":
        body: dict = {"rich_text": rich_text}
        if entry.get("icon"):
            body["icon"] = {"type": "emoji", "emoji": str(entry["icon"])}
        return _block("callout", body)
    if block_type == "code":
        return _block("code", {"rich_text": rich_text, "language": entry.get("language") or "plain text"})
    return None


def build_blocks(content: dict | None) -> list[dict]:
    """Convert a content object into a list of blocks.

    Expected content structure (every key optional):
    {
        "description": "First paragraph\\nSecond paragraph",
        "blocks": [{"type": "heading_2", "text": "Plan"}, {"type": "code", "text": "...", "language": "python"}],
        "subtasks": [{"text": "Write tests", "checked": false}],
        "files": ["https://example.com/spec.pdf", {"url": "...", "name": "Mockups"}],
    }
    """
    blocks: list[dict] = []
    if not content:
        return blocks

    description = content.get("description")
    if isinstance(description, str) and description.strip():
        for part in re.split(r"\n+", description):
            if part.strip():
                blocks.append(paragraph(part))

    for entry in content.get("blocks") or []:
        if isinstance(entry, dict):
            block = _explicit_block(entry)
            if block:
                blocks.append(block)

    for item in content.get("subtasks") or []:
        if isinstance(item, dict) and item.get("text"):
            blocks.append(
                _block(
                    "to_do",
                    {"rich_text": [text_value(item["text"])], "checked": bool(item.get("checked"))},
                )
            )

    for item in content.get("files") or []:
        url: Any = None
        name: Any = None
        if isinstance(item, str):
            url = item
        elif isinstance(item, dict):
            url = item.get("url") or item.get("href") or (item.get("external") or {}).get("url")
            name = item.get("name")
        if not url:
            continue
        blocks.append(_block("file", {"type": "external", "external": {"url": str(url)}}))
        blocks.append(paragraph(str(name) if name else infer_file_name(url), italic=True))

    return blocks
