"""Tests for content-to-block conversion."""

from sol_gateway.notion.blocks import build_blocks


def test_empty_content():
    assert build_blocks(None) == []
    assert build_blocks({}) == []
    assert build_blocks({"description": "   "}) == []


def test_description_becomes_paragraphs():
    blocks = build_blocks({"description": "One\nTwo\n\n\nThree"})

    assert [b["paragraph"]["rich_text"][0]["text"]["content"] for b in blocks] == ["One", "Two", "Three"]


def test_explicit_blocks():
    blocks = build_blocks(
        {
            "blocks": [
                {"type": "heading_2", "text": "Plan"},
                {"type": "callout", "text": "Heads up", "icon": "⚠️"},
                {"type": "code", "text": "print(1)"},
                {"type": "code", "text": "SELECT 1", "language": "sql"},
                {"type": "embed", "text": "ignored"},
                "not a block",
            ]
        }
    )

    assert [b["type"] for b in blocks] == ["heading_2", "callout", "code", "code"]
    assert blocks[1]["callout"]["icon"] == {"type": "emoji", "emoji": "⚠️"}
    assert blocks[2]["code"]["language"] == "plain text"
    assert blocks[3]["code"]["language"] == "sql"


def test_subtasks_become_to_dos():
    blocks = build_blocks({"subtasks": [{"text": "Write tests", "checked": True}, {"text": "Ship"}, {"checked": True}]})

    assert [(b["to_do"]["rich_text"][0]["text"]["content"], b["to_do"]["checked"]) for b in blocks] == [
        ("Write tests", True),
        ("Ship", False),
    ]


def test_files_get_a_caption():
    blocks = build_blocks(
        {
            "files": [
                "https://example.com/docs/spec.pdf?download=1",
                {"url": "https://example.com/a.png", "name": "Mockup"},
                {"name": "no url"},
            ]
        }
    )

    assert [b["type"] for b in blocks] == ["file", "paragraph", "file", "paragraph"]
    assert blocks[0]["file"] == {"type": "external", "external": {"url": "https://example.com/docs/spec.pdf?download=1"}}
    caption = blocks[1]["paragraph"]["rich_text"][0]
    assert caption["text"]["content"] == "spec.pdf"
    assert caption["annotations"] == {"italic": True}
    assert blocks[3]["paragraph"]["rich_text"][0]["text"]["content"] == "Mockup"


def test_order_is_description_blocks_subtasks_files():
    blocks = build_blocks(
        {
            "files": ["https://example.com/f.txt"],
            "subtasks": [{"text": "todo"}],
            "blocks": [{"type": "divider"}, {"type": "quote", "text": "q"}, {"type": "toggle", "text": "t"}],
            "description": "intro",
        }
    )

    assert [b["type"] for b in blocks] == ["paragraph", "toggle", "to_do", "file", "paragraph"]
