"""Shared fixtures: an in-memory Notion workspace behind httpx.MockTransport."""

import json
import uuid

import httpx
import pytest
import pytest_asyncio

from sol_gateway.config import Settings
from sol_gateway.notion.client import NotionClient

TASKS_DB = "11111111-1111-1111-1111-111111111111"
ROADMAP_DB = "22222222-2222-2222-2222-222222222222"

TASKS_PROPERTIES = {
    "Name": {"id": "title", "type": "title", "title": {}},
    "Status": {
        "id": "st",
        "type": "status",
        "status": {"options": [{"name": "Not started"}, {"name": "In progress"}, {"name": "Done"}]},
    },
    "Priority": {
        "id": "pr",
        "type": "select",
        "select": {"options": [{"name": "Open"}, {"name": "Closed"}]},
    },
    "Tags": {
        "id": "tg",
        "type": "multi_select",
        "multi_select": {"options": [{"name": "backend"}, {"name": "frontend"}]},
    },
    "Notes": {"id": "nt", "type": "rich_text", "rich_text": {}},
    "Due": {"id": "du", "type": "date", "date": {}},
    "Estimate": {"id": "es", "type": "number", "number": {"format": "number"}},
    "Done": {"id": "dn", "type": "checkbox", "checkbox": {}},
    "Link": {"id": "ln", "type": "url", "url": {}},
    "Owner": {"id": "ow", "type": "people", "people": {}},
    "Attachments": {"id": "at", "type": "files", "files": {}},
    "Roadmap": {"id": "rm", "type": "relation", "relation": {"database_id": ROADMAP_DB.replace("-", "")}},
    "Parent task": {"id": "pt", "type": "relation", "relation": {"database_id": TASKS_DB}},
    "Created": {"id": "cr", "type": "created_time", "created_time": {}},
}

ROADMAP_PROPERTIES = {
    "Phase": {"id": "title", "type": "title", "title": {}},
    "Quarter": {"id": "q", "type": "select", "select": {"options": [{"name": "Q1"}, {"name": "Q2"}]}},
}


def _rich(text: str) -> list[dict]:
    return [{"type": "text", "text": {"content": text}, "plain_text": text}]


class FakeNotion:
    """Just enough of the Notion REST API for the gateway.

    Every request is recorded in ``calls`` as ``(method, path, body)``.
    Statuses queued with ``fail`` are answered before the real handler runs.
    """

    def __init__(self):
        self.databases: dict[str, dict] = {}
        self.pages: dict[str, dict] = {}
        self.children: dict[str, list[dict]] = {}
        self.users: list[dict] = []
        self.users_per_page = 100
        self.search_aliases: dict[str, list[str]] = {}
        self.calls: list[tuple[str, str, dict | None]] = []
        self._failures: dict[tuple[str, str], list[int]] = {}
        self._clock = 0

    # Setup

    def add_database(self, database_id: str, properties: dict, title: str = "Database") -> str:
        self.databases[database_id] = {
            "object": "database",
            "id": database_id,
            "title": _rich(title),
            "properties": properties,
        }
        return database_id

    def add_page(self, database_id: str, title: str, page_id: str | None = None) -> str:
        page_id = page_id or str(uuid.uuid4())
        title_property = self._title_property(database_id)
        self.pages[page_id] = {
            "object": "page",
            "id": page_id,
            "parent": {"type": "database_id", "database_id": database_id},
            "properties": {title_property: {"type": "title", "title": _rich(title)}},
            "archived": False,
            "_edited": self._tick(),
        }
        return page_id

    def add_user(self, name: str, email: str | None = None) -> str:
        user_id = str(uuid.uuid4())
        user = {"object": "user", "id": user_id, "name": name, "type": "person"}
        if email:
            user["person"] = {"email": email}
        self.users.append(user)
        return user_id

    def fail(self, method: str, path: str, *statuses: int) -> None:
        self._failures.setdefault((method, path), []).extend(statuses)

    # Inspection

    def requests(self, method: str, prefix: str = "") -> list[tuple[str, str, dict | None]]:
        return [c for c in self.calls if c[0] == method and c[1].startswith(prefix)]

    @property
    def writes(self) -> list[tuple[str, str, dict | None]]:
        return self.requests("POST", "/pages") + self.requests("PATCH", "/pages")

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self, **kwargs) -> NotionClient:
        kwargs.setdefault("backoff_base", 0)
        kwargs.setdefault("jitter", 0)
        return NotionClient("secret_test", transport=self.transport, **kwargs)

    # Internals

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def _title_property(self, database_id: str) -> str:
        properties = self.databases[database_id]["properties"]
        return next(name for name, d in properties.items() if d["type"] == "title")

    def _title_of(self, page: dict) -> str:
        for prop in page["properties"].values():
            if prop.get("type") == "title":
                return "".join(part["plain_text"] for part in prop["title"])
        return ""

    def _public(self, page: dict) -> dict:
        return {k: v for k, v in page.items() if not k.startswith("_")}

    def _store_properties(self, properties: dict) -> dict:
        stored = {}
        for name, value in properties.items():
            if "title" in value:
                text = "".join(part["text"]["content"] for part in value["title"])
                stored[name] = {"type": "title", "title": _rich(text)}
            else:
                stored[name] = value
        return stored

    def _error(self, status: int, code: str, message: str) -> httpx.Response:
        return httpx.Response(status, json={"object": "error", "status": status, "code": code, "message": message})

    def _database_pages(self, database_id: str) -> list[dict]:
        pages = [
            p
            for p in self.pages.values()
            if p["parent"]["database_id"] == database_id and not p["archived"]
        ]
        return sorted(pages, key=lambda p: p["_edited"], reverse=True)

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        body = json.loads(request.content) if request.content else None
        self.calls.append((request.method, path, body))

        queued = self._failures.get((request.method, path))
        if queued:
            status = queued.pop(0)
            return self._error(status, "scripted", f"Scripted {status}")

        parts = path.strip("/").split("/")
        if parts[0] == "databases":
            database = self.databases.get(parts[1])
            if database is None:
                return self._error(404, "object_not_found", f"Could not find database with ID: {parts[1]}")
            if len(parts) == 2:
                return httpx.Response(200, json=database)
            return self._query(parts[1], body or {})

        if parts[0] == "pages":
            if request.method == "POST":
                return self._create_page(body)
            return self._update_page(parts[1], body)

        if parts[0] == "blocks":
            if parts[1] not in self.pages:
                return self._error(404, "object_not_found", "Could not find block")
            self.children.setdefault(parts[1], []).extend(body["children"])
            return httpx.Response(200, json={"object": "list", "results": body["children"]})

        if parts[0] == "search":
            return self._search(body or {})

        if parts[0] == "users":
            start = int(request.url.params.get("start_cursor") or 0)
            end = start + self.users_per_page
            has_more = end < len(self.users)
            return httpx.Response(
                200,
                json={
                    "object": "list",
                    "results": self.users[start:end],
                    "has_more": has_more,
                    "next_cursor": str(end) if has_more else None,
                },
            )

        return self._error(400, "invalid_request_url", f"Unknown path {path}")

    def _query(self, database_id: str, body: dict) -> httpx.Response:
        pages = self._database_pages(database_id)
        condition = (body.get("filter") or {}).get("title") or {}
        if "equals" in condition:
            pages = [p for p in pages if self._title_of(p) == condition["equals"]]
        elif "contains" in condition:
            needle = condition["contains"].lower()
            pages = [p for p in pages if needle in self._title_of(p).lower()]
        page_size = body.get("page_size", 100)
        return httpx.Response(
            200,
            json={
                "object": "list",
                "results": [self._public(p) for p in pages[:page_size]],
                "has_more": False,
                "next_cursor": None,
            },
        )

    def _search(self, body: dict) -> httpx.Response:
        query = (body.get("query") or "").lower()
        aliased = set(self.search_aliases.get(query, []))
        pages = [
            p
            for p in self.pages.values()
            if not p["archived"] and (query in self._title_of(p).lower() or p["id"] in aliased)
        ]
        pages.sort(key=lambda p: p["_edited"], reverse=True)
        return httpx.Response(200, json={"object": "list", "results": [self._public(p) for p in pages]})

    def _create_page(self, body: dict) -> httpx.Response:
        database_id = body["parent"]["database_id"]
        if database_id not in self.databases:
            return self._error(404, "object_not_found", "Could not find database")
        page_id = str(uuid.uuid4())
        self.pages[page_id] = {
            "object": "page",
            "id": page_id,
            "parent": {"type": "database_id", "database_id": database_id},
            "properties": self._store_properties(body.get("properties") or {}),
            "archived": False,
            "_edited": self._tick(),
        }
        return httpx.Response(200, json=self._public(self.pages[page_id]))

    def _update_page(self, page_id: str, body: dict) -> httpx.Response:
        page = self.pages.get(page_id)
        if page is None:
            return self._error(404, "object_not_found", f"Could not find page with ID: {page_id}")
        if body.get("archived"):
            page["archived"] = True
        page["properties"].update(self._store_properties(body.get("properties") or {}))
        page["_edited"] = self._tick()
        return httpx.Response(200, json=self._public(page))


@pytest.fixture
def notion() -> FakeNotion:
    fake = FakeNotion()
    fake.add_database(TASKS_DB, TASKS_PROPERTIES, title="Task Tracker")
    fake.add_database(ROADMAP_DB, ROADMAP_PROPERTIES, title="Roadmap")
    return fake


@pytest_asyncio.fixture
async def client(notion):
    notion_client = notion.client()
    yield notion_client
    await notion_client.close()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        notion_key="secret_test",
        tasks_database_id=TASKS_DB,
        roadmap_database_id=ROADMAP_DB,
        docs_database_id="",
        server_token="",
        search_api_key="",
        base_url="http://testserver",
        files_dir=tmp_path / "files",
    )
