"""Resolve human-readable page titles to page ids."""

import logging

from sol_gateway.exceptions import NotionAPIError
from sol_gateway.notion.client import NotionClient
from sol_gateway.notion.schema import fetch_schema
from sol_gateway.notion.utils import normalize_id, page_title

logger = logging.getLogger(__name__)


class TitleMatchStrategy:
    """One tier of the lookup. Returns the matching page, or None."""

    name = "base"

    async def find(self, client: NotionClient, database_id: str, title_property: str, text: str) -> dict | None:
        raise NotImplementedError


class ExactTitleMatch(TitleMatchStrategy):
    name = "exact"

    async def find(self, client, database_id, title_property, text):
        data = await client.query_database(
            database_id,
            filter={"property": title_property, "title": {"equals": text}},
            page_size=1,
        )
        results = data.get("results", [])
        return results[0] if results else None


class ContainsTitleMatch(TitleMatchStrategy):
    name = "contains"

    async def find(self, client, database_id, title_property, text):
        data = await client.query_database(
            database_id,
            filter={"property": title_property, "title": {"contains": text}},
            page_size=5,
        )
        results = data.get("results", [])
        return results[0] if results else None


class GlobalSearchMatch(TitleMatchStrategy):
    """Workspace-wide search, keeping only pages that live in the database."""

    name = "search"

    async def find(self, client, database_id, title_property, text):
        data = await client.search(
            text,
            filter={"property": "object", "value": "page"},
            sort={"direction": "descending", "timestamp": "last_edited_time"},
        )
        target = normalize_id(database_id)
        candidates = [
            page
            for page in data.get("results", [])
            if (page.get("parent") or {}).get("database_id")
            and normalize_id(page["parent"]["database_id"]) == target
        ]
        wanted = text.strip().lower()
        for page in candidates:
            if page_title(page, title_property).lower() == wanted:
                return page
        return candidates[0] if candidates else None


DEFAULT_STRATEGIES: tuple[TitleMatchStrategy, ...] = (
    ExactTitleMatch(),
    ContainsTitleMatch(),
    GlobalSearchMatch(),
)


class TitleResolver:
    """Turns a title into a page id by trying each strategy in order.

    Title property names are remembered per database for the lifetime of the
    resolver, which is one request.
    """

    def __init__(self, client: NotionClient, strategies: tuple[TitleMatchStrategy, ...] = DEFAULT_STRATEGIES):
        self.client = client
        self.strategies = strategies
        self._title_properties: dict[str, str | None] = {}

    async def title_property(self, database_id: str) -> str | None:
        key = normalize_id(database_id)
        if key not in self._title_properties:
            schema = await fetch_schema(self.client, database_id)
            self._title_properties[key] = schema.title_property
        return self._title_properties[key]

    async def resolve(self, database_id: str, text: str) -> str | None:
        """Return the id of the page titled ``text``, or None if nothing matches.

        Notion errors during lookup count as "not found"; the caller reports
        the title as unresolved instead of failing the request.
        """
        text = str(text).strip()
        if not text:
            return None
        try:
            title_property = await self.title_property(database_id)
            if not title_property:
                return None
            for strategy in self.strategies:
                page = await strategy.find(self.client, database_id, title_property, text)
                if page and page.get("id"):
                    logger.info(f"Resolved '{text}' to {page['id']} ({strategy.name})")
                    return page["id"]
        except NotionAPIError as e:
            logger.warning(f"Title lookup for '{text}' in {database_id} failed: {e}")
            return None

        logger.info(f"No page titled '{text}' in {database_id}")
        return None

    async def sample_titles(self, database_id: str, limit: int = 10) -> list[str]:
        """A few existing titles, offered as suggestions when resolution fails."""
        title_property = await self.title_property(database_id)
        if not title_property:
            return []
        data = await self.client.query_database(database_id, page_size=limit)
        titles = [page_title(page, title_property) for page in data.get("results", [])]
        return [t for t in titles if t]
