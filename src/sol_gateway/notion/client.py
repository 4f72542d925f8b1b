"""Async Notion API client with retry on conflict and rate limiting."""

import asyncio
import logging
import random

import httpx

from sol_gateway.exceptions import (
    ConflictError,
    NotionAPIError,
    NotionTransportError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"

# Notion rejects more than 100 children per append request
MAX_BLOCKS_PER_APPEND = 100


class NotionClient:
    """Async client for the Notion REST API.

    Every request goes through ``_send``: 409 and 429 responses are retried
    with capped exponential backoff plus jitter, any other error status is
    raised immediately.
    """

    RETRYABLE_STATUSES = (409, 429)

    def __init__(
        self,
        token: str,
        *,
        notion_version: str = DEFAULT_NOTION_VERSION,
        base_url: str = NOTION_API_BASE,
        transport: httpx.AsyncBaseTransport | None = None,
        max_attempts: int = 5,
        backoff_base: float = 0.25,
        backoff_cap: float = 2.0,
        jitter: float = 0.1,
    ):
        self.token = token
        self.notion_version = notion_version
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self.jitter = jitter
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=30.0, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
            "Notion-Version": self.notion_version,
        }

    def backoff_delay(self, attempt: int) -> float:
        """Seconds to wait after the given (0-based) failed attempt."""
        return min(self.backoff_cap, self.backoff_base * (2**attempt)) + random.uniform(0, self.jitter)

    @staticmethod
    def _error_for(response: httpx.Response) -> NotionAPIError:
        try:
            payload = response.json()
        except ValueError:
            payload = response.text

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return RateLimitError(int(retry_after) if retry_after and retry_after.isdigit() else None, payload)
        if response.status_code == 409:
            return ConflictError(payload)

        message = payload.get("message", response.text) if isinstance(payload, dict) else response.text
        return NotionAPIError(response.status_code, message, payload)

    async def _send(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> httpx.Response:
        """Send a request, retrying 409/429 up to ``max_attempts`` times in total."""
        client = await self._get_client()
        url = f"{self.base_url}{endpoint}"
        last_error: NotionAPIError | None = None

        for attempt in range(self.max_attempts):
            try:
                response = await client.request(method, url, params=params, json=json, headers=self.headers)
            except httpx.HTTPError as e:
                raise NotionTransportError(f"Notion API request failed: {e}") from e

            if response.status_code in self.RETRYABLE_STATUSES:
                last_error = self._error_for(response)
                if attempt + 1 < self.max_attempts:
                    delay = self.backoff_delay(attempt)
                    logger.warning(
                        f"Notion {method} {endpoint} returned {response.status_code}, "
                        f"retrying in {delay:.2f}s (attempt {attempt + 1}/{self.max_attempts})"
                    )
                    await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                raise self._error_for(response)

            return response

        logger.error(f"Notion {method} {endpoint} still failing after {self.max_attempts} attempts")
        raise last_error

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json: dict | None = None,
    ) -> dict:
        response = await self._send(method, endpoint, params=params, json=json)
        return response.json()

    # Databases

    async def get_database(self, database_id: str) -> dict:
        return await self._request("GET", f"/databases/{database_id}")

    async def query_database(
        self,
        database_id: str,
        filter: dict | None = None,
        sorts: list[dict] | None = None,
        page_size: int = 100,
        start_cursor: str | None = None,
    ) -> dict:
        body: dict = {"page_size": page_size}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor
        return await self._request("POST", f"/databases/{database_id}/query", json=body)

    # Pages

    async def create_page(self, database_id: str, properties: dict) -> dict:
        return await self._request(
            "POST",
            "/pages",
            json={"parent": {"database_id": database_id}, "properties": properties},
        )

    async def update_page(self, page_id: str, properties: dict) -> dict:
        return await self._request("PATCH", f"/pages/{page_id}", json={"properties": properties})

    async def archive_page(self, page_id: str) -> dict:
        return await self._request("PATCH", f"/pages/{page_id}", json={"archived": True})

    # Blocks

    async def append_block_children(self, block_id: str, children: list[dict]) -> list[dict]:
        """Append children to a block or page, in batches Notion accepts.

        Returns the API response of each batch.
        """
        responses = []
        for start in range(0, len(children), MAX_BLOCKS_PER_APPEND):
            batch = children[start : start + MAX_BLOCKS_PER_APPEND]
            responses.append(
                await self._request("PATCH", f"/blocks/{block_id}/children", json={"children": batch})
            )
        return responses

    # Search and users

    async def search(
        self,
        query: str,
        filter: dict | None = None,
        sort: dict | None = None,
        page_size: int | None = None,
    ) -> dict:
        body: dict = {"query": query}
        if filter:
            body["filter"] = filter
        if sort:
            body["sort"] = sort
        if page_size:
            body["page_size"] = page_size
        return await self._request("POST", "/search", json=body)

    async def list_users(self, start_cursor: str | None = None) -> dict:
        params = {"start_cursor": start_cursor} if start_cursor else None
        return await self._request("GET", "/users", params=params)
