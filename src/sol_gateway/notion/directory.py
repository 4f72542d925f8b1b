"""Process-wide cache of workspace users, for resolving people by email."""

import logging
import time

from pydantic import BaseModel, Field

from sol_gateway.notion.client import NotionClient

logger = logging.getLogger(__name__)

MAX_USER_PAGES = 10


class UserIndex(BaseModel):
    """Workspace users keyed by id and by lower-cased email."""

    by_id: dict[str, dict] = Field(default_factory=dict)
    by_email: dict[str, dict] = Field(default_factory=dict)

    def lookup_email(self, email: str) -> dict | None:
        return self.by_email.get(email.strip().lower())


async def list_all_users(client: NotionClient) -> UserIndex:
    """Page through /users (at most ``MAX_USER_PAGES`` pages)."""
    index = UserIndex()
    cursor = None
    for _ in range(MAX_USER_PAGES):
        data = await client.list_users(start_cursor=cursor)
        for user in data.get("results", []):
            if user.get("id"):
                index.by_id[user["id"]] = user
            email = (user.get("person") or {}).get("email")
            if email:
                index.by_email[email.lower()] = user
        cursor = data.get("next_cursor")
        if not data.get("has_more") or not cursor:
            break
    return index


class PeopleDirectory:
    """Lazily built user index shared across requests.

    The index is rebuilt once it is older than ``ttl`` seconds. Users added to
    the workspace in the meantime are not visible until then.
    """

    def __init__(self, ttl: float = 900.0):
        self.ttl = ttl
        self._index: UserIndex | None = None
        self._built_at = 0.0

    @property
    def is_stale(self) -> bool:
        return self._index is None or (time.monotonic() - self._built_at) > self.ttl

    async def get(self, client: NotionClient) -> UserIndex:
        if self.is_stale:
            logger.info("Building people directory from Notion users...")
            self._index = await list_all_users(client)
            self._built_at = time.monotonic()
            logger.info(f"Indexed {len(self._index.by_id)} users ({len(self._index.by_email)} with email)")
        return self._index

    def invalidate(self) -> None:
        self._index = None
