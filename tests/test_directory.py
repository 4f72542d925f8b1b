"""Tests for the workspace people directory."""

import pytest

from sol_gateway.notion.directory import MAX_USER_PAGES, PeopleDirectory, list_all_users


@pytest.mark.asyncio
async def test_list_all_users_indexes_emails(notion, client):
    ada = notion.add_user("Ada", "Ada@Example.com")
    notion.add_user("Integration bot")

    index = await list_all_users(client)

    assert len(index.by_id) == 2
    assert index.lookup_email(" ada@example.COM ")["id"] == ada
    assert index.lookup_email("bot@example.com") is None


@pytest.mark.asyncio
async def test_list_all_users_stops_after_page_limit(notion, client):
    notion.users_per_page = 1
    for n in range(MAX_USER_PAGES + 3):
        notion.add_user(f"User {n}", f"user{n}@example.com")

    index = await list_all_users(client)

    assert len(index.by_id) == MAX_USER_PAGES
    assert len(notion.requests("GET", "/users")) == MAX_USER_PAGES


@pytest.mark.asyncio
async def test_directory_is_built_once(notion, client):
    notion.add_user("Ada", "ada@example.com")
    directory = PeopleDirectory(ttl=900)

    first = await directory.get(client)
    second = await directory.get(client)

    assert first is second
    assert len(notion.requests("GET", "/users")) == 1


@pytest.mark.asyncio
async def test_directory_rebuilds_after_invalidate(notion, client):
    directory = PeopleDirectory(ttl=900)
    await directory.get(client)
    notion.add_user("Late joiner", "late@example.com")

    directory.invalidate()
    assert directory.is_stale

    index = await directory.get(client)
    assert index.lookup_email("late@example.com") is not None
    assert len(notion.requests("GET", "/users")) == 2


@pytest.mark.asyncio
async def test_directory_expires_after_ttl(notion, client):
    directory = PeopleDirectory(ttl=60)
    await directory.get(client)

    directory._built_at -= 30
    assert not directory.is_stale
    directory._built_at -= 31
    assert directory.is_stale
