"""Page lookups, archiving and the legacy task endpoint."""

import logging

from sol_gateway.exceptions import BadRequest, NoTitlePropertyError, NotFound
from sol_gateway.notion.client import NotionClient
from sol_gateway.notion.properties import Applied, PropertyBuilder
from sol_gateway.notion.resolver import TitleResolver
from sol_gateway.notion.schema import DatabaseSchema, PropertyKind, fetch_schema
from sol_gateway.notion.utils import page_title

logger = logging.getLogger(__name__)


async def find_pages(client: NotionClient, database_id: str, title: str | None, exact: bool = False) -> list[dict]:
    """Find pages by title: exact hits, then substring hits, then recent pages.

    Recent pages are listed only when there is no query or nothing matched.
    """
    schema = await fetch_schema(client, database_id)
    title_property = schema.title_property
    if not title_property:
        raise NoTitlePropertyError()

    query = (title or "").strip()
    results: list[dict] = []
    seen: set[str] = set()

    def collect(pages: list[dict]) -> None:
        for page in pages:
            if page["id"] not in seen:
                seen.add(page["id"])
                results.append({"id": page["id"], "title": page_title(page, title_property)})

    if query:
        data = await client.query_database(
            database_id,
            filter={"property": title_property, "title": {"equals": query}},
            page_size=5,
        )
        collect(data.get("results", []))

        if not exact:
            data = await client.query_database(
                database_id,
                filter={"property": title_property, "title": {"contains": query}},
                page_size=10,
            )
            collect(data.get("results", []))

    if not query or not results:
        data = await client.query_database(
            database_id,
            sorts=[{"timestamp": "last_edited_time", "direction": "descending"}],
            page_size=10,
        )
        collect(data.get("results", []))

    return results


async def resolve_page_id(
    client: NotionClient,
    page_id: str | None,
    database_id: str | None,
    title: str | None,
) -> str:
    """Use ``page_id`` when given, otherwise look the page up by title."""
    page_id = (page_id or "").strip()
    if page_id:
        return page_id
    if not database_id or not (title or "").strip():
        raise BadRequest(error="missing_identifier", hint="Provide 'page_id' or ('db' and exact 'title').")

    resolved = await TitleResolver(client).resolve(database_id, title)
    if not resolved:
        raise NotFound(hint=f"No page titled '{title.strip()}' found in the selected database.")
    return resolved


async def archive_page(client: NotionClient, page_id: str) -> str:
    page = await client.archive_page(page_id)
    logger.info(f"Archived page {page_id}")
    return page.get("id") or page_id


def _task_properties(schema: DatabaseSchema) -> tuple[str | None, str | None, str | None]:
    """Pick the title, status and notes properties of a task database.

    Status: a status-kind property, overridden by one literally named "status",
    else the first select. Notes: the first rich text property.
    """
    status_property = None
    first_select = None
    for name, descriptor in schema.properties.items():
        if descriptor.kind is PropertyKind.STATUS and status_property is None:
            status_property = name
        if name.lower() == "status":
            status_property = name
        if descriptor.kind is PropertyKind.SELECT and first_select is None:
            first_select = name
    status_property = status_property or first_select

    notes = schema.first_of_kind(PropertyKind.RICH_TEXT)
    return schema.title_property, status_property, notes.name if notes else None


async def create_task(
    client: NotionClient,
    database_id: str,
    title: str,
    status: str,
    notes: str | None = None,
) -> dict:
    """Create a task page with title, status and notes, detecting property names."""
    schema = await fetch_schema(client, database_id)
    title_property, status_property, notes_property = _task_properties(schema)
    if not title_property:
        raise NoTitlePropertyError(hint="No title property found in database")

    builder = PropertyBuilder(creating=True)
    properties = {title_property: PropertyBuilder.title_payload(title)}
    status_skipped = None

    if status and status_property:
        descriptor = schema.get(status_property)
        if descriptor.kind in (PropertyKind.STATUS, PropertyKind.SELECT):
            outcome = builder.build(descriptor, status)
            if isinstance(outcome, Applied):
                properties[status_property] = outcome.payload
            else:
                logger.warning(f"Skipping status '{status}' - not found in options for {status_property}")
                status_skipped = {
                    "requested": status,
                    "property": status_property,
                    "available": descriptor.options,
                }

    if notes and notes_property:
        properties[notes_property] = {"rich_text": [{"text": {"content": notes}}]}

    page = await client.create_page(database_id, properties)
    return {
        "task_id": page["id"],
        "used_props": {
            "title": title_property,
            "status": status_property if status else None,
            "notes": notes_property if notes else None,
        },
        "status_skipped": status_skipped,
    }


async def create_probe_page(client: NotionClient, database_id: str, title: str) -> dict:
    """Create a page with nothing but a title, to check write access."""
    schema = await fetch_schema(client, database_id)
    if not schema.title_property:
        raise NoTitlePropertyError(hint="No title property found; cannot create test page")
    page = await client.create_page(database_id, {schema.title_property: PropertyBuilder.title_payload(title)})
    return {"task_id": page["id"], "used_props": {"title": schema.title_property}}
