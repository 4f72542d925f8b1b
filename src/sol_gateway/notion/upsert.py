"""Schema-adaptive create-or-update of database pages."""

import logging
from typing import Any

from sol_gateway.config import Settings
from sol_gateway.exceptions import (
    NoTitlePropertyError,
    NotionAPIError,
    RelationUnresolvedError,
    TitleRequiredError,
)
from sol_gateway.models import UpsertResult
from sol_gateway.notion.blocks import build_blocks
from sol_gateway.notion.client import NotionClient
from sol_gateway.notion.directory import PeopleDirectory, UserIndex
from sol_gateway.notion.properties import Applied, PropertyBuilder, Rejected, Skipped
from sol_gateway.notion.resolver import TitleResolver
from sol_gateway.notion.schema import DatabaseSchema, PropertyKind, fetch_schema
from sol_gateway.notion.utils import is_uuid, normalize_id

logger = logging.getLogger(__name__)

# Relation properties without a target database id, recognised by name
ROADMAP_RELATION_NAMES = {"roadmap"}
TASK_RELATION_NAMES = {"parent task", "parent", "sub tasks", "subtasks", "children"}


class PageUpserter:
    """Creates or updates one page per call.

    Steps, all sequential:
    1. Fetch the database schema
    2. Resolve relation titles (roadmap and task relations only)
    3. Stop if any relation title is still unresolved
    4. Build every property, collecting skips
    5. Stop if a page would be created without a title
    6. Create (POST) or update (PATCH) the page
    7. Append content blocks, if any
    """

    def __init__(self, client: NotionClient, settings: Settings, directory: PeopleDirectory):
        self.client = client
        self.settings = settings
        self.directory = directory

    def _relation_targets(self, schema: DatabaseSchema) -> dict[str, str]:
        """Relation properties whose titles can be resolved, mapped to the database to search."""
        roadmap_db = self.settings.roadmap_database_id
        tasks_db = self.settings.tasks_database_id
        targets: dict[str, str] = {}

        for name, descriptor in schema.properties.items():
            if descriptor.kind is not PropertyKind.RELATION:
                continue
            target = descriptor.relation_database_id
            if not target:
                lowered = name.lower()
                if lowered in ROADMAP_RELATION_NAMES and roadmap_db:
                    target = roadmap_db
                elif lowered in TASK_RELATION_NAMES and tasks_db:
                    target = tasks_db
            if not target:
                continue

            if roadmap_db and normalize_id(target) == normalize_id(roadmap_db):
                targets[name] = roadmap_db
            elif tasks_db and normalize_id(target) == normalize_id(tasks_db):
                targets[name] = tasks_db

        return targets

    async def _resolve_relation_value(self, resolver: TitleResolver, database_id: str, value: Any) -> Any:
        """Replace title strings with page ids; unresolved titles stay as strings."""
        if isinstance(value, str):
            if is_uuid(value):
                return value
            page_id = await resolver.resolve(database_id, value)
            return [page_id] if page_id else value

        if isinstance(value, list):
            resolved = []
            for item in value:
                if isinstance(item, str) and not is_uuid(item):
                    resolved.append(await resolver.resolve(database_id, item) or item)
                elif isinstance(item, dict) and item.get("id"):
                    resolved.append(str(item["id"]))
                else:
                    resolved.append(item)
            return resolved

        return value

    async def normalize_relations(
        self,
        schema: DatabaseSchema,
        fields: dict[str, Any],
        resolver: TitleResolver,
    ) -> tuple[dict[str, Any], list[str]]:
        """Resolve relation titles in ``fields``.

        Returns the normalized fields and the names of fields that changed.
        Raises RelationUnresolvedError when any title could not be resolved.
        """
        targets = self._relation_targets(schema)
        normalized = dict(fields)
        unresolved: list[dict[str, Any]] = []
        unresolved_db: str | None = None

        for name, value in fields.items():
            database_id = targets.get(name)
            if not database_id:
                continue
            normalized[name] = await self._resolve_relation_value(resolver, database_id, value)

            values = normalized[name] if isinstance(normalized[name], list) else [normalized[name]]
            if any(isinstance(v, str) and not is_uuid(v) for v in values):
                unresolved.append({"property": name, "value": value})
                unresolved_db = unresolved_db or database_id

        if unresolved:
            logger.warning(f"Unresolved relation titles: {unresolved}")
            try:
                suggestions = await resolver.sample_titles(unresolved_db)
            except NotionAPIError as e:
                logger.warning(f"Could not load title suggestions from {unresolved_db}: {e}")
                suggestions = None
            raise RelationUnresolvedError(unresolved, suggestions)

        changed = [name for name in normalized if normalized[name] != fields[name]]
        return normalized, changed

    async def _load_users(self, schema: DatabaseSchema, fields: dict[str, Any]) -> UserIndex | None:
        """Load the people directory, only if some people field names an email."""
        needs_users = False
        for name, value in fields.items():
            descriptor = schema.get(name)
            if descriptor is None or descriptor.kind is not PropertyKind.PEOPLE:
                continue
            items = value if isinstance(value, list) else [value]
            if any(isinstance(item, str) and "@" in item for item in items):
                needs_users = True
                break
        if not needs_users:
            return None

        try:
            return await self.directory.get(self.client)
        except NotionAPIError as e:
            logger.warning(f"Could not list workspace users, people emails will be skipped: {e}")
            return None

    async def upsert(
        self,
        database_id: str,
        fields: dict[str, Any],
        page_id: str | None = None,
        title: Any = None,
        content: dict | None = None,
    ) -> UpsertResult:
        creating = not page_id
        mode = "create" if creating else "update"
        logger.info(f"Upsert ({mode}) into {database_id} with fields {list(fields)}")

        schema = await fetch_schema(self.client, database_id)
        if creating and not schema.title_property:
            raise NoTitlePropertyError(hint="No title property found in database; cannot create a page.")

        resolver = TitleResolver(self.client)
        normalized, relation_normalized = await self.normalize_relations(schema, fields, resolver)

        title_property = schema.title_property
        has_title = title is not None and str(title).strip() != ""

        builder = PropertyBuilder(creating=creating, users=await self._load_users(schema, normalized))
        properties: dict[str, dict] = {}
        skipped: dict[str, dict] = {}
        for name, value in normalized.items():
            outcome = builder.build(schema.get(name), value)
            if isinstance(outcome, Rejected):
                if has_title and name == title_property:
                    # An empty title field falls back to the request's title
                    continue
                raise TitleRequiredError(error=outcome.error, field=name)
            if isinstance(outcome, Skipped):
                logger.info(f"  Skipping '{name}': {outcome.reason}")
                skipped[name] = outcome.report()
                continue
            if isinstance(outcome, Applied):
                properties[name] = outcome.payload

        if creating and not has_title and title_property not in properties:
            raise TitleRequiredError(
                error="title_required_on_create",
                hint=(
                    f"Provide 'title' or set the '{title_property}' property "
                    "inside 'fields' (or 'properties')."
                ),
            )
        if has_title and title_property and title_property not in properties:
            properties[title_property] = PropertyBuilder.title_payload(title)

        if creating:
            page = await self.client.create_page(database_id, properties)
        else:
            page = await self.client.update_page(page_id, properties)
        result_id = page.get("id") or page_id
        logger.info(f"  {mode.capitalize()}d page {result_id}")

        result = UpsertResult(
            mode=mode,
            database_id=database_id,
            page_id=result_id,
            skipped=skipped or None,
            relation_normalized=relation_normalized or None,
        )

        blocks = build_blocks(content)
        if blocks:
            try:
                await self.client.append_block_children(result_id, blocks)
                logger.info(f"  Appended {len(blocks)} blocks to {result_id}")
                result.content_ok = True
                result.content_appended = len(blocks)
            except NotionAPIError as e:
                # The page write already happened; report it and the failed append
                logger.error(f"  Content append to {result_id} failed: {e}")
                result.content_ok = False
                result.content_error = e.details

        return result
