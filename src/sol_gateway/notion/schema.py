"""Live introspection of Notion database property schemas."""

import logging
from enum import Enum

from pydantic import BaseModel, Field

from sol_gateway.notion.client import NotionClient

logger = logging.getLogger(__name__)


class PropertyKind(str, Enum):
    """Property kinds the gateway knows how to write."""

    TITLE = "title"
    RICH_TEXT = "rich_text"
    SELECT = "select"
    MULTI_SELECT = "multi_select"
    STATUS = "status"
    DATE = "date"
    NUMBER = "number"
    CHECKBOX = "checkbox"
    URL = "url"
    EMAIL = "email"
    PHONE_NUMBER = "phone_number"
    PEOPLE = "people"
    FILES = "files"
    RELATION = "relation"
    UNSUPPORTED = "unsupported"

    @classmethod
    def parse(cls, type_name: str | None) -> "PropertyKind":
        try:
            kind = cls(type_name)
        except ValueError:
            return cls.UNSUPPORTED
        return kind


OPTION_KINDS = {PropertyKind.SELECT, PropertyKind.MULTI_SELECT, PropertyKind.STATUS}


class PropertyDescriptor(BaseModel):
    """Schema metadata for one database property."""

    name: str
    kind: PropertyKind
    type_name: str = Field(description="Raw Notion type, kept for unsupported kinds")
    options: list[str] = Field(default_factory=list)
    relation_database_id: str | None = None

    @classmethod
    def from_notion(cls, name: str, definition: dict) -> "PropertyDescriptor":
        """Parse one entry of a database's ``properties`` object.

        Expected definition structure:
        {
            "id": "abc",
            "type": "select",
            "select": {"options": [{"name": "Open", "color": "green"}]},
        }
        """
        type_name = definition.get("type") or "unknown"
        kind = PropertyKind.parse(type_name)
        config = definition.get(type_name) or {}

        options = []
        if kind in OPTION_KINDS:
            options = [opt.get("name") for opt in config.get("options", []) if opt.get("name")]

        relation_database_id = config.get("database_id") if kind is PropertyKind.RELATION else None

        return cls(
            name=name,
            kind=kind,
            type_name=type_name,
            options=options,
            relation_database_id=relation_database_id,
        )

    def summary(self) -> dict:
        """Compact ``{type, options?}`` view for diagnostics."""
        base: dict = {"type": self.type_name}
        if self.kind in (PropertyKind.SELECT, PropertyKind.STATUS):
            base["options"] = self.options
        return base


class DatabaseSchema(BaseModel):
    """Property schema of a database at the time it was fetched."""

    database_id: str
    title: str = ""
    title_property: str | None = None
    properties: dict[str, PropertyDescriptor] = Field(default_factory=dict)
    raw_properties: dict = Field(default_factory=dict)

    @classmethod
    def from_notion(cls, database: dict) -> "DatabaseSchema":
        raw = database.get("properties") or {}
        properties = {name: PropertyDescriptor.from_notion(name, d) for name, d in raw.items()}
        title_property = next(
            (name for name, d in properties.items() if d.kind is PropertyKind.TITLE),
            None,
        )
        title = "".join(part.get("plain_text", "") for part in database.get("title") or [])
        return cls(
            database_id=database.get("id", ""),
            title=title,
            title_property=title_property,
            properties=properties,
            raw_properties=raw,
        )

    def get(self, name: str) -> PropertyDescriptor | None:
        return self.properties.get(name)

    def first_of_kind(self, kind: PropertyKind) -> PropertyDescriptor | None:
        return next((d for d in self.properties.values() if d.kind is kind), None)


async def fetch_schema(client: NotionClient, database_id: str) -> DatabaseSchema:
    """Fetch a database's current property schema.

    Never cached: option lists are validated against what Notion has right now.
    """
    database = await client.get_database(database_id)
    schema = DatabaseSchema.from_notion(database)
    if not schema.database_id:
        schema.database_id = database_id
    logger.debug(f"Fetched schema for {database_id}: {len(schema.properties)} properties")
    return schema
