"""Convert loosely-typed input values into Notion property payloads.

The builder dispatches on the descriptor's ``PropertyKind`` and never raises
for malformed input. Each value ends up as one of:

- ``Applied``: the payload to send for that property
- ``Skipped``: the field is left out, with a reason the caller can act on
- ``Rejected``: the whole upsert has to stop (only an empty title on create)
"""

import math
from datetime import date, datetime
from typing import Any, Callable

from pydantic import BaseModel

from sol_gateway.notion.directory import UserIndex
from sol_gateway.notion.schema import PropertyDescriptor, PropertyKind
from sol_gateway.notion.utils import infer_file_name, is_uuid, to_dashed_uuid


class Applied(BaseModel):
    payload: dict


class Skipped(BaseModel):
    reason: str
    available: list[str] | None = None
    type: str | None = None
    detail: str | None = None

    def report(self) -> dict:
        """Entry for the ``skipped`` map of an upsert response."""
        return self.model_dump(exclude_none=True)


class Rejected(BaseModel):
    error: str


PropertyOutcome = Applied | Skipped | Rejected


def _as_list(value: Any) -> list:
    return value if isinstance(value, list) else [value]


def _match_option(value: Any, options: list[str]) -> str | None:
    """Case-insensitive option lookup, returning the option's own spelling."""
    wanted = str(value).strip().lower()
    return next((opt for opt in options if opt.lower() == wanted), None)


def _is_iso_date(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    text = value.strip()
    try:
        datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        try:
            date.fromisoformat(text)
        except ValueError:
            return False
    return True


class PropertyBuilder:
    """Builds property payloads for one upsert.

    Args:
        creating: True when the page is being created (empty titles are fatal)
        users: Workspace user index, needed only to resolve people by email
    """

    def __init__(self, creating: bool, users: UserIndex | None = None):
        self.creating = creating
        self.users = users
        self._builders: dict[PropertyKind, Callable[[PropertyDescriptor, Any], PropertyOutcome]] = {
            PropertyKind.TITLE: self._title,
            PropertyKind.RICH_TEXT: self._rich_text,
            PropertyKind.SELECT: self._select,
            PropertyKind.STATUS: self._select,
            PropertyKind.MULTI_SELECT: self._multi_select,
            PropertyKind.DATE: self._date,
            PropertyKind.NUMBER: self._number,
            PropertyKind.CHECKBOX: self._checkbox,
            PropertyKind.URL: self._plain,
            PropertyKind.EMAIL: self._plain,
            PropertyKind.PHONE_NUMBER: self._plain,
            PropertyKind.PEOPLE: self._people,
            PropertyKind.FILES: self._files,
            PropertyKind.RELATION: self._relation,
        }

    def build(self, descriptor: PropertyDescriptor | None, value: Any) -> PropertyOutcome:
        if descriptor is None:
            return Skipped(reason="unknown_property")
        builder = self._builders.get(descriptor.kind)
        if builder is None:
            return Skipped(reason="unsupported_type", type=descriptor.type_name)
        return builder(descriptor, value)

    @staticmethod
    def title_payload(value: Any) -> dict:
        return {"title": [{"text": {"content": str(value)}}]}

    def _title(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        if value is None or not str(value).strip():
            if self.creating:
                return Rejected(error="title_required")
            return Skipped(reason="empty_title")
        return Applied(payload=self.title_payload(value))

    def _rich_text(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        if value is None:
            return Applied(payload={"rich_text": []})
        return Applied(payload={"rich_text": [{"text": {"content": str(value)}}]})

    def _select(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        name = _match_option(value, descriptor.options) if value is not None else None
        if name is None:
            return Skipped(reason="unknown_option", available=descriptor.options)
        return Applied(payload={descriptor.kind.value: {"name": name}})

    def _multi_select(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        names: list[str] = []
        for item in _as_list(value):
            if item is None:
                continue
            name = _match_option(item, descriptor.options)
            if name is not None and name not in names:
                names.append(name)
        if not names:
            return Skipped(reason="unknown_option", available=descriptor.options)
        return Applied(payload={"multi_select": [{"name": name} for name in names]})

    def _date(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        if isinstance(value, str):
            if not _is_iso_date(value):
                return Skipped(reason="invalid_date", detail=value)
            return Applied(payload={"date": {"start": value.strip()}})

        if isinstance(value, dict) and _is_iso_date(value.get("start")):
            end = value.get("end")
            if end is not None and not _is_iso_date(end):
                return Skipped(reason="invalid_date", detail=str(end))
            date_value = {"start": value["start"].strip()}
            if end is not None:
                date_value["end"] = end.strip()
            time_zone = value.get("time_zone") or value.get("timezone")
            if time_zone:
                date_value["time_zone"] = str(time_zone)
            return Applied(payload={"date": date_value})

        return Skipped(reason="invalid_date")

    def _number(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        # Numeric strings are deliberately not coerced
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return Skipped(reason="invalid_number")
        if not math.isfinite(value):
            return Skipped(reason="invalid_number", detail=str(value))
        return Applied(payload={"number": value})

    def _checkbox(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        return Applied(payload={"checkbox": bool(value)})

    def _plain(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        """url, email and phone_number take a bare string; None clears them."""
        key = descriptor.kind.value
        if value is None or (isinstance(value, str) and not value.strip()):
            return Applied(payload={key: None})
        return Applied(payload={key: str(value).strip()})

    def _people(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        people = []
        dropped = []
        for item in _as_list(value):
            if not item:
                continue
            if isinstance(item, str):
                text = item.strip()
                if not text:
                    continue
                if "@" in text:
                    user = self.users.lookup_email(text) if self.users else None
                    if user:
                        people.append({"id": user["id"]})
                        continue
                elif is_uuid(text):
                    people.append({"id": to_dashed_uuid(text)})
                    continue
                dropped.append(text)
            elif isinstance(item, dict) and is_uuid(str(item.get("id") or "")):
                people.append({"id": to_dashed_uuid(str(item["id"]).strip())})
            else:
                dropped.append(str(item))
        if not people:
            return Skipped(reason="unknown_people", detail=", ".join(dropped) or None)
        return Applied(payload={"people": people})

    def _files(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        files = []
        for item in _as_list(value):
            if not item:
                continue
            url = name = None
            if isinstance(item, str):
                url = item.strip()
            elif isinstance(item, dict):
                external = item.get("external") or {}
                url = external.get("url") or item.get("url") or item.get("href")
                name = item.get("name")
            if not url:
                continue
            files.append(
                {
                    "type": "external",
                    "name": str(name)[:100] if name else infer_file_name(url),
                    "external": {"url": str(url)},
                }
            )
        if not files:
            return Skipped(reason="invalid_files")
        return Applied(payload={"files": files})

    def _relation(self, descriptor: PropertyDescriptor, value: Any) -> PropertyOutcome:
        relations = []
        dropped = []
        for item in _as_list(value):
            raw = item.get("id") if isinstance(item, dict) else item
            if raw is None or not str(raw).strip():
                continue
            text = str(raw).strip()
            # Only page ids are sent; leftover titles are dropped
            if is_uuid(text):
                relations.append({"id": to_dashed_uuid(text)})
            else:
                dropped.append(text)
        if not relations:
            return Skipped(reason="invalid_relation", detail=", ".join(dropped) or None)
        return Applied(payload={"relation": relations})
