"""Typed views over Notion pages, property values, and database schemas.

Notion returns every property as ``{"type": <tag>, <tag>: <payload>}``. The
parsers here turn that into a small tagged union and fail closed: any
property whose tag is unknown or whose payload is malformed becomes an
:class:`UnsupportedValue` instead of raising.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from notion_calendar.errors import NotionSchemaError


class TitleValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["title"] = "title"
    segments: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "".join(self.segments).strip()


class RichTextValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["rich_text"] = "rich_text"
    segments: tuple[str, ...] = ()

    @property
    def text(self) -> str:
        return "".join(self.segments).strip()


class DateValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["date"] = "date"
    start: str | None = None
    end: str | None = None


class SelectValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["select"] = "select"
    name: str | None = None


class PeopleValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["people"] = "people"
    ids: tuple[str, ...] = ()


class RelationValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["relation"] = "relation"
    ids: tuple[str, ...] = ()


class UnsupportedValue(BaseModel):
    """Any property type outside the supported set, or a malformed payload."""

    model_config = ConfigDict(frozen=True)

    type: str = "unsupported"


PropertyValue = (
    TitleValue
    | RichTextValue
    | DateValue
    | SelectValue
    | PeopleValue
    | RelationValue
    | UnsupportedValue
)


def _plain_text_segments(items: Any) -> tuple[str, ...] | None:
    if not isinstance(items, list):
        return None
    segments: list[str] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        text = item.get("plain_text")
        if not isinstance(text, str):
            # Write payloads carry text under text.content instead of plain_text.
            inner = item.get("text")
            text = inner.get("content") if isinstance(inner, dict) else None
        if isinstance(text, str):
            segments.append(text)
    return tuple(segments)


def _id_list(items: Any) -> tuple[str, ...] | None:
    if not isinstance(items, list):
        return None
    return tuple(
        item["id"] for item in items if isinstance(item, dict) and isinstance(item.get("id"), str)
    )


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def parse_property(raw: Any) -> PropertyValue:
    """Parse one raw Notion property value into the tagged union."""
    if not isinstance(raw, dict):
        return UnsupportedValue()
    tag = raw.get("type")
    if not isinstance(tag, str):
        return UnsupportedValue()
    payload = raw.get(tag)

    if tag in ("title", "rich_text"):
        segments = _plain_text_segments(payload)
        if segments is None:
            return UnsupportedValue(type=tag)
        if tag == "title":
            return TitleValue(segments=segments)
        return RichTextValue(segments=segments)
    if tag == "date":
        # A cleared date property comes back as {"type": "date", "date": null}.
        if payload is None:
            return DateValue()
        if not isinstance(payload, dict):
            return UnsupportedValue(type=tag)
        return DateValue(
            start=_optional_str(payload.get("start")),
            end=_optional_str(payload.get("end")),
        )
    if tag == "select":
        if payload is None:
            return SelectValue()
        if not isinstance(payload, dict):
            return UnsupportedValue(type=tag)
        return SelectValue(name=_optional_str(payload.get("name")))
    if tag in ("people", "relation"):
        ids = _id_list(payload)
        if ids is None:
            return UnsupportedValue(type=tag)
        if tag == "people":
            return PeopleValue(ids=ids)
        return RelationValue(ids=ids)
    return UnsupportedValue(type=tag)


class NotionPage(BaseModel):
    """One database record: identifier, permalink, and typed property bag."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str = ""
    properties: dict[str, PropertyValue] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, raw: Any) -> NotionPage | None:
        """Build a page from a query result item, or None if it is not a page."""
        if not isinstance(raw, dict):
            return None
        page_id = raw.get("id")
        properties = raw.get("properties")
        if not isinstance(page_id, str) or not isinstance(properties, dict):
            return None
        url = raw.get("url")
        return cls(
            id=page_id,
            url=url if isinstance(url, str) else "",
            properties={str(name): parse_property(value) for name, value in properties.items()},
        )


class SchemaProperty(BaseModel):
    """A property declared on a database, with its select options if any."""

    model_config = ConfigDict(frozen=True)

    type: str
    options: tuple[str, ...] = ()


class DatabaseSchema(BaseModel):
    """Ordered property declarations of one Notion database."""

    model_config = ConfigDict(frozen=True)

    id: str
    properties: dict[str, SchemaProperty] = Field(default_factory=dict)

    @classmethod
    def from_api(cls, database_id: str, raw: Any) -> DatabaseSchema:
        raw_properties = raw.get("properties") if isinstance(raw, dict) else None
        properties: dict[str, SchemaProperty] = {}
        if isinstance(raw_properties, dict):
            for name, declared in raw_properties.items():
                if not isinstance(declared, dict) or not isinstance(declared.get("type"), str):
                    continue
                prop_type = declared["type"]
                options: tuple[str, ...] = ()
                if prop_type == "select":
                    select = declared.get("select")
                    raw_options = select.get("options") if isinstance(select, dict) else None
                    if isinstance(raw_options, list):
                        options = tuple(
                            option["name"]
                            for option in raw_options
                            if isinstance(option, dict) and isinstance(option.get("name"), str)
                        )
                properties[str(name)] = SchemaProperty(type=prop_type, options=options)
        return cls(id=database_id, properties=properties)

    def has(self, name: str, prop_type: str) -> bool:
        """True when *name* exists and is declared with *prop_type*."""
        declared = self.properties.get(name)
        return declared is not None and declared.type == prop_type

    def title_property(self) -> str:
        """Return the name of the database's title property."""
        for name, declared in self.properties.items():
            if declared.type == "title":
                return name
        raise NotionSchemaError(f"Database {self.id} does not have a title property.")

    def first_existing(self, candidates: Iterable[str]) -> str | None:
        """Return the first candidate name declared on the database."""
        for candidate in candidates:
            if candidate in self.properties:
                return candidate
        return None

    def first_of_type(self, candidates: Iterable[str], prop_type: str) -> str | None:
        """Return the first candidate declared with *prop_type*."""
        for candidate in candidates:
            if self.has(candidate, prop_type):
                return candidate
        return None

    def select_allows(self, name: str, option: str) -> bool:
        """True when *name* is a select property offering *option*."""
        declared = self.properties.get(name)
        return declared is not None and declared.type == "select" and option in declared.options
