"""Builders for Notion property write payloads."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def _text_items(content: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": content}}]


def title_payload(content: str) -> dict[str, Any]:
    return {"title": _text_items(content)}


def rich_text_payload(content: str) -> dict[str, Any]:
    return {"rich_text": _text_items(content)}


def select_payload(name: str) -> dict[str, Any]:
    return {"select": {"name": name}}


def people_payload(ids: Iterable[str]) -> dict[str, Any]:
    return {"people": [{"id": person_id} for person_id in ids]}


def relation_payload(ids: Iterable[str]) -> dict[str, Any]:
    return {"relation": [{"id": page_id} for page_id in ids]}


def date_payload(start: str, end: str | None = None) -> dict[str, Any]:
    return {"date": {"start": start, "end": end}}
