"""Pydantic response models for the HTTP API."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ErrorDetail(BaseModel):
    """Structured error payload."""

    code: str
    message: str
    details: dict | None = None


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    error: ErrorDetail


class CalendarEventsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    events: list[dict[str, Any]]
    generated_at: str = Field(alias="generatedAt")


class GlobalIdSyncResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    ok: bool = True
    scanned: int
    assigned: int
    backfilled: int
    database_count: int = Field(alias="databaseCount")
    processed_database_ids: list[str] = Field(alias="processedDatabaseIds")
    synced_at: str = Field(alias="syncedAt")


class CreateTicketResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    global_id: str = Field(alias="globalId")
    page_id: str = Field(alias="pageId")
    page_url: str = Field(alias="pageUrl")
    database_id: str = Field(alias="databaseId")
