"""Async Notion REST client.

Covers the four calls this project needs: paginated database query, database
schema retrieval, page update, and page creation. Read failures raise
:class:`UpstreamQueryError`; write failures raise :class:`UpstreamWriteError`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from notion_calendar.errors import NotionRequestError, UpstreamQueryError, UpstreamWriteError
from notion_calendar.notion.models import DatabaseSchema, NotionPage

logger = logging.getLogger(__name__)

NOTION_API_BASE_URL = "https://api.notion.com/v1"
NOTION_API_VERSION = "2022-06-28"
DEFAULT_PAGE_SIZE = 100

# Retry on 429 Too Many Requests and 503 Service Unavailable with exponential backoff.
RATE_LIMIT_RETRY_STATUS_CODES = {429, 503}
RATE_LIMIT_MAX_RETRIES = 3
RATE_LIMIT_BASE_BACKOFF_SECONDS = 1.0

_MAX_ERROR_MESSAGE_LENGTH = 200


def _safe_notion_error_message(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        payload = None

    if isinstance(payload, dict):
        message = payload.get("message")
        if isinstance(message, str) and message.strip():
            return " ".join(message.split())[:_MAX_ERROR_MESSAGE_LENGTH]
        code = payload.get("code")
        if isinstance(code, str) and code.strip():
            return code.strip()[:_MAX_ERROR_MESSAGE_LENGTH]

    raw_text = response.text.strip()
    if raw_text:
        return " ".join(raw_text.split())[:_MAX_ERROR_MESSAGE_LENGTH]
    return "Request failed without an error payload"


class NotionClient:
    """Bearer-token Notion client over a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        token: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        base_url: str = NOTION_API_BASE_URL,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        if not token or not token.strip():
            raise ValueError("token must be a non-empty string")
        self._token = token.strip()
        self._base_url = base_url.rstrip("/")
        self._page_size = max(1, min(int(page_size), DEFAULT_PAGE_SIZE))
        self._owns_http_client = http_client is None
        self._http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(30.0, connect=10.0)
        )

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> NotionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # -- Reads ----------------------------------------------------------------

    async def query_database(self, database_id: str) -> list[NotionPage]:
        """Return every page of *database_id*, following pagination cursors.

        Pages are requested one after another; each continuation cursor is
        only known once the previous response arrives.
        """
        pages: list[NotionPage] = []
        cursor: str | None = None
        round_trips = 0

        while True:
            body: dict[str, Any] = {"page_size": self._page_size}
            if cursor is not None:
                body["start_cursor"] = cursor
            payload = await self._request_json(
                "POST",
                f"/databases/{database_id}/query",
                json_body=body,
                error_cls=UpstreamQueryError,
            )
            round_trips += 1

            results = payload.get("results")
            if not isinstance(results, list):
                raise UpstreamQueryError(
                    status_code=200,
                    message="Notion query response missing results array",
                )
            for raw in results:
                page = NotionPage.from_api(raw)
                if page is not None:
                    pages.append(page)

            next_cursor = payload.get("next_cursor")
            if payload.get("has_more") and isinstance(next_cursor, str) and next_cursor:
                cursor = next_cursor
                continue
            break

        logger.debug(
            "Queried Notion database %s: %d page(s) in %d request(s)",
            database_id,
            len(pages),
            round_trips,
        )
        return pages

    async def retrieve_database(self, database_id: str) -> DatabaseSchema:
        payload = await self._request_json(
            "GET",
            f"/databases/{database_id}",
            error_cls=UpstreamQueryError,
        )
        return DatabaseSchema.from_api(database_id, payload)

    # -- Writes ---------------------------------------------------------------

    async def update_page(self, page_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        return await self._request_json(
            "PATCH",
            f"/pages/{page_id}",
            json_body={"properties": properties},
            error_cls=UpstreamWriteError,
        )

    async def create_page(self, database_id: str, properties: dict[str, Any]) -> dict[str, Any]:
        payload = await self._request_json(
            "POST",
            "/pages",
            json_body={"parent": {"database_id": database_id}, "properties": properties},
            error_cls=UpstreamWriteError,
        )
        if not isinstance(payload.get("id"), str):
            raise UpstreamWriteError(
                status_code=200,
                message="Notion create response missing page id",
            )
        return payload

    # -- Transport ------------------------------------------------------------

    async def _request_json(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[NotionRequestError],
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        response = await self._request_with_retry(method, path, json_body, error_cls)

        if response.status_code < 200 or response.status_code >= 300:
            raise error_cls(
                status_code=response.status_code,
                message=_safe_notion_error_message(response),
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise error_cls(
                status_code=response.status_code,
                message="Notion API returned invalid JSON for a successful response",
            ) from exc

        if not isinstance(payload, dict):
            raise error_cls(
                status_code=response.status_code,
                message="Notion API returned an unexpected JSON payload shape",
            )
        return payload

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None,
        error_cls: type[NotionRequestError],
    ) -> httpx.Response:
        response = await self._request_once(method, path, json_body, error_cls)

        # Honour Retry-After on 429, exponential backoff otherwise.
        retry = 0
        while (
            response.status_code in RATE_LIMIT_RETRY_STATUS_CODES and retry < RATE_LIMIT_MAX_RETRIES
        ):
            backoff = RATE_LIMIT_BASE_BACKOFF_SECONDS * (2**retry)
            if response.status_code == 429:
                retry_after_header = response.headers.get("Retry-After")
                if retry_after_header is not None:
                    try:
                        backoff = float(retry_after_header)
                    except ValueError:
                        pass
            logger.warning(
                "Notion API rate-limited (status=%d), retrying in %.1fs (attempt %d/%d)",
                response.status_code,
                backoff,
                retry + 1,
                RATE_LIMIT_MAX_RETRIES,
            )
            await asyncio.sleep(backoff)
            response = await self._request_once(method, path, json_body, error_cls)
            retry += 1

        return response

    async def _request_once(
        self,
        method: str,
        path: str,
        json_body: dict[str, Any] | None,
        error_cls: type[NotionRequestError],
    ) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Notion-Version": NOTION_API_VERSION,
            "Accept": "application/json",
        }
        try:
            return await self._http_client.request(
                method,
                f"{self._base_url}{path}",
                json=json_body,
                headers=headers,
            )
        except httpx.HTTPError as exc:
            raise error_cls(status_code=0, message=f"transport error: {exc}") from exc
