"""GraphQL client for the work-management board API.

The board jobs only need a handful of operations: read a board's columns and
all of its items (paginated), create an item and change column values. Board
contents are returned as :class:`BoardState` so the jobs can look up columns by
title and items by the value of their CRM login column.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping

import requests
from requests import Session

from leadbridge.infrastructure.observability import get_logger

from .errors import BoardAPIError, UpstreamError

logger = get_logger(__name__)

BOARD_STATE_QUERY = """
query ($boardId: [ID!], $cursor: String) {
  boards(ids: $boardId) {
    columns { id title type settings_str }
    items_page(limit: 500, cursor: $cursor) {
      cursor
      items {
        id
        name
        group { id title }
        column_values { id text value }
      }
    }
  }
}
"""

BOARD_COLUMNS_QUERY = """
query ($boardId: [ID!]) {
  boards(ids: $boardId) { columns { id title type settings_str } }
}
"""

CREATE_ITEM_MUTATION = """
mutation ($boardId: ID!, $itemName: String!, $columnValues: JSON!) {
  create_item(board_id: $boardId, item_name: $itemName, column_values: $columnValues) { id }
}
"""

CHANGE_COLUMN_VALUE_MUTATION = """
mutation ($boardId: ID!, $itemId: ID!, $columnId: String!, $value: JSON!) {
  change_column_value(board_id: $boardId, item_id: $itemId, column_id: $columnId, value: $value) { id }
}
"""

CHANGE_MULTIPLE_COLUMN_VALUES_MUTATION = """
mutation ($boardId: ID!, $itemId: ID!, $columnValues: JSON!) {
  change_multiple_column_values(board_id: $boardId, item_id: $itemId, column_values: $columnValues) { id }
}
"""


@dataclass
class BoardColumn:
    id: str
    title: str
    type: str | None = None
    settings_str: str | None = None


@dataclass
class BoardItem:
    id: str
    name: str
    column_values: list[dict[str, Any]] = field(default_factory=list)
    group_title: str | None = None

    def text(self, column_id: str | None) -> str | None:
        if column_id is None:
            return None
        for value in self.column_values:
            if value.get("id") == column_id:
                return value.get("text")
        return None


@dataclass
class BoardState:
    board_id: str
    columns: list[BoardColumn] = field(default_factory=list)
    items: list[BoardItem] = field(default_factory=list)

    def column(self, title: str) -> BoardColumn | None:
        """Column whose title matches exactly."""
        return next((c for c in self.columns if c.title == title), None)

    def column_named(self, title: str) -> BoardColumn | None:
        """Column whose title matches ignoring case and surrounding spaces."""
        wanted = title.strip().lower()
        return next(
            (c for c in self.columns if c.title.strip().lower() == wanted), None
        )

    def column_containing(self, fragment: str) -> BoardColumn | None:
        """First column whose lowercased title contains ``fragment``."""
        needle = fragment.lower()
        return next((c for c in self.columns if needle in c.title.lower()), None)

    def column_ids(self) -> dict[str, str]:
        return {c.title: c.id for c in self.columns}

    def items_by_column(self, column_id: str) -> dict[str, BoardItem]:
        """Map each non-empty value of ``column_id`` to its item (last one wins)."""
        mapping: dict[str, BoardItem] = {}
        for item in self.items:
            key = item.text(column_id)
            if key:
                mapping[key] = item
        return mapping


def _column(raw: Mapping[str, Any]) -> BoardColumn:
    return BoardColumn(
        id=raw["id"],
        title=raw.get("title") or "",
        type=raw.get("type"),
        settings_str=raw.get("settings_str"),
    )


class BoardClient:
    """Minimal GraphQL client authenticated with the account token."""

    def __init__(
        self,
        token: str | None,
        *,
        api_url: str = "https://api.monday.com/v2",
        session: Session | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_url = api_url
        self._token = token or ""
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(
        self, query: str, variables: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run a GraphQL document and return its ``data``.

        Raises:
            BoardAPIError: If the response carries GraphQL ``errors``.
            UpstreamError: On transport or HTTP failures.
        """
        headers = {"Authorization": self._token, "Content-Type": "application/json"}
        body = {"query": query, "variables": dict(variables or {})}
        try:
            response = self.session.post(
                self.api_url, json=body, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.error("Board request failed (network error): %s", exc)
            raise UpstreamError(f"Board request failed: {exc}") from exc
        if response.status_code >= 400:
            logger.error(
                "Board API HTTP error %s: %s", response.status_code, response.text[:200]
            )
            raise UpstreamError(
                f"Board API returned HTTP {response.status_code}",
                status=response.status_code,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError("Board API returned invalid JSON") from exc
        if payload.get("errors"):
            raise BoardAPIError(json.dumps(payload["errors"]), payload["errors"])
        return payload.get("data") or {}

    def get_board_state(self, board_id: str | int) -> BoardState:
        """Fetch columns and every item of a board, following page cursors."""
        state = BoardState(board_id=str(board_id))
        cursor: str | None = None
        while True:
            data = self.request(
                BOARD_STATE_QUERY, {"boardId": [str(board_id)], "cursor": cursor}
            )
            boards = data.get("boards") or []
            if not boards:
                raise BoardAPIError(f"Board {board_id} not found")
            board = boards[0]
            state.columns = [_column(c) for c in board.get("columns") or []]
            page = board.get("items_page") or {}
            for raw in page.get("items") or []:
                group = raw.get("group") or {}
                state.items.append(
                    BoardItem(
                        id=str(raw["id"]),
                        name=raw.get("name") or "",
                        column_values=raw.get("column_values") or [],
                        group_title=group.get("title"),
                    )
                )
            cursor = page.get("cursor")
            if not cursor:
                return state

    def get_columns(self, board_id: str | int) -> list[BoardColumn]:
        data = self.request(BOARD_COLUMNS_QUERY, {"boardId": [str(board_id)]})
        boards = data.get("boards") or []
        if not boards:
            raise BoardAPIError(f"Board {board_id} not found")
        return [_column(c) for c in boards[0].get("columns") or []]

    def create_item(
        self, board_id: str | int, item_name: str, column_values: Mapping[str, Any]
    ) -> str | None:
        data = self.request(
            CREATE_ITEM_MUTATION,
            {
                "boardId": str(board_id),
                "itemName": item_name,
                "columnValues": json.dumps(dict(column_values)),
            },
        )
        created = data.get("create_item") or {}
        return created.get("id")

    def change_column_value(
        self, board_id: str | int, item_id: str | int, column_id: str, value: Any
    ) -> None:
        """Set a simple column; the value is sent as a JSON-encoded string."""
        self.request(
            CHANGE_COLUMN_VALUE_MUTATION,
            {
                "boardId": str(board_id),
                "itemId": str(item_id),
                "columnId": column_id,
                "value": json.dumps(str(value)),
            },
        )

    def change_multiple_column_values(
        self, board_id: str | int, item_id: str | int, values: Mapping[str, Any]
    ) -> None:
        self.request(
            CHANGE_MULTIPLE_COLUMN_VALUES_MUTATION,
            {
                "boardId": str(board_id),
                "itemId": str(item_id),
                "columnValues": json.dumps(dict(values)),
            },
        )


__all__ = [
    "BoardClient",
    "BoardColumn",
    "BoardItem",
    "BoardState",
]
