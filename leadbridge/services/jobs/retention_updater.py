"""Copy transaction totals onto the retention boards.

For every client on a retention board (outside the excluded groups) the
backend reports deposit and withdrawal totals since the last check. The four
totals columns are updated and, when money moved, an entry is added to the
board's transaction log board. The time of each board's check is kept in
``sync_state.json``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Sequence

from leadbridge.domain.models import iso_utcnow
from leadbridge.infrastructure.http import BackendClient, BoardClient, BoardItem
from leadbridge.infrastructure.persistence import JsonDocument

from .base import BoardJob, JobResult

EXCLUDED_GROUPS = frozenset(
    {
        "Fresh clients",
        "No Answer",
        "Client Incative/Don't want contact/Dead Lead/Never Answered",
    }
)

TOTALS_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Total Deposit", "totalDeposit"),
    ("Total WD", "totalWD"),
    ("Total Deposit Declined", "totalDepositDeclined"),
    ("Total WD Declined", "totalWDDeclined"),
)

EPOCH_ISO = "1970-01-01T00:00:00Z"


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


class RetentionUpdaterJob(BoardJob):
    name = "retention-updater"

    def __init__(
        self,
        board: BoardClient,
        backend: BackendClient,
        boards: Sequence[Mapping[str, Any]],
        *,
        state_path: str | Path,
    ) -> None:
        super().__init__(board, backend, boards)
        self.state = JsonDocument(state_path, default={})

    def client_since(
        self, item: BoardItem, retention_col: str | None, last_check: str | None
    ) -> str:
        if last_check:
            return last_check
        assigned = item.text(retention_col)
        if assigned:
            return f"{assigned}T00:00:00Z"
        return EPOCH_ISO

    def process_board(self, config: Mapping[str, Any], result: JobResult) -> None:
        name = config["name"]
        board_id = config["boardId"]
        transaction_board_id = config.get("transactionBoardId")

        board = self.board.get_board_state(board_id)
        columns = board.column_ids()
        tx_columns = (
            {c.title: c.id for c in self.board.get_columns(transaction_board_id)}
            if transaction_board_id
            else {}
        )

        state = self.state.load() or {}
        last_check = (state.get(name) or {}).get("lastCheck")
        self._logger.info("Last check for %s: %s", name, last_check or "never")
        now = iso_utcnow()

        crm_col = columns.get("CRM Login")
        retention_col = columns.get("Retention Assigned")
        clients = []
        for item in board.items:
            if item.group_title in EXCLUDED_GROUPS:
                continue
            crm_login = (item.text(crm_col) or "").strip()
            if not crm_login.isdigit():
                continue
            clients.append(
                {
                    "crm_id": int(crm_login),
                    "since": self.client_since(item, retention_col, last_check),
                }
            )

        if clients:
            totals = self.backend.transaction_totals(clients)
        else:
            self._logger.info("No clients to process")
            totals = []
        totals_by_user = {}
        for entry in totals:
            try:
                totals_by_user[int(entry.get("userId"))] = entry
            except (TypeError, ValueError):
                continue

        for item in board.items:
            crm_login = (item.text(crm_col) or "").strip()
            if not crm_login.isdigit():
                continue
            user_totals = totals_by_user.get(int(crm_login))
            if user_totals is None:
                continue
            try:
                self._apply_totals(board_id, item, columns, user_totals)
                if transaction_board_id and (
                    _as_float(user_totals.get("totalDeposit")) > 0
                    or _as_float(user_totals.get("totalWD")) > 0
                ):
                    self._log_transaction(transaction_board_id, item, tx_columns, user_totals)
                    self._created(result)
            except Exception as exc:
                self._logger.error("Failed to update CRM %s: %s", crm_login, exc)
                self._failed(result)
                continue
            self._updated(result)

        state[name] = {"lastCheck": now}
        self.state.save(state)
        self._logger.info("Sync complete for %s. Next check will be after %s", name, now)

    def _apply_totals(
        self,
        board_id: Any,
        item: BoardItem,
        columns: Mapping[str, str],
        user_totals: Mapping[str, Any],
    ) -> None:
        for title, key in TOTALS_COLUMNS:
            column_id = columns.get(title)
            if column_id is None:
                continue
            self.board.change_column_value(
                board_id, item.id, column_id, user_totals.get(key, 0)
            )

    def _log_transaction(
        self,
        board_id: Any,
        item: BoardItem,
        columns: Mapping[str, str],
        user_totals: Mapping[str, Any],
    ) -> None:
        today = datetime.now(timezone.utc).date().isoformat()
        values = {
            "Login CRM": str(user_totals.get("userId")),
            "Deposit Amount": f"{_as_float(user_totals.get('totalDeposit')):.2f}",
            "Withdrawal Amount": f"{_as_float(user_totals.get('totalWD')):.2f}",
            "Transaction Date": {"date": today},
        }
        column_values = {
            columns[title]: value for title, value in values.items() if title in columns
        }
        self.board.create_item(board_id, item.name, column_values)


__all__ = ["EXCLUDED_GROUPS", "RetentionUpdaterJob"]
