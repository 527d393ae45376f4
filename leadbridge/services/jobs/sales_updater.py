"""Write first-deposit amounts onto the sales boards."""

from __future__ import annotations

from typing import Any, Mapping

from .base import BoardJob, JobResult, numeric_ids


class SalesUpdaterJob(BoardJob):
    name = "sales-updater"

    def process_board(self, config: Mapping[str, Any], result: JobResult) -> None:
        board_id = config["boardId"]
        state = self.board.get_board_state(board_id)

        crm_col = state.column_named("crm login")
        ftd_col = state.column_named("ftd amount/challenge")
        if crm_col is None or ftd_col is None:
            self._logger.error("Missing columns in board %s", board_id)
            return

        items = state.items_by_column(crm_col.id)
        crm_ids = numeric_ids(items)
        if not crm_ids:
            return

        for tx in self.backend.transactions_by_user_ids(crm_ids):
            user = (tx or {}).get("user") or {}
            if not user.get("id"):
                continue
            item = items.get(str(user["id"]))
            if item is None:
                continue
            amount = tx.get("amount") or 0
            try:
                self.board.change_column_value(board_id, item.id, ftd_col.id, amount)
            except Exception as exc:
                self._logger.error("Failed to update CRM ID %s: %s", user["id"], exc)
                self._failed(result)
                continue
            self._updated(result)
            self._logger.info(
                "Updated CRM ID %s in board %s with FTD amount %s",
                user["id"],
                board_id,
                amount,
            )


__all__ = ["SalesUpdaterJob"]
