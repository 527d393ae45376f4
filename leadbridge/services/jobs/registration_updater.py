"""Refresh KYC, overall status and deposit columns on the registration boards."""

from __future__ import annotations

from typing import Any, Mapping

from leadbridge.domain.models import kyc_percent_index, overall_status_index
from leadbridge.infrastructure.http import BoardState

from .base import BoardJob, JobResult, numeric_ids


def build_update_values(lead: Mapping[str, Any], board: BoardState) -> dict[str, Any]:
    """All column changes for one lead, sent as a single mutation."""
    kyc_col = board.column_containing("kyc")
    status_col = next(
        (
            c
            for c in board.columns
            if "status" in c.title.lower() and (kyc_col is None or c.id != kyc_col.id)
        ),
        None,
    )
    declined_col = board.column_containing("declined")
    ftd_col = board.column_containing("ftd amount")

    kyc_status = lead.get("kycPercent") or ""
    values: dict[str, Any] = {}
    if kyc_col is not None:
        values[kyc_col.id] = {"index": kyc_percent_index(kyc_status)}
    if status_col is not None:
        index = overall_status_index(kyc_status, bool(lead.get("status")))
        if index is not None:
            values[status_col.id] = {"index": index}
    if declined_col is not None:
        values[declined_col.id] = str(lead.get("totalDeclined") or 0)
    if ftd_col is not None:
        values[ftd_col.id] = str(lead.get("ftdAmount") or 0)
    return values


class RegistrationUpdaterJob(BoardJob):
    name = "registration-updater"

    def process_board(self, config: Mapping[str, Any], result: JobResult) -> None:
        board_id = config["boardId"]
        board_name = config.get("name", board_id)
        state = self.board.get_board_state(board_id)

        crm_col = state.column_named("crm login")
        if crm_col is None:
            self._logger.warning("CRM Login column not found in board %s", board_name)
            return
        items = state.items_by_column(crm_col.id)
        crm_ids = numeric_ids(items)
        if not crm_ids:
            self._logger.info("No CRM IDs found in board %s", board_name)
            return

        for lead in self.backend.leads_by_ids(crm_ids):
            item = items.get(str(lead.get("id")))
            if item is None:
                continue
            values = build_update_values(lead, state)
            if not values:
                continue
            try:
                self.board.change_multiple_column_values(board_id, item.id, values)
            except Exception as exc:
                self._logger.error(
                    "Failed to update CRM ID %s in board %s: %s",
                    lead.get("id"),
                    board_name,
                    exc,
                )
                self._failed(result)
                continue
            self._updated(result)
            self._logger.info("Updated CRM ID %s in board %s", lead.get("id"), board_name)


__all__ = ["RegistrationUpdaterJob", "build_update_values"]
