"""Push newly registered CRM leads onto the intake boards.

Leads that already tried a deposit go to the "Nc self" board, everyone else
to "New Leads". Leads whose CRM login already exists on either board are
skipped. The latest registration date seen is persisted in
``last_processed.json`` and used as ``since`` on the next run.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Mapping, Sequence

from leadbridge.app.config import ConfigurationError
from leadbridge.domain.models import (
    display_name,
    format_column_value,
    has_deposited,
    kyc_status_index,
    parse_timestamp,
)
from leadbridge.infrastructure.http import (
    BackendClient,
    BoardClient,
    BoardState,
    PartnersClient,
    UpstreamError,
)
from leadbridge.infrastructure.persistence import JsonDocument

from .base import BoardJob, JobResult

NEW_LEADS_BOARD = "New Leads"
DEPOSITED_BOARD = "Nc self"

LEAD_COLUMNS: tuple[str, ...] = (
    "CRM Login",
    "Name",
    "Email",
    "Phone",
    "Date of Birth",
    "Adress",
    "Country",
    "Registration Date",
    "KYC %",
    "Total Declined",
    "FTD AMOUNT/Challenge",
    "FTD/Challenge Date",
    "Affiliate Name",
    "Tried Deposit",
)


def _board_id(boards: Sequence[Mapping[str, Any]], name: str) -> str:
    for entry in boards:
        if entry.get("name") == name and entry.get("boardId"):
            return str(entry["boardId"])
    raise ConfigurationError(f"{name} board ID not found in board configuration")


def build_column_values(
    lead: Mapping[str, Any],
    board: BoardState,
    user_id: str,
    affiliate_label: str,
) -> dict[str, Any]:
    """Column id -> value for a new item, leaving out unknown columns and nulls."""
    phone = lead.get("phone")
    kyc_column = board.column("KYC %")
    values: dict[str, Any] = {
        "CRM Login": user_id,
        "Name": display_name(lead),
        "Email": format_column_value(lead.get("email"), "email"),
        "Phone": (
            {
                "phone": re.sub(r"\s+", "", str(phone)),
                "countryShortName": lead.get("country") or "US",
            }
            if phone
            else None
        ),
        "Date of Birth": format_column_value(lead.get("birthDate"), "date"),
        "Adress": lead.get("address"),
        "Country": lead.get("country"),
        "Registration Date": format_column_value(lead.get("registrationDate"), "date"),
        "KYC %": (
            {"index": kyc_status_index(lead.get("kycPercent"), kyc_column.settings_str)}
            if kyc_column
            else None
        ),
        "Total Declined": lead.get("totalDeclined"),
        "FTD AMOUNT/Challenge": lead.get("ftdAmount"),
        "FTD/Challenge Date": format_column_value(lead.get("ftdDate"), "date"),
        "Affiliate Name": affiliate_label or None,
        "Tried Deposit": lead.get("triedDeposit"),
    }
    column_values: dict[str, Any] = {}
    for title in LEAD_COLUMNS:
        column = board.column(title)
        value = values.get(title)
        if column is None or value is None:
            continue
        column_values[column.id] = value
    return column_values


class LeadIntakeJob(BoardJob):
    name = "lead-intake"

    def __init__(
        self,
        board: BoardClient,
        backend: BackendClient,
        boards: Sequence[Mapping[str, Any]],
        *,
        partners: PartnersClient,
        state_path: str | Path,
    ) -> None:
        super().__init__(board, backend, boards)
        self.partners = partners
        self.state = JsonDocument(state_path, default={})

    def load_last_processed(self) -> str | None:
        return (self.state.load() or {}).get("lastProcessedDate")

    def save_last_processed(self, date: str) -> None:
        self.state.save({"lastProcessedDate": date})

    def run(self) -> JobResult:
        result = JobResult(job=self.name)
        new_leads_id = _board_id(self.boards, NEW_LEADS_BOARD)
        deposited_id = _board_id(self.boards, DEPOSITED_BOARD)

        last_processed = self.load_last_processed()
        leads = self.backend.leads_since(last_processed)
        if not leads:
            self._logger.info("No new registrations since last check")
            return result

        new_leads = self.board.get_board_state(new_leads_id)
        deposited = self.board.get_board_state(deposited_id)
        result.boards = 2

        existing: set[str] = set()
        for state in (new_leads, deposited):
            crm_column = state.column("CRM Login")
            if crm_column is not None:
                existing.update(state.items_by_column(crm_column.id))

        affiliate_names = self._affiliate_names()
        latest = last_processed
        for lead in leads:
            user_id = str(lead.get("id"))
            if user_id in existing:
                self._logger.info("Skipping existing user %s", user_id)
                result.skipped += 1
                continue

            target = deposited if has_deposited(lead) else new_leads
            board_name = DEPOSITED_BOARD if target is deposited else NEW_LEADS_BOARD
            try:
                label = self.partners.affiliate_label(user_id, affiliate_names)
                values = build_column_values(lead, target, user_id, label)
                self.board.create_item(target.board_id, display_name(lead), values)
            except Exception as exc:
                self._logger.error("Failed to add user %s: %s", user_id, exc)
                self._failed(result)
                continue

            self._created(result)
            existing.add(user_id)
            self._logger.info(
                "Added user %s (%s) to '%s'",
                user_id,
                lead.get("crmLogin") or lead.get("email") or "-",
                board_name,
            )
            registered = lead.get("registrationDate")
            if registered and (
                latest is None or parse_timestamp(registered) > parse_timestamp(latest)
            ):
                latest = registered

        if latest and latest != last_processed:
            self.save_last_processed(latest)
            self._logger.info("Updated last processed date to: %s", latest)
        self._logger.info("Sync completed. Processed %d new users", result.created)
        return result

    def _affiliate_names(self) -> dict[str, str]:
        try:
            return self.partners.affiliate_names()
        except UpstreamError as exc:
            self._logger.warning("Affiliate names unavailable, using ids only: %s", exc)
            return {}


__all__ = ["LeadIntakeJob", "build_column_values"]
