"""Registration rows from the affiliate report and the records we persist.

Raw rows are validated with :class:`RegistrationRow`; the pseudonymized,
normalized form that the reporting server stores and serves is
:class:`StoredRecord`, whose wire names match the feed consumers' schema.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

# Only these fields bump ``modifiedAt`` when they change between pulls.
TRACKED_FIELDS: tuple[str, ...] = (
    "pl",
    "withdrawals",
    "commission",
    "qualification_date",
    "lot_amount",
)

# Numeric fields that the feed serves as 0 instead of null.
ZERO_DEFAULT_FIELDS: tuple[str, ...] = (
    "LotAmount",
    "FirstDeposit",
    "NetDeposit",
    "Withdrawals",
    "PL",
    "Commission",
)


def iso_utc(moment: datetime) -> str:
    """Return an ISO‑8601 timestamp in UTC with ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def iso_utcnow() -> str:
    return iso_utc(datetime.now(timezone.utc))


def parse_timestamp(value: str | None) -> datetime:
    """Parse a stored ISO timestamp; missing or unreadable values map to the epoch."""
    if not value:
        return EPOCH
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return EPOCH
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def pseudonymize(value: str) -> str:
    """One-way SHA-256 hex digest used for names and emails."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def calculate_net_deposit(
    first_deposit: float | None, pl: float | None, withdrawals: float | None
) -> float:
    """Deposits minus the part of withdrawals not covered by positive P/L."""
    deposits = first_deposit or 0.0
    usable_pnl = max(0.0, pl or 0.0)
    excess = max(0.0, (withdrawals or 0.0) - usable_pnl)
    return deposits - excess


def format_report_date(moment: datetime) -> str:
    """Format a date as ``MM/DD/YYYY`` in UTC for the report API."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return f"{moment.month:02d}/{moment.day:02d}/{moment.year:04d}"


def _check_iso_date(value: str) -> str:
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise ValueError(f"{value!r} is not an ISO 8601 date") from exc
    return value


class RegistrationRow(BaseModel):
    """One raw row of the affiliate registration report."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    user_id: str = Field(alias="User_ID")
    customer_name: str = Field(alias="Customer_Name")
    registration_date: str = Field(alias="Registration_Date")
    lots: float = Field(0.0, alias="LOTS")
    first_deposit: float = Field(0.0, alias="First_Deposit")
    first_deposit_date: str | None = Field(None, alias="First_Deposit_Date")
    qualification_date: str | None = Field(None, alias="Qualification_Date")
    withdrawals: float = Field(0.0, alias="Withdrawals")
    pl: float = Field(0.0, alias="PL")
    commissions: float = Field(0.0, alias="Commissions")
    tracking_code: str | None = Field(None, alias="TrackingCode")
    legacy_tracking_code: str | None = Field(None, alias="Tracking_Code")

    email_hash: str | None = None

    @field_validator(
        "lots", "first_deposit", "withdrawals", "pl", "commissions", mode="before"
    )
    @classmethod
    def _empty_number_is_zero(cls, value: Any) -> Any:
        if value is None or value == "":
            return 0.0
        return value

    @field_validator("registration_date")
    @classmethod
    def _registration_date_is_iso(cls, value: str) -> str:
        return _check_iso_date(value)

    @field_validator("first_deposit_date", "qualification_date")
    @classmethod
    def _optional_date_is_iso(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return _check_iso_date(value)

    @model_validator(mode="after")
    def _backfill_tracking_code(self) -> "RegistrationRow":
        if not self.tracking_code and self.legacy_tracking_code:
            self.tracking_code = self.legacy_tracking_code
        return self


class StoredRecord(BaseModel):
    """Normalized, pseudonymized customer record kept in the snapshot."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customer_id: str = Field(alias="CustomerId")
    registration_date: str | None = Field(None, alias="RegistrationDate")
    tracking_code: str | None = Field(None, alias="TrackingCode")
    qualification_date: str | None = Field(None, alias="QualificationDate")
    lot_amount: float | None = Field(None, alias="LotAmount")
    first_deposit: float | None = Field(None, alias="FirstDeposit")
    first_deposit_date: str | None = Field(None, alias="FirstDepositDate")
    net_deposit: float | None = Field(None, alias="NetDeposit")
    customer_name_hash: str | None = Field(None, alias="CustomerNameHash")
    commission: float | None = Field(None, alias="Commission")
    email: str | None = Field(None, alias="Email")
    pl: float | None = Field(None, alias="PL")
    withdrawals: float | None = Field(None, alias="Withdrawals")
    modified_at: str | None = Field(None, alias="modifiedAt")

    @classmethod
    def from_registration(cls, row: RegistrationRow) -> "StoredRecord":
        return cls(
            customer_id=row.user_id,
            registration_date=row.registration_date,
            tracking_code=row.tracking_code,
            qualification_date=row.qualification_date,
            lot_amount=row.lots,
            first_deposit=row.first_deposit,
            first_deposit_date=row.first_deposit_date,
            net_deposit=calculate_net_deposit(
                row.first_deposit, row.pl, row.withdrawals
            ),
            customer_name_hash=pseudonymize(row.customer_name),
            commission=row.commissions,
            email=row.email_hash,
            pl=row.pl,
            withdrawals=row.withdrawals,
        )

    @property
    def modified_at_dt(self) -> datetime:
        return parse_timestamp(self.modified_at)

    def has_tracked_changes(self, other: "StoredRecord") -> bool:
        return any(
            getattr(self, name) != getattr(other, name) for name in TRACKED_FIELDS
        )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_report(self) -> dict[str, Any]:
        """Wire form with null numeric fields served as 0."""
        payload = self.to_wire()
        for name in ZERO_DEFAULT_FIELDS:
            if payload.get(name) is None:
                payload[name] = 0
        return payload


__all__ = [
    "EPOCH",
    "RegistrationRow",
    "StoredRecord",
    "TRACKED_FIELDS",
    "calculate_net_deposit",
    "format_report_date",
    "iso_utc",
    "iso_utcnow",
    "parse_timestamp",
    "pseudonymize",
]
