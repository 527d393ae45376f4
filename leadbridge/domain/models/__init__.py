"""Domain models package."""

from .lead import (
    KycBucket,
    display_name,
    format_column_value,
    has_deposited,
    kyc_percent_index,
    kyc_status_index,
    overall_status_index,
)
from .registration import (
    EPOCH,
    TRACKED_FIELDS,
    RegistrationRow,
    StoredRecord,
    calculate_net_deposit,
    format_report_date,
    iso_utc,
    iso_utcnow,
    parse_timestamp,
    pseudonymize,
)

__all__ = [
    "EPOCH",
    "KycBucket",
    "RegistrationRow",
    "StoredRecord",
    "TRACKED_FIELDS",
    "calculate_net_deposit",
    "display_name",
    "format_column_value",
    "format_report_date",
    "has_deposited",
    "iso_utc",
    "iso_utcnow",
    "kyc_percent_index",
    "kyc_status_index",
    "overall_status_index",
    "parse_timestamp",
    "pseudonymize",
]
