"""CRM lead helpers: KYC buckets, board status indexes and display names."""

from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class KycBucket(str, Enum):
    """Coarse KYC outcome used to pick a board status label."""

    APPROVED = "APPROVED"
    PENDING = "PENDING"
    DENIED = "DENIED"

    @classmethod
    def from_value(cls, value: object) -> "KycBucket":
        """Map a raw KYC value from the CRM to a bucket, defaulting to PENDING."""
        val = _norm(value)
        approved = ("approved", "approved_with_mismatch", "completed", "verified",
                    "success", "ok", "pass")
        denied = ("denied", "expired", "suspected", "rejected", "failed", "blocked")
        pending = ("pending", "awaiting_self_review", "awaiting_kyc_process",
                   "review", "processing", "in progress")
        if any(k in val for k in approved):
            return cls.APPROVED
        if any(k in val for k in denied):
            return cls.DENIED
        if any(k in val for k in pending):
            return cls.PENDING
        return cls.PENDING


_BUCKET_PATTERNS: dict[KycBucket, tuple[str, str, str]] = {
    # (percentage hint, keyword pattern, colour pattern)
    KycBucket.APPROVED: ("100%", r"(approved|complete|verified|success|ok|pass)", r"(green)"),
    KycBucket.PENDING: ("50%", r"(pending|review|await|processing|in\s*progress)", r"(yellow|orange)"),
    KycBucket.DENIED: ("0%", r"(denied|rejected|expired|failed|blocked)", r"(red)"),
}

_FALLBACK_INDEX = {KycBucket.APPROVED: 2, KycBucket.PENDING: 1, KycBucket.DENIED: 0}


def _norm(value: object) -> str:
    return str(value or "").lower()


def parse_status_labels(settings_str: str | None) -> dict[int, str]:
    """Extract ``index -> label`` from a status column's ``settings_str``."""
    if not settings_str:
        return {}
    try:
        settings = json.loads(settings_str)
    except (TypeError, ValueError):
        return {}
    if not isinstance(settings, dict):
        return {}
    labels = (
        settings.get("labels")
        or settings.get("labels_positions")
        or settings.get("labels_text")
    )
    index_to_label: dict[int, str] = {}
    if isinstance(labels, list):
        for idx, label in enumerate(labels):
            if label:
                index_to_label[idx] = str(label)
    elif isinstance(labels, dict):
        for key, label in labels.items():
            try:
                idx = int(key)
            except (TypeError, ValueError):
                continue
            if label:
                index_to_label[idx] = str(label)
    return index_to_label


def pick_index_for_bucket(index_to_label: Mapping[int, str], bucket: KycBucket) -> int:
    """Score every label against the bucket and return the best index."""
    percent, keywords, colours = _BUCKET_PATTERNS[bucket]
    best_idx: int | None = None
    best_score = 0
    for idx, label in index_to_label.items():
        text = _norm(label)
        score = 0
        # "100%" also contains "0%", so the denied hint only counts on its own.
        if percent == "0%":
            if "0%" in text and "50%" not in text and "100%" not in text:
                score += 3
        elif percent in text:
            score += 3
        if re.search(keywords, text):
            score += 5
        if re.search(colours, text):
            score += 1
        if score > best_score:
            best_idx, best_score = idx, score
    if best_idx is not None:
        return best_idx

    fallback = _FALLBACK_INDEX[bucket]
    if fallback in index_to_label:
        return fallback
    if index_to_label:
        return min(index_to_label)
    return 0


def kyc_status_index(kyc_value: object, settings_str: str | None) -> int:
    """Status index on the board's KYC column for a raw CRM KYC value."""
    labels = parse_status_labels(settings_str)
    return pick_index_for_bucket(labels, KycBucket.from_value(kyc_value))


def kyc_percent_index(status: str | None) -> int:
    """Fixed KYC column index used by the registration updater."""
    mapping = {"APPROVED": 1, "DENIED": 0, "PENDING": 2}
    return mapping.get((status or "").upper(), 2)


def overall_status_index(kyc_status: str | None, is_fresh: bool) -> int | None:
    """Overall status index; fresh leads always map to the 'fresh' label."""
    if is_fresh:
        return 7
    mapping = {"PENDING": 12, "APPROVED": 13, "DENIED": 3}
    return mapping.get((kyc_status or "").upper())


def display_name(lead: Mapping[str, Any]) -> str:
    """Best human-readable item name for a lead.

    Falls back from the full name to a title-cased e-mail local part and finally
    to the lead id.
    """
    full_name = (lead.get("fullName") or "").strip()
    if full_name:
        return full_name

    email = lead.get("email") or ""
    crm_login = lead.get("crmLogin") or ""
    candidate = email if "@" in email else crm_login if "@" in crm_login else None
    if candidate:
        local = candidate.split("@")[0]
        name_part = re.sub(r"^[0-9._+-]+", "", local)
        name_part = re.sub(r"[._+-]+$", "", name_part)
        name_part = re.sub(r"[._+-]+", " ", name_part).strip()
        words = [w[:1].upper() + w[1:].lower() for w in name_part.split(" ") if w]
        return " ".join(words) or str(lead.get("id"))

    return str(lead.get("id"))


def has_deposited(lead: Mapping[str, Any]) -> bool:
    if lead.get("triedDeposit"):
        return True
    try:
        return float(lead.get("ftdAmount") or 0) > 0
    except (TypeError, ValueError):
        return False


def format_column_value(value: Any, column_type: str) -> Any:
    """Shape a value the way the board API expects for a column type."""
    if value is None:
        return None
    if column_type == "email":
        return {"email": value, "text": value}
    if column_type == "date":
        try:
            moment = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            return None
        if moment.tzinfo is not None:
            moment = moment.astimezone(timezone.utc)
        return {"date": moment.date().isoformat()}
    if column_type == "status":
        return value
    return str(value)


__all__ = [
    "KycBucket",
    "display_name",
    "format_column_value",
    "has_deposited",
    "kyc_percent_index",
    "kyc_status_index",
    "overall_status_index",
    "parse_status_labels",
    "pick_index_for_bucket",
]
