"""Merge freshly pulled records into the persisted snapshot."""

from __future__ import annotations

from typing import Iterable, Sequence

from leadbridge.domain.models import StoredRecord


def merge_records(
    existing: Sequence[StoredRecord],
    incoming: Iterable[StoredRecord],
    now: str,
) -> list[StoredRecord]:
    """Return the union of ``existing`` and ``incoming``.

    Incoming records replace the stored ones field by field. ``modifiedAt`` is
    set to ``now`` for new identifiers and for records whose tracked fields
    changed; otherwise the stored timestamp is kept, so merging an unchanged
    batch yields an identical snapshot. A null incoming email hash keeps the
    stored hash. Stored order is preserved and new identifiers are appended.
    """
    merged: dict[str, StoredRecord] = {r.customer_id: r for r in existing}
    for record in incoming:
        prior = merged.get(record.customer_id)
        if prior is None:
            merged[record.customer_id] = record.model_copy(update={"modified_at": now})
            continue
        email = record.email if record.email is not None else prior.email
        modified_at = now if record.has_tracked_changes(prior) else prior.modified_at
        merged[record.customer_id] = record.model_copy(
            update={"email": email, "modified_at": modified_at}
        )
    return list(merged.values())


__all__ = ["merge_records"]
