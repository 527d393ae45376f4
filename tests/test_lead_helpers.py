import json

import pytest

from leadbridge.domain.models import (
    KycBucket,
    display_name,
    format_column_value,
    has_deposited,
    kyc_percent_index,
    kyc_status_index,
    overall_status_index,
)
from leadbridge.domain.models.lead import parse_status_labels, pick_index_for_bucket


@pytest.mark.parametrize(
    ("raw", "bucket"),
    [
        ("APPROVED", KycBucket.APPROVED),
        ("approved_with_mismatch", KycBucket.APPROVED),
        ("Rejected", KycBucket.DENIED),
        ("expired", KycBucket.DENIED),
        ("awaiting_kyc_process", KycBucket.PENDING),
        (None, KycBucket.PENDING),
        ("something else", KycBucket.PENDING),
    ],
)
def test_kyc_bucket(raw, bucket) -> None:
    assert KycBucket.from_value(raw) is bucket


def test_parse_status_labels_accepts_dict_and_list() -> None:
    as_dict = json.dumps({"labels": {"0": "Denied", "1": "Pending", "x": "skip"}})
    as_list = json.dumps({"labels": ["Denied", "", "Approved"]})

    assert parse_status_labels(as_dict) == {0: "Denied", 1: "Pending"}
    assert parse_status_labels(as_list) == {0: "Denied", 2: "Approved"}
    assert parse_status_labels("not json") == {}
    assert parse_status_labels(None) == {}


def test_percent_labels_do_not_confuse_denied_with_approved() -> None:
    labels = {0: "100%", 1: "50%", 2: "0%"}

    assert pick_index_for_bucket(labels, KycBucket.APPROVED) == 0
    assert pick_index_for_bucket(labels, KycBucket.PENDING) == 1
    assert pick_index_for_bucket(labels, KycBucket.DENIED) == 2


def test_keyword_beats_colour() -> None:
    settings = json.dumps(
        {"labels": {"3": "Green", "5": "Verified", "7": "Waiting review"}}
    )

    assert kyc_status_index("approved", settings) == 5
    assert kyc_status_index("pending", settings) == 7


def test_fallback_index_when_nothing_matches() -> None:
    assert pick_index_for_bucket({0: "a", 1: "b", 2: "c"}, KycBucket.APPROVED) == 2
    assert pick_index_for_bucket({4: "a", 9: "b"}, KycBucket.APPROVED) == 4
    assert pick_index_for_bucket({}, KycBucket.DENIED) == 0


def test_registration_updater_indexes() -> None:
    assert kyc_percent_index("APPROVED") == 1
    assert kyc_percent_index("denied") == 0
    assert kyc_percent_index(None) == 2
    assert overall_status_index("APPROVED", is_fresh=True) == 7
    assert overall_status_index("APPROVED", is_fresh=False) == 13
    assert overall_status_index("PENDING", is_fresh=False) == 12
    assert overall_status_index("DENIED", is_fresh=False) == 3
    assert overall_status_index("unknown", is_fresh=False) is None


@pytest.mark.parametrize(
    ("lead", "expected"),
    [
        ({"id": 1, "fullName": "  Jane Doe "}, "Jane Doe"),
        ({"id": 2, "email": "123john.smith_@mail.com"}, "John Smith"),
        ({"id": 3, "crmLogin": "mary-ann@x.io"}, "Mary Ann"),
        ({"id": 4, "email": "42@x.io"}, "4"),
        ({"id": 5}, "5"),
    ],
)
def test_display_name(lead, expected) -> None:
    assert display_name(lead) == expected


def test_has_deposited() -> None:
    assert has_deposited({"triedDeposit": True})
    assert has_deposited({"ftdAmount": "250"})
    assert not has_deposited({"ftdAmount": 0})
    assert not has_deposited({"ftdAmount": "n/a"})


def test_format_column_value() -> None:
    assert format_column_value("a@x.com", "email") == {"email": "a@x.com", "text": "a@x.com"}
    assert format_column_value("2024-01-15T23:30:00Z", "date") == {"date": "2024-01-15"}
    assert format_column_value("not a date", "date") is None
    assert format_column_value({"index": 1}, "status") == {"index": 1}
    assert format_column_value(12.5, "text") == "12.5"
    assert format_column_value(None, "text") is None
