from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from leadbridge.app.api import create_app
from leadbridge.app.config import Settings
from leadbridge.domain.models import StoredRecord
from leadbridge.services.reporting import ReportStore

API_KEY = "s3cret"
HEADERS = {"X-API-KEY": API_KEY}


def _client(tmp_path: Path, *, api_key: str | None = API_KEY) -> TestClient:
    settings = Settings(
        reports_api_key=api_key,
        affiliate_id="42",
        data_dir=tmp_path,
        pull_interval_minutes=15,
    )
    return TestClient(create_app(settings))


def _seed(tmp_path: Path) -> ReportStore:
    store = ReportStore(tmp_path)
    store.save_records(
        [
            StoredRecord(
                customer_id="2001",
                lot_amount=1.5,
                first_deposit=1000.0,
                net_deposit=800.0,
                commission=20.0,
                email="hash",
                modified_at="2024-05-01T12:00:00Z",
            ),
            StoredRecord(customer_id="2002", modified_at="2024-05-02T12:00:00Z"),
        ]
    )
    store.save_last_fetch("2024-05-02T12:00:00Z")
    return store


@pytest.mark.parametrize("path", ["/reports", "/reports/full", "/health", "/meta"])
def test_requests_without_valid_key_are_forbidden(tmp_path: Path, path: str) -> None:
    client = _client(tmp_path)

    assert client.get(path).status_code == 403
    assert client.get(path, headers={"X-API-KEY": "wrong"}).status_code == 403


def test_everything_is_forbidden_when_no_key_is_configured(tmp_path: Path) -> None:
    client = _client(tmp_path, api_key=None)

    response = client.get("/health", headers={"X-API-KEY": ""})

    assert response.status_code == 403
    assert response.json() == {"detail": "Forbidden"}


def test_delta_feed_is_consumed_once(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    client = _client(tmp_path)

    first = client.get("/reports", headers=HEADERS)
    second = client.get("/reports", headers=HEADERS)

    assert first.status_code == 200
    assert first.json()["count"] == 2
    assert "Last-Modified" in first.headers
    assert second.json() == {"count": 0, "records": []}
    assert store.last_client_fetch() == second.headers["Last-Modified"]


def test_delta_feed_only_returns_newer_records(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    store.save_last_client_fetch("2024-05-01T18:00:00Z")
    client = _client(tmp_path)

    body = client.get("/reports", headers=HEADERS).json()

    assert [r["CustomerId"] for r in body["records"]] == ["2002"]


def test_full_feed_leaves_cursor_untouched(tmp_path: Path) -> None:
    store = _seed(tmp_path)
    client = _client(tmp_path)

    body = client.get("/reports/full", headers=HEADERS).json()

    assert body["count"] == 2
    assert store.last_client_fetch() is None


def test_null_numbers_are_served_as_zero(tmp_path: Path) -> None:
    _seed(tmp_path)
    client = _client(tmp_path)

    record = client.get("/reports/full", headers=HEADERS).json()["records"][1]

    assert record["CustomerId"] == "2002"
    assert record["LotAmount"] == 0
    assert record["FirstDeposit"] == 0
    assert record["NetDeposit"] == 0
    assert record["Commission"] == 0
    assert record["Email"] is None


def test_mock_feeds_return_fake_records(tmp_path: Path) -> None:
    client = _client(tmp_path)

    delta = client.get("/reports", params={"mock": "true"}, headers=HEADERS).json()
    full = client.get("/reports/full", params={"mock": "true"}, headers=HEADERS).json()

    assert delta["count"] == 5
    assert full["count"] == 10
    assert all(r["CustomerId"].startswith("fake_") for r in full["records"])


def test_health_reports_timestamps(tmp_path: Path) -> None:
    _seed(tmp_path)
    client = _client(tmp_path)

    body = client.get("/health", headers=HEADERS).json()

    assert body == {
        "status": "ok",
        "lastClientFetch": None,
        "lastBrokerUpdate": "2024-05-02T12:00:00Z",
    }


def test_meta_describes_snapshot(tmp_path: Path) -> None:
    _seed(tmp_path)
    client = _client(tmp_path)

    body = client.get("/meta", headers=HEADERS).json()

    assert body["recordCount"] == 2
    assert body["lastUpdateDetected"] == "2024-05-02T12:00:00Z"
    assert body["intervalMinutes"] == 15
    assert body["affiliateId"] == "42"
    assert body["timezone"] == "UTC"
    assert body["fileSizeKB"] > 0
    assert "counters" in body["metrics"]


def test_meta_without_snapshot(tmp_path: Path) -> None:
    client = _client(tmp_path)

    body = client.get("/meta", headers=HEADERS).json()

    assert body["recordCount"] == 0
    assert body["fileSizeKB"] == 0
    assert body["lastUpdateDetected"] is None
    assert body["lastBrokerUpdate"] is None


def test_corrupt_snapshot_returns_500(tmp_path: Path) -> None:
    (tmp_path / "data.json").write_text("{not json")
    client = _client(tmp_path)

    response = client.get("/reports/full", headers=HEADERS)

    assert response.status_code == 500
    assert response.json() == {"detail": "Unable to load data"}
