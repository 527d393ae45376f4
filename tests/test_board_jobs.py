import json
from pathlib import Path
from typing import Any

import pytest

from leadbridge.app.config import ConfigurationError
from leadbridge.infrastructure.http import (
    BoardColumn,
    BoardItem,
    BoardState,
    UpstreamError,
)
from leadbridge.services.jobs import (
    LeadIntakeJob,
    RegistrationUpdaterJob,
    RetentionUpdaterJob,
    SalesUpdaterJob,
)
from leadbridge.services.jobs.registration_updater import build_update_values


def _item(item_id: str, crm: str, *, group: str = "Active", **extra: str) -> BoardItem:
    values = [{"id": "crm", "text": crm, "value": None}]
    values.extend({"id": key, "text": text, "value": None} for key, text in extra.items())
    return BoardItem(id=item_id, name=f"Client {crm}", column_values=values, group_title=group)


class StubBoard:
    def __init__(self, boards: dict[str, BoardState], columns: dict[str, list[BoardColumn]] | None = None) -> None:
        self.boards = boards
        self.columns = columns or {}
        self.created: list[tuple[str, str, dict[str, Any]]] = []
        self.changed: list[tuple[str, str, str, Any]] = []
        self.multi: list[tuple[str, str, dict[str, Any]]] = []
        self.fail_items: set[str] = set()

    def get_board_state(self, board_id):
        return self.boards[str(board_id)]

    def get_columns(self, board_id):
        return self.columns[str(board_id)]

    def create_item(self, board_id, item_name, column_values):
        self.created.append((str(board_id), item_name, dict(column_values)))
        return str(len(self.created))

    def change_column_value(self, board_id, item_id, column_id, value):
        if item_id in self.fail_items:
            raise UpstreamError("board rejected the change")
        self.changed.append((str(board_id), item_id, column_id, value))

    def change_multiple_column_values(self, board_id, item_id, values):
        if item_id in self.fail_items:
            raise UpstreamError("board rejected the change")
        self.multi.append((str(board_id), item_id, dict(values)))


class StubBackend:
    def __init__(self, **responses: Any) -> None:
        self.responses = responses
        self.calls: list[tuple[str, Any]] = []

    def _answer(self, name: str, arg: Any) -> Any:
        self.calls.append((name, arg))
        answer = self.responses.get(name, [])
        if isinstance(answer, Exception):
            raise answer
        return answer

    def leads_since(self, since=None):
        return self._answer("leads_since", since)

    def leads_by_ids(self, crm_ids):
        return self._answer("leads_by_ids", list(crm_ids))

    def transaction_totals(self, clients):
        return self._answer("transaction_totals", list(clients))

    def transactions_by_user_ids(self, user_ids):
        return self._answer("transactions_by_user_ids", list(user_ids))


class StubPartners:
    def __init__(self, affiliates: dict[str, str] | Exception, registrations: dict[str, str]) -> None:
        self.affiliates = affiliates
        self.registrations = registrations
        self.name_calls = 0

    def affiliate_names(self):
        self.name_calls += 1
        if isinstance(self.affiliates, Exception):
            raise self.affiliates
        return self.affiliates

    def affiliate_label(self, user_id, names):
        affiliate_id = self.registrations.get(str(user_id), "")
        if not affiliate_id:
            return ""
        return f"{names.get(affiliate_id) or f'ID {affiliate_id}'} ({affiliate_id})"


# ---------------------------------------------------------------------------
# Lead intake
# ---------------------------------------------------------------------------

INTAKE_COLUMNS = [
    BoardColumn("crm", "CRM Login", "text"),
    BoardColumn("email", "Email", "email"),
    BoardColumn("phone", "Phone", "phone"),
    BoardColumn("reg", "Registration Date", "date"),
    BoardColumn(
        "kyc",
        "KYC %",
        "status",
        json.dumps({"labels": {"0": "0%", "1": "50%", "2": "100%"}}),
    ),
    BoardColumn("aff", "Affiliate Name", "text"),
    BoardColumn("ftd", "FTD AMOUNT/Challenge", "numbers"),
]

INTAKE_BOARDS = [
    {"name": "New Leads", "boardId": "100"},
    {"name": "Nc self", "boardId": "200"},
]


def _intake_job(tmp_path: Path, leads, partners=None, existing=("1000",)) -> tuple[LeadIntakeJob, StubBoard, StubBackend]:
    board = StubBoard(
        {
            "100": BoardState("100", INTAKE_COLUMNS, [_item("i1", existing[0])] if existing else []),
            "200": BoardState("200", INTAKE_COLUMNS, []),
        }
    )
    backend = StubBackend(leads_since=leads)
    job = LeadIntakeJob(
        board,
        backend,
        INTAKE_BOARDS,
        partners=partners or StubPartners({"7": "Ann Lee"}, {"1001": "7"}),
        state_path=tmp_path / "last_processed.json",
    )
    return job, board, backend


def test_lead_intake_routes_and_skips(tmp_path: Path) -> None:
    leads = [
        {"id": 1000, "fullName": "Already There", "registrationDate": "2024-01-01T00:00:00Z"},
        {
            "id": 1001,
            "fullName": "Fresh Lead",
            "email": "fresh@x.com",
            "phone": "+31 6 1234",
            "country": "NL",
            "kycPercent": "approved",
            "registrationDate": "2024-01-02T10:00:00Z",
        },
        {
            "id": 1002,
            "email": "dep.ositor@x.com",
            "triedDeposit": True,
            "ftdAmount": 250,
            "registrationDate": "2024-01-03T10:00:00Z",
        },
    ]
    job, board, backend = _intake_job(tmp_path, leads)

    result = job.run()

    assert (result.created, result.skipped, result.failed) == (2, 1, 0)
    assert backend.calls == [("leads_since", None)]
    (new_board, new_name, new_values), (dep_board, dep_name, dep_values) = board.created
    assert (new_board, new_name) == ("100", "Fresh Lead")
    assert new_values["crm"] == "1001"
    assert new_values["email"] == {"email": "fresh@x.com", "text": "fresh@x.com"}
    assert new_values["phone"] == {"phone": "+3161234", "countryShortName": "NL"}
    assert new_values["reg"] == {"date": "2024-01-02"}
    assert new_values["kyc"] == {"index": 2}
    assert new_values["aff"] == "Ann Lee (7)"
    assert (dep_board, dep_name) == ("200", "Dep Ositor")
    assert "phone" not in dep_values
    assert "aff" not in dep_values
    assert dep_values["ftd"] == 250

    state = json.loads((tmp_path / "last_processed.json").read_text())
    assert state == {"lastProcessedDate": "2024-01-03T10:00:00Z"}


def test_lead_intake_uses_saved_cursor(tmp_path: Path) -> None:
    (tmp_path / "last_processed.json").write_text(
        json.dumps({"lastProcessedDate": "2024-01-03T10:00:00Z"})
    )
    job, board, backend = _intake_job(tmp_path, [])

    result = job.run()

    assert backend.calls == [("leads_since", "2024-01-03T10:00:00Z")]
    assert result.created == 0
    assert board.created == []


def test_lead_intake_survives_missing_affiliate_list(tmp_path: Path) -> None:
    partners = StubPartners(UpstreamError("partners down"), {"1001": "7"})
    leads = [{"id": 1001, "fullName": "Fresh Lead", "registrationDate": "2024-01-02T10:00:00Z"}]
    job, board, _ = _intake_job(tmp_path, leads, partners=partners)

    job.run()

    assert partners.name_calls == 1
    assert board.created[0][2]["aff"] == "ID 7 (7)"


def test_lead_intake_requires_both_boards(tmp_path: Path) -> None:
    job = LeadIntakeJob(
        StubBoard({}),
        StubBackend(),
        [{"name": "New Leads", "boardId": "100"}],
        partners=StubPartners({}, {}),
        state_path=tmp_path / "last_processed.json",
    )

    with pytest.raises(ConfigurationError):
        job.run()


# ---------------------------------------------------------------------------
# Registration updater
# ---------------------------------------------------------------------------

REGISTRATION_COLUMNS = [
    BoardColumn("crm", "CRM Login", "text"),
    BoardColumn("kyc", "KYC Status", "status"),
    BoardColumn("status", "Status", "status"),
    BoardColumn("declined", "Total Declined", "numbers"),
    BoardColumn("ftd", "FTD Amount", "numbers"),
]


def test_build_update_values_sends_one_change_per_column() -> None:
    state = BoardState("300", REGISTRATION_COLUMNS)
    lead = {"id": 1, "kycPercent": "APPROVED", "status": False, "totalDeclined": 2, "ftdAmount": None}

    values = build_update_values(lead, state)

    assert values == {
        "kyc": {"index": 1},
        "status": {"index": 13},
        "declined": "2",
        "ftd": "0",
    }


def test_registration_updater_updates_known_ids(tmp_path: Path) -> None:
    state = BoardState(
        "300",
        REGISTRATION_COLUMNS,
        [_item("a", "1001"), _item("b", "1002"), _item("c", "not-a-number")],
    )
    board = StubBoard({"300": state})
    backend = StubBackend(
        leads_by_ids=[
            {"id": 1001, "kycPercent": "PENDING", "status": True, "ftdAmount": 100},
            {"id": 1002, "kycPercent": "DENIED"},
            {"id": 9999, "kycPercent": "APPROVED"},
        ]
    )
    board.fail_items.add("b")
    job = RegistrationUpdaterJob(board, backend, [{"name": "Sales NL", "boardId": "300"}])

    result = job.run()

    assert backend.calls == [("leads_by_ids", [1001, 1002])]
    assert board.multi == [
        ("300", "a", {"kyc": {"index": 2}, "status": {"index": 7}, "declined": "0", "ftd": "100"})
    ]
    assert (result.boards, result.updated, result.failed) == (1, 1, 1)


# ---------------------------------------------------------------------------
# Retention updater
# ---------------------------------------------------------------------------

RETENTION_COLUMNS = [
    BoardColumn("crm", "CRM Login"),
    BoardColumn("assigned", "Retention Assigned", "date"),
    BoardColumn("dep", "Total Deposit"),
    BoardColumn("wd", "Total WD"),
    BoardColumn("depdec", "Total Deposit Declined"),
    BoardColumn("wddec", "Total WD Declined"),
]

TX_COLUMNS = [
    BoardColumn("login", "Login CRM"),
    BoardColumn("amount", "Deposit Amount"),
    BoardColumn("wdamount", "Withdrawal Amount"),
    BoardColumn("when", "Transaction Date", "date"),
]


def _retention_job(tmp_path: Path, totals) -> tuple[RetentionUpdaterJob, StubBoard, StubBackend]:
    state = BoardState(
        "400",
        RETENTION_COLUMNS,
        [
            _item("a", "1001", assigned="2024-02-01"),
            _item("b", "1002"),
            _item("c", "1003", group="Fresh clients"),
        ],
    )
    board = StubBoard({"400": state}, {"500": TX_COLUMNS})
    backend = StubBackend(transaction_totals=totals)
    job = RetentionUpdaterJob(
        board,
        backend,
        [{"name": "Retention EN", "boardId": "400", "transactionBoardId": "500"}],
        state_path=tmp_path / "sync_state.json",
    )
    return job, board, backend


def test_retention_updater_applies_totals_and_logs_transactions(tmp_path: Path) -> None:
    totals = [
        {"userId": 1001, "totalDeposit": 500, "totalWD": 0, "totalDepositDeclined": 1, "totalWDDeclined": 0},
        {"userId": 1002, "totalDeposit": 0, "totalWD": 0, "totalDepositDeclined": 0, "totalWDDeclined": 0},
    ]
    job, board, backend = _retention_job(tmp_path, totals)

    result = job.run()

    (_, clients), = backend.calls
    assert clients == [
        {"crm_id": 1001, "since": "2024-02-01T00:00:00Z"},
        {"crm_id": 1002, "since": "1970-01-01T00:00:00Z"},
    ]
    assert ("400", "a", "dep", 500) in board.changed
    assert ("400", "a", "depdec", 1) in board.changed
    assert len(board.changed) == 8
    assert len(board.created) == 1
    tx_board, tx_name, tx_values = board.created[0]
    assert (tx_board, tx_name) == ("500", "Client 1001")
    assert tx_values["login"] == "1001"
    assert tx_values["amount"] == "500.00"
    assert tx_values["wdamount"] == "0.00"
    assert set(tx_values["when"]) == {"date"}
    assert (result.updated, result.created) == (2, 1)

    state = json.loads((tmp_path / "sync_state.json").read_text())
    assert set(state) == {"Retention EN"}
    assert state["Retention EN"]["lastCheck"].endswith("Z")


def test_retention_updater_uses_last_check(tmp_path: Path) -> None:
    (tmp_path / "sync_state.json").write_text(
        json.dumps({"Retention EN": {"lastCheck": "2024-03-01T00:00:00Z"}})
    )
    job, _, backend = _retention_job(tmp_path, [])

    job.run()

    (_, clients), = backend.calls
    assert {c["since"] for c in clients} == {"2024-03-01T00:00:00Z"}


def test_retention_board_failure_keeps_previous_state(tmp_path: Path) -> None:
    job, board, _ = _retention_job(tmp_path, UpstreamError("totals failed"))

    result = job.run()

    assert result.failed == 1
    assert board.changed == []
    assert not (tmp_path / "sync_state.json").exists()


# ---------------------------------------------------------------------------
# Sales updater
# ---------------------------------------------------------------------------


def test_sales_updater_writes_ftd_amounts() -> None:
    state = BoardState(
        "600",
        [BoardColumn("crm", " CRM Login "), BoardColumn("ftd", "FTD Amount/Challenge")],
        [_item("a", "1001"), _item("b", "1002")],
    )
    board = StubBoard({"600": state})
    backend = StubBackend(
        transactions_by_user_ids=[
            {"user": {"id": 1001}, "amount": 250},
            {"user": {"id": 4242}, "amount": 10},
            {"user": None, "amount": 5},
        ]
    )
    job = SalesUpdaterJob(board, backend, [{"name": "Sales", "boardId": "600"}])

    result = job.run()

    assert backend.calls == [("transactions_by_user_ids", [1001, 1002])]
    assert board.changed == [("600", "a", "ftd", 250)]
    assert result.updated == 1


def test_sales_updater_skips_board_without_columns() -> None:
    board = StubBoard({"600": BoardState("600", [BoardColumn("crm", "CRM Login")], [])})
    backend = StubBackend()
    job = SalesUpdaterJob(board, backend, [{"name": "Sales", "boardId": "600"}])

    result = job.run()

    assert backend.calls == []
    assert result.updated == 0
