import datetime
import json

import pytest

from goldvault.exceptions import StorageError
from goldvault.models import Budget, BudgetPeriod, Expense, ExpenseCategory, Investment, InvestmentType, SavingsGoal
from goldvault.storage import DataService, GoogleSheetsStore, JsonFileStore, LoadResult, MemoryStore

WHEN = datetime.datetime(2026, 10, 19, 8, 15)


class FailingStore(MemoryStore):
    """MemoryStore that refuses writes/removals for selected keys."""

    name = "failing"

    def __init__(self, fail_keys=(), fail_reads=False):
        super().__init__()
        self.fail_keys = set(fail_keys)
        self.fail_reads = fail_reads

    def get(self, key):
        if self.fail_reads:
            raise StorageError("disk on fire")
        return super().get(key)

    def set(self, key, value):
        if key in self.fail_keys:
            raise StorageError("read-only")
        super().set(key, value)

    def remove(self, key):
        if key in self.fail_keys:
            raise StorageError("read-only")
        super().remove(key)


def sample_records():
    return {
        DataService.EXPENSES_KEY: (Expense, [
            Expense(title="Lunch", amount=12.5, category=ExpenseCategory.FOOD, date=WHEN, notes="team"),
            Expense(title="Bus", amount=2.4, category=ExpenseCategory.TRANSPORTATION, date=WHEN),
        ]),
        DataService.INVESTMENTS_KEY: (Investment, [
            Investment(name="Acme", symbol="ACME", quantity=10, purchase_price=5, current_price=8,
                       type=InvestmentType.STOCKS, purchase_date=WHEN, amount=50),
        ]),
        DataService.BUDGETS_KEY: (Budget, [
            Budget(category=ExpenseCategory.FOOD, limit=300, period=BudgetPeriod.MONTHLY, alert_threshold=80),
            Budget(category=ExpenseCategory.OTHER, limit=20, period=BudgetPeriod.DAILY, alert_threshold=50),
        ]),
        DataService.SAVINGS_GOALS_KEY: (SavingsGoal, [
            SavingsGoal(title="Emergency fund", target_amount=1000, current_amount=250,
                        deadline=WHEN.replace(year=2027), icon="shield"),
        ]),
    }


def test_save_then_load_preserves_every_collection(tmp_path):
    service = DataService(JsonFileStore(str(tmp_path / "vault.json")))
    for key, (record_type, records) in sample_records().items():
        assert service.save(records, key) is True
        result = service.load(key, record_type)
        assert result.ok
        assert result.records == records


def test_absent_key_loads_empty():
    result = DataService(MemoryStore()).load_expenses()
    assert result.ok
    assert result.records == []


def test_persisted_layout_uses_labels():
    store = MemoryStore()
    service = DataService(store)
    service.save_budgets(sample_records()[DataService.BUDGETS_KEY][1])
    raw = json.loads(store.data["budgets"])
    assert raw[0]["category"] == "Food"
    assert raw[0]["period"] == "Monthly"
    assert raw[0]["alertThreshold"] == 80


@pytest.mark.parametrize("raw", [
    "{not json",
    json.dumps({"expenses": []}),
    json.dumps([1, 2]),
    json.dumps([{"id": "E1", "title": "x", "amount": 1, "category": "Nope", "date": "2026-01-01"}]),
    json.dumps([{"id": "E1", "title": "x"}]),
    # values stored as decoded JSON instead of text
    [{"id": "E1"}],
    {"expenses": []},
    42,
])
def test_malformed_data_is_a_load_failure(raw):
    result = DataService(MemoryStore({"expenses": raw})).load_expenses()
    assert not result.ok
    assert result.reason
    assert result.get_or_else([]) == []


def test_storage_error_on_read_is_a_load_failure():
    result = DataService(FailingStore(fail_reads=True)).load_budgets()
    assert not result.ok
    assert "storage error" in result.reason


def test_write_failure_returns_false_and_is_logged(caplog):
    service = DataService(FailingStore(fail_keys={"expenses"}))
    with caplog.at_level("WARNING", logger="goldvault.storage"):
        ok = service.save_expenses(sample_records()[DataService.EXPENSES_KEY][1])
    assert ok is False
    assert "Could not save expenses" in caplog.text


def test_unserializable_record_returns_false():
    service = DataService(MemoryStore())
    assert service.save([object()], "expenses") is False
    assert service.store.get("expenses") is None


def test_save_replaces_previous_value():
    store = MemoryStore()
    service = DataService(store)
    expenses = sample_records()[DataService.EXPENSES_KEY][1]
    service.save_expenses(expenses)
    service.save_expenses(expenses[:1])
    assert service.load_expenses().records == expenses[:1]


def test_onboarding_flags():
    service = DataService(MemoryStore())
    assert service.has_completed_onboarding() is False
    assert service.initial_budget() == 0


def test_flags_stored_as_decoded_values_fall_back_to_defaults():
    service = DataService(MemoryStore({"hasCompletedOnboarding": True, "initialBudget": 250}))
    assert service.has_completed_onboarding() is False
    assert service.initial_budget() == 0


def test_json_file_with_decoded_values_loads_empty(tmp_path):
    path = tmp_path / "vault.json"
    path.write_text(json.dumps({"expenses": [{"id": "E1"}], "hasCompletedOnboarding": True}), encoding="utf-8")
    service = DataService(JsonFileStore(str(path)))
    assert not service.load_expenses().ok
    assert service.has_completed_onboarding() is False


def test_json_file_store_recovers_from_corrupt_file_on_write(tmp_path, caplog):
    path = tmp_path / "vault.json"
    path.write_text("{broken", encoding="utf-8")
    service = DataService(JsonFileStore(str(path)))
    with caplog.at_level("WARNING", logger="goldvault.storage"):
        assert service.save_expenses(sample_records()[DataService.EXPENSES_KEY][1]) is True
    assert "Moving unreadable data file" in caplog.text
    assert (tmp_path / "vault.json.corrupt").read_text(encoding="utf-8") == "{broken"
    assert len(service.load_expenses().records) == 2


def test_clear_all_after_corrupt_file(tmp_path):
    path = tmp_path / "vault.json"
    path.write_text("[not an object]", encoding="utf-8")
    service = DataService(JsonFileStore(str(path)))
    assert service.clear_all() is True
    assert service.load_expenses().ok
    assert service.has_completed_onboarding() is False
    service.set_completed_onboarding(True)
    service.set_initial_budget(1200)
    assert service.has_completed_onboarding() is True
    assert service.initial_budget() == 1200


def test_malformed_flags_fall_back_to_defaults():
    service = DataService(MemoryStore({"hasCompletedOnboarding": "yes please", "initialBudget": "true"}))
    assert service.has_completed_onboarding() is False
    assert service.initial_budget() == 0


def test_clear_all_removes_every_key():
    store = MemoryStore({key: "[]" for key in DataService.ALL_KEYS})
    store.set("unrelated", "1")
    assert DataService(store).clear_all() is True
    assert store.data == {"unrelated": "1"}


def test_clear_all_keeps_going_after_a_failure():
    store = FailingStore(fail_keys={"investments"})
    for key in DataService.ALL_KEYS:
        MemoryStore.set(store, key, "[]")
    assert DataService(store).clear_all() is False
    assert list(store.data) == ["investments"]


def test_load_result_helpers():
    assert LoadResult.success([1]).get_or_else([]) == [1]
    failed = LoadResult.failure("")
    assert not failed.ok
    assert failed.reason == "unknown error"
    assert failed.get_or_else(["fallback"]) == ["fallback"]


def test_json_file_store_missing_and_corrupt_files(tmp_path):
    path = tmp_path / "nested" / "vault.json"
    store = JsonFileStore(str(path))
    assert store.get("expenses") is None
    store.set("expenses", "[]")
    assert json.loads(path.read_text(encoding="utf-8")) == {"expenses": "[]"}
    store.remove("expenses")
    assert store.get("expenses") is None
    # no temp files left behind
    assert [p.name for p in path.parent.iterdir()] == ["vault.json"]

    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(StorageError):
        store.get("expenses")
    assert not DataService(store).load_expenses().ok


# -----------------------
# Google Sheets store with an in-memory fake spreadsheet
# -----------------------
class FakeWorksheet:
    def __init__(self):
        self.rows = []

    def row_values(self, n):
        return list(self.rows[n - 1]) if len(self.rows) >= n else []

    def update(self, range_name, values, value_input_option=None):
        assert range_name == "A1"
        assert value_input_option == "RAW"
        self.rows[0:len(values)] = [list(v) for v in values]

    def clear(self):
        self.rows = []

    def get_all_values(self):
        return [list(r) for r in self.rows]


class FakeSpreadsheet:
    def __init__(self):
        self.worksheets = {}

    def worksheet(self, title):
        if title not in self.worksheets:
            raise LookupError(title)
        return self.worksheets[title]

    def add_worksheet(self, title, rows, cols):
        self.worksheets[title] = FakeWorksheet()
        return self.worksheets[title]


def test_google_sheets_store_round_trip():
    sheet = FakeSpreadsheet()
    store = GoogleSheetsStore(spreadsheet=sheet)
    assert store.available
    assert sheet.worksheets["kv"].rows == [["key", "value"]]

    service = DataService(store)
    goals = sample_records()[DataService.SAVINGS_GOALS_KEY][1]
    assert service.save_savings_goals(goals)
    service.set_completed_onboarding(True)
    assert service.load_savings_goals().records == goals
    assert service.has_completed_onboarding() is True

    assert service.clear_all() is True
    assert sheet.worksheets["kv"].rows == [["key", "value"]]


def test_google_sheets_store_unavailable_without_sheet_id():
    store = GoogleSheetsStore(sheet_id="")
    assert store.available is False
    assert store.reason == "GOOGLE_SHEET_ID is not set"
    with pytest.raises(StorageError):
        store.get("expenses")
    assert not DataService(store).load_expenses().ok
