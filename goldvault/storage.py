"""
storage.py - key-value backends and the persistence gateway

Responsibilities:
 - KeyValueStore backends: in-memory, local JSON file (default) and an
   optional Google Sheets worksheet for durable storage
 - DataService: save/load whole record collections under one key per record
   type, onboarding flags, and clear_all()

Every save rewrites the full collection under its key. Failures never reach
the caller as exceptions: saves return False and log, loads return a
LoadResult failure that the caller decides how to handle.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, Sequence, Type, TypeVar
import ast
import json
import logging
import os
import shutil
import tempfile

from goldvault.exceptions import StorageError
from goldvault.models import Budget, Expense, Investment, SavingsGoal

# Optional Google Sheets backend imports; the store reports itself unavailable
# when these are missing.
try:
    import gspread
    from google.oauth2.service_account import Credentials
except ImportError:
    gspread = None
    Credentials = None

logger = logging.getLogger(__name__)

T = TypeVar("T")


class KeyValueStore(ABC):
    """String-keyed store of string values. Backend failures raise StorageError."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...


class MemoryStore(KeyValueStore):
    """Dict-backed store, for tests and throwaway sessions."""

    name = "memory"

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """
    All keys in a single JSON object on disk: {key: value, ...}.

    A missing file reads as empty. Writes go to a temp file in the same
    directory and are moved over the target, so a crash mid-write leaves the
    previous file intact.
    """

    name = "local_json"

    def __init__(self, path: str):
        self.path = os.path.abspath(path)

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            raise StorageError(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageError(f"{self.path} does not contain a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        dirn = os.path.dirname(self.path)
        try:
            os.makedirs(dirn, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix="tmp_goldvault_", dir=dirn, text=True)
        except OSError as exc:
            raise StorageError(f"cannot write {self.path}: {exc}") from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            shutil.move(tmp_path, self.path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"cannot write {self.path}: {exc}") from exc

    def _read_for_write(self) -> Dict[str, str]:
        """
        Current contents before a write. An unreadable file is moved aside to
        `<path>.corrupt` and writing starts over from an empty object.
        """
        try:
            return self._read()
        except StorageError as exc:
            aside = self.path + ".corrupt"
            logger.warning("Moving unreadable data file to %s: %s", aside, exc)
            try:
                shutil.move(self.path, aside)
            except OSError as move_exc:
                raise StorageError(f"cannot move {self.path} aside: {move_exc}") from move_exc
            return {}

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_for_write()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read_for_write()
        if key in data:
            del data[key]
            self._write(data)


class GoogleSheetsStore(KeyValueStore):
    """
    Google Sheets key-value backend.

    Data layout:
      - worksheet "kv": header row ["key", "value"], then one row per key

    Each write rewrites the whole worksheet, mirroring how DataService
    rewrites whole collections.
    """

    name = "google_sheets"

    WORKSHEET_NAME = "kv"
    HEADERS = ["key", "value"]
    SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

    def __init__(
        self,
        sheet_id: str = "",
        service_account_json: str = "",
        service_account_file: str = "",
        spreadsheet: Any = None,
    ):
        self.available = False
        self.reason = ""
        self.sheet_id = (sheet_id or "").strip()
        self.service_account_json = (service_account_json or "").strip()
        self.service_account_file = (service_account_file or "").strip()
        self._spreadsheet = spreadsheet
        self._ws = None

        if self._spreadsheet is None:
            if not self.sheet_id:
                self.reason = "GOOGLE_SHEET_ID is not set"
                return
            if gspread is None or Credentials is None:
                self.reason = "Google Sheets dependencies are unavailable"
                return

        try:
            if self._spreadsheet is None:
                client = gspread.authorize(self._build_credentials())
                self._spreadsheet = client.open_by_key(self.sheet_id)
            self._ws = self._get_or_create_worksheet(self.WORKSHEET_NAME, rows=100, cols=2)
            self._ensure_headers()
            self.available = True
        except Exception as exc:
            self.available = False
            self.reason = f"Google Sheets init failed ({exc.__class__.__name__})"
            logger.warning("Google Sheets backend unavailable: %s", self.reason)

    def _build_credentials(self):
        if self.service_account_json:
            try:
                info = json.loads(self.service_account_json)
            except ValueError:
                # tolerate Python-dict style strings often pasted into env vars
                info = ast.literal_eval(self.service_account_json)
            if not isinstance(info, dict):
                raise ValueError("GOOGLE_SERVICE_ACCOUNT_JSON must decode to an object")
            return Credentials.from_service_account_info(info, scopes=self.SCOPES)

        if self.service_account_file:
            return Credentials.from_service_account_file(self.service_account_file, scopes=self.SCOPES)

        # Fallback to application default credentials if available.
        import google.auth
        creds, _ = google.auth.default(scopes=self.SCOPES)
        return creds

    def _get_or_create_worksheet(self, title: str, rows: int, cols: int):
        try:
            return self._spreadsheet.worksheet(title)
        except Exception:
            return self._spreadsheet.add_worksheet(title=title, rows=rows, cols=cols)

    def _ensure_headers(self):
        first = self._ws.row_values(1) or []
        if [x.strip() for x in first] != self.HEADERS:
            self._ws.update(range_name="A1", values=[self.HEADERS], value_input_option="RAW")

    def _read_all(self) -> Dict[str, str]:
        if not self.available:
            raise StorageError(f"Google Sheets unavailable: {self.reason}")
        try:
            rows = self._ws.get_all_values() or []
        except Exception as exc:
            logger.exception("Failed to read key-value rows from Google Sheets")
            raise StorageError("Google Sheets read failed") from exc
        out: Dict[str, str] = {}
        for row in rows[1:]:
            key = str(row[0]).strip() if len(row) > 0 else ""
            if key:
                out[key] = str(row[1]) if len(row) > 1 else ""
        return out

    def _write_all(self, data: Dict[str, str]) -> None:
        rows = [self.HEADERS] + [[k, v] for k, v in data.items()]
        try:
            # RAW keeps JSON payloads from being parsed as formulas
            self._ws.clear()
            self._ws.update(range_name="A1", values=rows, value_input_option="RAW")
        except Exception as exc:
            logger.exception("Failed to write key-value rows to Google Sheets")
            raise StorageError("Google Sheets write failed") from exc

    def get(self, key: str) -> Optional[str]:
        return self._read_all().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)


@dataclass
class LoadResult(Generic[T]):
    """Outcome of DataService.load(): either records or a failure reason."""
    records: List[T] = field(default_factory=list)
    reason: str = ""

    @property
    def ok(self) -> bool:
        return not self.reason

    def get_or_else(self, default: List[T]) -> List[T]:
        return list(self.records) if self.ok else default

    @classmethod
    def success(cls, records: Sequence[T]) -> "LoadResult[T]":
        return cls(records=list(records))

    @classmethod
    def failure(cls, reason: str) -> "LoadResult[T]":
        return cls(reason=reason or "unknown error")


class DataService:
    """
    Persistence gateway: one key per record collection plus onboarding flags.
    """

    EXPENSES_KEY = "expenses"
    INVESTMENTS_KEY = "investments"
    BUDGETS_KEY = "budgets"
    SAVINGS_GOALS_KEY = "savingsGoals"
    ONBOARDING_KEY = "hasCompletedOnboarding"
    INITIAL_BUDGET_KEY = "initialBudget"

    ALL_KEYS = (
        EXPENSES_KEY,
        INVESTMENTS_KEY,
        BUDGETS_KEY,
        SAVINGS_GOALS_KEY,
        ONBOARDING_KEY,
        INITIAL_BUDGET_KEY,
    )

    def __init__(self, store: KeyValueStore):
        self.store = store

    # -----------------------
    # Generic collections
    # -----------------------
    def save(self, records: Sequence[Any], key: str) -> bool:
        """
        Serialize the whole ordered collection and write it under `key`.
        Returns False (and logs) when serialization or the write fails.
        """
        try:
            payload = json.dumps([r.to_dict() for r in records])
        except (TypeError, ValueError, AttributeError) as exc:
            logger.warning("Could not serialize %s (%d records): %s", key, len(records), exc)
            return False
        try:
            self.store.set(key, payload)
        except StorageError as exc:
            logger.warning("Could not save %s to %s store: %s", key, self.store.name, exc)
            return False
        logger.info("Saved %s to %s store (records=%d)", key, self.store.name, len(records))
        return True

    def load(self, key: str, record_type: Type[T]) -> LoadResult:
        """
        Read the collection under `key`. An absent key is an empty collection;
        anything that does not decode into a list of `record_type` is a failure.
        """
        try:
            raw = self.store.get(key)
        except StorageError as exc:
            return LoadResult.failure(f"storage error: {exc}")
        if raw is None:
            return LoadResult.success([])
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as exc:
            return LoadResult.failure(f"malformed JSON under {key!r}: {exc}")
        if not isinstance(data, list):
            return LoadResult.failure(f"expected a list under {key!r}, got {type(data).__name__}")
        records = []
        for i, item in enumerate(data):
            if not isinstance(item, dict):
                return LoadResult.failure(f"item {i} under {key!r} is not an object")
            try:
                records.append(record_type.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                return LoadResult.failure(f"item {i} under {key!r} is invalid: {exc!r}")
        return LoadResult.success(records)

    # -----------------------
    # Typed helpers
    # -----------------------
    def save_expenses(self, expenses: Sequence[Expense]) -> bool:
        return self.save(expenses, self.EXPENSES_KEY)

    def load_expenses(self) -> LoadResult:
        return self.load(self.EXPENSES_KEY, Expense)

    def save_investments(self, investments: Sequence[Investment]) -> bool:
        return self.save(investments, self.INVESTMENTS_KEY)

    def load_investments(self) -> LoadResult:
        return self.load(self.INVESTMENTS_KEY, Investment)

    def save_budgets(self, budgets: Sequence[Budget]) -> bool:
        return self.save(budgets, self.BUDGETS_KEY)

    def load_budgets(self) -> LoadResult:
        return self.load(self.BUDGETS_KEY, Budget)

    def save_savings_goals(self, goals: Sequence[SavingsGoal]) -> bool:
        return self.save(goals, self.SAVINGS_GOALS_KEY)

    def load_savings_goals(self) -> LoadResult:
        return self.load(self.SAVINGS_GOALS_KEY, SavingsGoal)

    # -----------------------
    # Onboarding flags
    # -----------------------
    def _get_json(self, key: str, default: Any, check: Callable[[Any], bool]) -> Any:
        try:
            raw = self.store.get(key)
        except StorageError as exc:
            logger.warning("Could not read %s: %s", key, exc)
            return default
        if raw is None:
            return default
        try:
            value = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring malformed value under %s", key)
            return default
        return value if check(value) else default

    def _set_json(self, key: str, value: Any) -> bool:
        try:
            self.store.set(key, json.dumps(value))
        except StorageError as exc:
            logger.warning("Could not save %s: %s", key, exc)
            return False
        return True

    def has_completed_onboarding(self) -> bool:
        return self._get_json(self.ONBOARDING_KEY, False, lambda v: isinstance(v, bool))

    def set_completed_onboarding(self, done: bool = True) -> bool:
        return self._set_json(self.ONBOARDING_KEY, bool(done))

    def initial_budget(self) -> float:
        value = self._get_json(
            self.INITIAL_BUDGET_KEY,
            0.0,
            lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
        )
        return float(value)

    def set_initial_budget(self, amount: float) -> bool:
        return self._set_json(self.INITIAL_BUDGET_KEY, float(amount))

    def clear_all(self) -> bool:
        """
        Remove every collection and onboarding flag, one key at a time.
        There is no transaction: a failing removal is logged and the rest are
        still attempted. Returns True only when every removal succeeded.
        """
        ok = True
        for key in self.ALL_KEYS:
            try:
                self.store.remove(key)
            except StorageError as exc:
                logger.warning("Could not remove %s: %s", key, exc)
                ok = False
        logger.info("Cleared persisted data from %s store (complete=%s)", self.store.name, ok)
        return ok
