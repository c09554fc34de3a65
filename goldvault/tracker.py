"""
tracker.py - collection managers

Responsibilities:
 - keep the authoritative in-memory list for one record type
 - persist the whole list through DataService after every mutation
 - notify subscribers synchronously after each change
 - expose computed views consumed by the UI:
     ExpenseManager: total_for_period, by_category, recent
     InvestmentManager: total_value, total_profit, average_roi
     BudgetManager: usage, is_over_budget, should_alert, alerts
     SavingsGoalManager: add_to_goal, completed, active

Updates and deletes for an unknown id are no-ops, not errors.
"""

from dataclasses import replace
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Optional, Type, TypeVar
import datetime
import logging

from goldvault.analytics import AnalyticsService
from goldvault.models import Budget, BudgetPeriod, Expense, ExpenseCategory, Investment, SavingsGoal
from goldvault.storage import DataService
from goldvault.validation import ValidationPolicy, accept_all

logger = logging.getLogger(__name__)

T = TypeVar("T")

Subscriber = Callable[[str, List], None]


def _local_naive(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


# actions passed to subscribers
LOADED = "load"
ADDED = "add"
UPDATED = "update"
DELETED = "delete"
REPLACED = "replace"


class CollectionManager(Generic[T]):
    """
    Owner of one record type's in-memory list.

    Subclasses set `key` (the DataService key) and `record_type`.
    The list is loaded once on construction; a failed load is logged and
    the manager starts empty.
    """

    key: str = ""
    record_type: Type = object

    def __init__(
        self,
        data_service: DataService,
        analytics: Optional[AnalyticsService] = None,
        validate: ValidationPolicy = accept_all,
    ):
        self.data_service = data_service
        self.analytics = analytics or AnalyticsService()
        self.validate = validate
        self._records: List[T] = []
        self._subscribers: List[Subscriber] = []
        # result of the most recent save; False means memory is ahead of storage
        self.last_save_ok = True
        self.load()

    # -----------------------
    # State access
    # -----------------------
    @property
    def records(self) -> List[T]:
        """Copy of the current list, in insertion order."""
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._records))

    def get(self, record_id: str) -> Optional[T]:
        for r in self._records:
            if r.id == record_id:
                return r
        return None

    def _index_of(self, record_id: str) -> Optional[int]:
        for i, r in enumerate(self._records):
            if r.id == record_id:
                return i
        return None

    # -----------------------
    # Notifications
    # -----------------------
    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register callback(action, records). Returns a function that
        unsubscribes it again.
        """
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, action: str) -> None:
        snapshot = self.records
        for callback in list(self._subscribers):
            try:
                callback(action, snapshot)
            except Exception:
                logger.exception("Subscriber %r failed on %s/%s", callback, self.key, action)

    # -----------------------
    # Persistence
    # -----------------------
    def load(self) -> None:
        """Replace the in-memory list with what DataService has persisted."""
        result = self.data_service.load(self.key, self.record_type)
        if not result.ok:
            # unreadable data is treated as a fresh start
            logger.warning("Could not load %s, starting empty: %s", self.key, result.reason)
        self._records = result.get_or_else([])
        logger.info("Loaded %s (records=%d)", self.key, len(self._records))
        self._notify(LOADED)

    def _persist(self, action: str) -> None:
        self.last_save_ok = self.data_service.save(self._records, self.key)
        if not self.last_save_ok:
            logger.warning("%s changed in memory but was not saved (%s)", self.key, action)
        self._notify(action)

    # -----------------------
    # Mutations
    # -----------------------
    def add(self, record: T) -> T:
        self.validate(record)
        self._records.append(record)
        self._persist(ADDED)
        return record

    def update(self, record: T) -> bool:
        """Replace the entry with the same id in place. Returns False if absent."""
        idx = self._index_of(record.id)
        if idx is None:
            logger.info("Update for unknown %s id=%s ignored", self.key, record.id)
            return False
        self.validate(record)
        self._records[idx] = record
        self._persist(UPDATED)
        return True

    def delete(self, record_id: str) -> int:
        """Remove every entry with this id. Returns how many were removed."""
        kept = [r for r in self._records if r.id != record_id]
        removed = len(self._records) - len(kept)
        if not removed:
            logger.info("Delete for unknown %s id=%s ignored", self.key, record_id)
            return 0
        self._records = kept
        self._persist(DELETED)
        return removed

    def delete_at_positions(self, positions: Iterable[int]) -> int:
        """
        Remove the entries at the given positions of the current order.
        All positions refer to the list as it was before any removal;
        out-of-range positions are ignored.
        """
        targets = {p for p in positions if 0 <= p < len(self._records)}
        if not targets:
            return 0
        self._records = [r for i, r in enumerate(self._records) if i not in targets]
        self._persist(DELETED)
        return len(targets)

    def replace_all(self, records: Iterable[T]) -> None:
        """Swap in a whole new list. Every record is validated before anything changes."""
        records = list(records)
        for r in records:
            self.validate(r)
        self._records = records
        self._persist(REPLACED)


class ExpenseManager(CollectionManager[Expense]):
    key = DataService.EXPENSES_KEY
    record_type = Expense

    def total_for_period(self, period: BudgetPeriod, now: Optional[datetime.datetime] = None) -> float:
        return self.analytics.total_for_period(self._records, period, now)

    def by_category(
        self, period: BudgetPeriod, now: Optional[datetime.datetime] = None
    ) -> Dict[ExpenseCategory, float]:
        return self.analytics.by_category(self._records, period, now)

    def recent(self, limit: int = 5) -> List[Expense]:
        """Newest expenses first. Aware dates are compared in local time."""
        return sorted(self._records, key=lambda e: _local_naive(e.date), reverse=True)[:limit]


class InvestmentManager(CollectionManager[Investment]):
    key = DataService.INVESTMENTS_KEY
    record_type = Investment

    @property
    def total_value(self) -> float:
        return self.analytics.total_investment_value(self._records)

    @property
    def total_invested(self) -> float:
        return self.analytics.total_invested(self._records)

    @property
    def total_profit(self) -> float:
        return self.analytics.total_investment_profit(self._records)

    @property
    def average_roi(self) -> float:
        return self.analytics.average_roi(self._records)


class BudgetManager(CollectionManager[Budget]):
    key = DataService.BUDGETS_KEY
    record_type = Budget

    def usage(
        self, budget: Budget, expenses: Iterable[Expense], now: Optional[datetime.datetime] = None
    ) -> float:
        return self.analytics.budget_usage(budget, list(expenses), now)

    def is_over_budget(
        self, budget: Budget, expenses: Iterable[Expense], now: Optional[datetime.datetime] = None
    ) -> bool:
        return self.analytics.is_over_budget(budget, list(expenses), now)

    def should_alert(
        self, budget: Budget, expenses: Iterable[Expense], now: Optional[datetime.datetime] = None
    ) -> bool:
        return self.analytics.should_alert(budget, list(expenses), now)

    def alerts(self, expenses: Iterable[Expense], now: Optional[datetime.datetime] = None) -> List[Budget]:
        """Budgets whose alert threshold is reached, in list order."""
        expenses = list(expenses)
        return [b for b in self._records if self.analytics.should_alert(b, expenses, now)]


class SavingsGoalManager(CollectionManager[SavingsGoal]):
    key = DataService.SAVINGS_GOALS_KEY
    record_type = SavingsGoal

    def add_to_goal(self, goal_id: str, amount: float) -> bool:
        """
        Increase a goal's current amount. The amount is not capped at the
        target. Returns False if the goal does not exist.
        """
        idx = self._index_of(goal_id)
        if idx is None:
            logger.info("add_to_goal for unknown id=%s ignored", goal_id)
            return False
        goal = self._records[idx]
        updated = replace(goal, current_amount=goal.current_amount + amount)
        self.validate(updated)
        self._records[idx] = updated
        self._persist(UPDATED)
        return True

    def completed(self) -> List[SavingsGoal]:
        return [g for g in self._records if g.is_completed]

    def active(self) -> List[SavingsGoal]:
        return [g for g in self._records if not g.is_completed]
