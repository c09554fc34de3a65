"""
analytics.py - derived figures over in-memory collections

Everything here is pure: no mutation, no I/O. Period filtering compares each
record's date with a reference `now` through a Calendar, and both the
calendar and the clock are injected so tests can pin them.
"""

from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional
import calendar as _calendar
import datetime

from goldvault.models import Budget, BudgetPeriod, Expense, ExpenseCategory, Investment

Clock = Callable[[], datetime.datetime]


class Calendar:
    """
    Calendar-granularity comparisons ("is this in the same week as now?").

    first_weekday: 0 = Monday ... 6 = Sunday. Defaults to the host setting
    from the standard `calendar` module.
    """

    def __init__(self, first_weekday: Optional[int] = None):
        if first_weekday is None:
            first_weekday = _calendar.firstweekday()
        if not 0 <= first_weekday <= 6:
            raise ValueError(f"first_weekday must be 0..6, got {first_weekday}")
        self.first_weekday = first_weekday

    @staticmethod
    def _align(value: datetime.datetime, reference: datetime.datetime) -> datetime.datetime:
        # aware datetimes are compared in the reference's timezone
        if value.tzinfo is not None and reference.tzinfo is not None:
            return value.astimezone(reference.tzinfo)
        return value

    def start_of_week(self, value: datetime.datetime) -> datetime.date:
        d = value.date()
        return d - datetime.timedelta(days=(d.weekday() - self.first_weekday) % 7)

    def same_day(self, value: datetime.datetime, reference: datetime.datetime) -> bool:
        return self._align(value, reference).date() == reference.date()

    def same_week(self, value: datetime.datetime, reference: datetime.datetime) -> bool:
        return self.start_of_week(self._align(value, reference)) == self.start_of_week(reference)

    def same_month(self, value: datetime.datetime, reference: datetime.datetime) -> bool:
        value = self._align(value, reference)
        return (value.year, value.month) == (reference.year, reference.month)

    def same_year(self, value: datetime.datetime, reference: datetime.datetime) -> bool:
        return self._align(value, reference).year == reference.year

    def in_period(self, value: datetime.datetime, period: BudgetPeriod, reference: datetime.datetime) -> bool:
        if period is BudgetPeriod.DAILY:
            return self.same_day(value, reference)
        if period is BudgetPeriod.WEEKLY:
            return self.same_week(value, reference)
        if period is BudgetPeriod.MONTHLY:
            return self.same_month(value, reference)
        if period is BudgetPeriod.YEARLY:
            return self.same_year(value, reference)
        raise ValueError(f"unknown period {period!r}")


class AnalyticsService:
    """Totals, category breakdowns, budget usage and portfolio metrics."""

    def __init__(self, calendar: Optional[Calendar] = None, clock: Optional[Clock] = None):
        self.calendar = calendar or Calendar()
        self.clock = clock or datetime.datetime.now

    def _now(self, now: Optional[datetime.datetime]) -> datetime.datetime:
        return now if now is not None else self.clock()

    # -----------------------
    # Expenses
    # -----------------------
    def filter_by_period(
        self,
        expenses: Iterable[Expense],
        period: BudgetPeriod,
        now: Optional[datetime.datetime] = None,
    ) -> List[Expense]:
        ref = self._now(now)
        return [e for e in expenses if self.calendar.in_period(e.date, period, ref)]

    def total_for_period(
        self,
        expenses: Iterable[Expense],
        period: BudgetPeriod,
        now: Optional[datetime.datetime] = None,
    ) -> float:
        return sum((e.amount for e in self.filter_by_period(expenses, period, now)), 0.0)

    def by_category(
        self,
        expenses: Iterable[Expense],
        period: BudgetPeriod,
        now: Optional[datetime.datetime] = None,
    ) -> Dict[ExpenseCategory, float]:
        """Sum per category; categories without expenses in the period are absent."""
        totals: Dict[ExpenseCategory, float] = defaultdict(float)
        for e in self.filter_by_period(expenses, period, now):
            totals[e.category] += e.amount
        return dict(totals)

    # -----------------------
    # Budgets
    # -----------------------
    def budget_usage(
        self,
        budget: Budget,
        expenses: Iterable[Expense],
        now: Optional[datetime.datetime] = None,
    ) -> float:
        """Percent of the limit spent in the budget's current period, capped at 100."""
        if budget.limit <= 0:
            return 0.0
        spent = sum(
            (e.amount for e in self.filter_by_period(expenses, budget.period, now)
             if e.category == budget.category),
            0.0,
        )
        return min(spent / budget.limit * 100, 100.0)

    def is_over_budget(
        self,
        budget: Budget,
        expenses: Iterable[Expense],
        now: Optional[datetime.datetime] = None,
    ) -> bool:
        return self.budget_usage(budget, expenses, now) >= 100

    def should_alert(
        self,
        budget: Budget,
        expenses: Iterable[Expense],
        now: Optional[datetime.datetime] = None,
    ) -> bool:
        return self.budget_usage(budget, expenses, now) >= budget.alert_threshold

    # -----------------------
    # Investments
    # -----------------------
    def total_investment_value(self, investments: Iterable[Investment]) -> float:
        return sum((i.total_value for i in investments), 0.0)

    def total_invested(self, investments: Iterable[Investment]) -> float:
        return sum((i.total_invested for i in investments), 0.0)

    def total_investment_profit(self, investments: Iterable[Investment]) -> float:
        return sum((i.profit for i in investments), 0.0)

    def average_roi(self, investments: Iterable[Investment]) -> float:
        rois = [i.profit_percentage for i in investments]
        if not rois:
            return 0.0
        return sum(rois) / len(rois)
