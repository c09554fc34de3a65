"""
app.py - composition root

Builds the store, DataService, AnalyticsService and the four managers and
hands them to presentation code as one object. Nothing here is global: each
GoldVault owns its own services.

    vault = GoldVault.from_settings(Settings.from_env())
    vault.expenses.add(Expense(title="Lunch", amount=12.5, category=ExpenseCategory.FOOD))
"""

from typing import Iterable, Optional, Tuple
import logging

from goldvault.analytics import AnalyticsService, Calendar, Clock
from goldvault.config import Settings, build_store, configure_logging
from goldvault.models import ExpenseCategory
from goldvault.onboarding import mark_onboarded, onboarding_records
from goldvault.storage import DataService, KeyValueStore
from goldvault.tracker import BudgetManager, ExpenseManager, InvestmentManager, SavingsGoalManager
from goldvault.validation import ValidationPolicy, accept_all, get_policy

logger = logging.getLogger(__name__)


class GoldVault:
    """All services for one store, wired together."""

    def __init__(
        self,
        store: KeyValueStore,
        analytics: Optional[AnalyticsService] = None,
        validate: ValidationPolicy = accept_all,
        storage_message: str = "",
    ):
        self.store = store
        self.storage_message = storage_message or f"Using {store.name} storage."
        self.data_service = DataService(store)
        self.analytics = analytics or AnalyticsService()
        self.validate = validate
        self._build_managers()

    def _build_managers(self):
        args = (self.data_service, self.analytics, self.validate)
        self.expenses = ExpenseManager(*args)
        self.investments = InvestmentManager(*args)
        self.budgets = BudgetManager(*args)
        self.savings_goals = SavingsGoalManager(*args)

    @classmethod
    def from_settings(cls, settings: Settings, clock: Optional[Clock] = None) -> "GoldVault":
        configure_logging(settings.log_level)
        store, message = build_store(settings)
        analytics = AnalyticsService(Calendar(settings.first_weekday), clock)
        return cls(store, analytics, get_policy(settings.validation), message)

    def storage_status(self) -> Tuple[str, str]:
        """Backend name and a short message for the settings screen."""
        return self.store.name, self.storage_message

    @property
    def needs_onboarding(self) -> bool:
        return not self.data_service.has_completed_onboarding()

    def complete_onboarding(
        self,
        total_budget: float,
        categories: Iterable[ExpenseCategory],
        goal_title: str = "",
        goal_amount: float = 0.0,
    ):
        """
        Apply onboarding through the managers: the budgets replace the current
        list and the goal is added. Unsaved in-memory records are kept and the
        validation policy applies.
        """
        budgets, goal = onboarding_records(
            total_budget,
            categories,
            goal_title=goal_title,
            goal_amount=goal_amount,
            now=self.analytics.clock(),
        )
        self.budgets.replace_all(budgets)
        if goal is not None:
            self.savings_goals.add(goal)
        mark_onboarded(self.data_service, total_budget)
        logger.info("Onboarding complete (budgets=%d, goal=%s)", len(budgets), goal is not None)
        return budgets, goal

    def clear_all(self) -> bool:
        """Wipe persisted data and empty every manager."""
        ok = self.data_service.clear_all()
        for manager in (self.expenses, self.investments, self.budgets, self.savings_goals):
            manager.load()
        return ok
