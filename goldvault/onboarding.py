"""
onboarding.py - first-run setup

Turns the answers collected by the onboarding screens into records: one
monthly budget per chosen category (the total split evenly) and, if the user
named one, a first savings goal due a year from now.
"""

from typing import Iterable, List, Optional, Tuple
import datetime
import logging

from goldvault.models import Budget, BudgetPeriod, ExpenseCategory, SavingsGoal
from goldvault.storage import DataService

logger = logging.getLogger(__name__)

DEFAULT_ALERT_THRESHOLD = 80.0
DEFAULT_GOAL_ICON = "target"


def one_year_after(value: datetime.datetime) -> datetime.datetime:
    try:
        return value.replace(year=value.year + 1)
    except ValueError:
        # Feb 29 -> Feb 28
        return value.replace(year=value.year + 1, day=28)


def split_budget(total_budget: float, categories: Iterable[ExpenseCategory]) -> List[Budget]:
    """One monthly budget per distinct category, each with an equal share of the total."""
    chosen = set(categories)
    ordered = [c for c in ExpenseCategory if c in chosen]
    share = total_budget / max(len(ordered), 1)
    return [
        Budget(
            category=c,
            limit=share,
            period=BudgetPeriod.MONTHLY,
            alert_threshold=DEFAULT_ALERT_THRESHOLD,
        )
        for c in ordered
    ]


def onboarding_records(
    total_budget: float,
    categories: Iterable[ExpenseCategory],
    goal_title: str = "",
    goal_amount: float = 0.0,
    now: Optional[datetime.datetime] = None,
) -> Tuple[List[Budget], Optional[SavingsGoal]]:
    """The budgets and optional first goal for the onboarding answers, unsaved."""
    now = now or datetime.datetime.now()
    goal = None
    if goal_title.strip() and goal_amount > 0:
        goal = SavingsGoal(
            title=goal_title.strip(),
            target_amount=goal_amount,
            current_amount=0.0,
            deadline=one_year_after(now),
            icon=DEFAULT_GOAL_ICON,
        )
    return split_budget(total_budget, categories), goal


def complete_onboarding(
    data_service: DataService,
    total_budget: float,
    categories: Iterable[ExpenseCategory],
    goal_title: str = "",
    goal_amount: float = 0.0,
    now: Optional[datetime.datetime] = None,
) -> Tuple[List[Budget], Optional[SavingsGoal]]:
    """
    Persist the onboarding result and mark onboarding as done.

    The budgets replace any persisted budgets; the goal is appended to the
    persisted goals. Use this before any managers exist; once they do, go
    through GoldVault.complete_onboarding so their in-memory state is kept.
    """
    budgets, goal = onboarding_records(total_budget, categories, goal_title, goal_amount, now)
    if goal is not None:
        goals = data_service.load_savings_goals().get_or_else([])
        goals.append(goal)
        data_service.save_savings_goals(goals)
    data_service.save_budgets(budgets)
    mark_onboarded(data_service, total_budget)
    logger.info("Onboarding complete (budgets=%d, goal=%s)", len(budgets), goal is not None)
    return budgets, goal


def mark_onboarded(data_service: DataService, total_budget: float) -> None:
    data_service.set_initial_budget(total_budget)
    data_service.set_completed_onboarding(True)
