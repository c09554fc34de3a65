"""
models.py - Record type definitions

This file defines the four record types tracked by GoldVault (Expense,
Investment, Budget, SavingsGoal) and the enumerations they use.
Records are serialized to/from plain dicts so DataService can persist them
as JSON lists, one key per record type.

Enumerations persist as their human-readable label ("Food", "Monthly"),
never as a code, so data written by older versions keeps loading.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict
import datetime
import uuid


def new_id() -> str:
    """Fresh opaque identity for a record."""
    return str(uuid.uuid4()).upper()


def _now() -> datetime.datetime:
    return datetime.datetime.now()


def format_date(value: datetime.datetime) -> str:
    return value.isoformat()


def parse_date(value: Any) -> datetime.datetime:
    """Parse an ISO 8601 timestamp; plain "YYYY-MM-DD" dates are accepted too."""
    if isinstance(value, datetime.datetime):
        return value
    if not isinstance(value, str):
        raise TypeError(f"expected ISO date string, got {type(value).__name__}")
    text = value.strip()
    # fromisoformat() only learned the "Z" suffix in 3.11
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(text)


class LabeledEnum(Enum):
    """Enum persisted by label. Lookup by label or member name."""

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def icon(self) -> str:
        return self.value[1]

    @classmethod
    def from_label(cls, label: str):
        for member in cls:
            if member.label == label or member.name == label:
                return member
        raise ValueError(f"{label!r} is not a valid {cls.__name__}")

    def __str__(self) -> str:
        return self.label


class ExpenseCategory(LabeledEnum):
    FOOD = ("Food", "fork.knife")
    TRANSPORTATION = ("Transportation", "car.fill")
    ENTERTAINMENT = ("Entertainment", "tv.fill")
    SHOPPING = ("Shopping", "cart.fill")
    HEALTH = ("Health", "cross.fill")
    UTILITIES = ("Utilities", "lightbulb.fill")
    OTHER = ("Other", "ellipsis.circle.fill")


class InvestmentType(LabeledEnum):
    STOCKS = ("Stocks", "chart.line.uptrend.xyaxis")
    CRYPTO = ("Cryptocurrency", "bitcoinsign.circle.fill")
    BONDS = ("Bonds", "doc.text.fill")
    REAL_ESTATE = ("Real Estate", "house.fill")
    OTHER = ("Other", "dollarsign.circle.fill")


class BudgetPeriod(Enum):
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"

    @property
    def label(self) -> str:
        return self.value

    @classmethod
    def from_label(cls, label: str) -> "BudgetPeriod":
        for member in cls:
            if member.value == label or member.name == label:
                return member
        raise ValueError(f"{label!r} is not a valid BudgetPeriod")

    def __str__(self) -> str:
        return self.value


@dataclass
class Expense:
    """
    A single logged expense.

    Fields:
      - title: short description shown in lists
      - amount: non-negative currency value (not clamped here, see validation.py)
      - category: one of ExpenseCategory, used for aggregation and budgets
      - date: when the expense happened
      - notes: free text, may be empty
      - id: opaque UUID string, assigned on construction
    """
    title: str
    amount: float
    category: ExpenseCategory
    date: datetime.datetime = field(default_factory=_now)
    notes: str = ""
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "amount": self.amount,
            "category": self.category.label,
            "date": format_date(self.date),
            "notes": self.notes,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Expense":
        """
        Build an Expense from a persisted dict.
        Required keys must be present; only `notes` falls back to a default.
        """
        return Expense(
            id=str(d["id"]),
            title=str(d["title"]),
            amount=float(d["amount"]),
            category=ExpenseCategory.from_label(d["category"]),
            date=parse_date(d["date"]),
            notes=d.get("notes", "") or "",
        )


@dataclass
class Investment:
    """
    A holding in the portfolio.

    `amount` is whatever the user typed in the amount field; derived values
    only use quantity and the two prices.
    """
    name: str
    symbol: str
    quantity: float
    purchase_price: float
    current_price: float
    type: InvestmentType = InvestmentType.STOCKS
    purchase_date: datetime.datetime = field(default_factory=_now)
    amount: float = 0.0
    id: str = field(default_factory=new_id)

    @property
    def total_value(self) -> float:
        return self.quantity * self.current_price

    @property
    def total_invested(self) -> float:
        return self.quantity * self.purchase_price

    @property
    def profit(self) -> float:
        return self.total_value - self.total_invested

    @property
    def profit_percentage(self) -> float:
        invested = self.total_invested
        if invested <= 0:
            return 0.0
        return self.profit / invested * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "amount": self.amount,
            "purchasePrice": self.purchase_price,
            "currentPrice": self.current_price,
            "quantity": self.quantity,
            "type": self.type.label,
            "purchaseDate": format_date(self.purchase_date),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Investment":
        return Investment(
            id=str(d["id"]),
            name=str(d["name"]),
            symbol=str(d["symbol"]),
            amount=float(d.get("amount", 0.0) or 0.0),
            purchase_price=float(d["purchasePrice"]),
            current_price=float(d["currentPrice"]),
            quantity=float(d["quantity"]),
            type=InvestmentType.from_label(d["type"]),
            purchase_date=parse_date(d["purchaseDate"]),
        )


@dataclass
class Budget:
    """Spending ceiling for one category over one period."""
    category: ExpenseCategory
    limit: float
    period: BudgetPeriod = BudgetPeriod.MONTHLY
    alert_threshold: float = 80.0  # percent of limit
    id: str = field(default_factory=new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.label,
            "limit": self.limit,
            "period": self.period.label,
            "alertThreshold": self.alert_threshold,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Budget":
        return Budget(
            id=str(d["id"]),
            category=ExpenseCategory.from_label(d["category"]),
            limit=float(d["limit"]),
            period=BudgetPeriod.from_label(d["period"]),
            alert_threshold=float(d["alertThreshold"]),
        )


@dataclass
class SavingsGoal:
    """
    Amount the user is saving towards.

    current_amount may exceed target_amount; progress is clamped to 100
    but the stored amount is not.
    """
    title: str
    target_amount: float
    current_amount: float = 0.0
    deadline: datetime.datetime = field(default_factory=_now)
    icon: str = "target"
    id: str = field(default_factory=new_id)

    @property
    def progress(self) -> float:
        if self.target_amount <= 0:
            return 0.0
        return min(self.current_amount / self.target_amount * 100, 100.0)

    @property
    def is_completed(self) -> bool:
        return self.current_amount >= self.target_amount

    @property
    def remaining(self) -> float:
        return max(self.target_amount - self.current_amount, 0.0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "targetAmount": self.target_amount,
            "currentAmount": self.current_amount,
            "deadline": format_date(self.deadline),
            "icon": self.icon,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "SavingsGoal":
        return SavingsGoal(
            id=str(d["id"]),
            title=str(d["title"]),
            target_amount=float(d["targetAmount"]),
            current_amount=float(d["currentAmount"]),
            deadline=parse_date(d["deadline"]),
            icon=d.get("icon", "target") or "target",
        )
