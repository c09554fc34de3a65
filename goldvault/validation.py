"""
validation.py - pluggable record checks

A policy is any callable taking a record and raising ValidationError to
reject it. Managers run their policy before every add/update. The models
themselves never clamp or reject values.
"""

from typing import Any, Callable, Dict

from goldvault.exceptions import ValidationError
from goldvault.models import Budget, Expense, Investment, SavingsGoal

ValidationPolicy = Callable[[Any], None]

# attributes that must not be negative, per record type
_NON_NEGATIVE = {
    Expense: ("amount",),
    Investment: ("quantity", "purchase_price", "current_price", "amount"),
    Budget: ("limit",),
    SavingsGoal: ("target_amount", "current_amount"),
}


def accept_all(record: Any) -> None:
    """Default policy: anything goes, including negative amounts (refunds)."""


def reject_negative(record: Any) -> None:
    """Reject negative money/quantity fields and alert thresholds outside 0-100."""
    for attr in _NON_NEGATIVE.get(type(record), ()):
        if getattr(record, attr) < 0:
            raise ValidationError(attr, "must not be negative")
    if isinstance(record, Budget) and not 0 <= record.alert_threshold <= 100:
        raise ValidationError("alert_threshold", "must be between 0 and 100")


POLICIES: Dict[str, ValidationPolicy] = {
    "accept_all": accept_all,
    "reject_negative": reject_negative,
}


def get_policy(name: str) -> ValidationPolicy:
    try:
        return POLICIES[name]
    except KeyError:
        raise ValueError(f"unknown validation policy {name!r}; choose from {sorted(POLICIES)}") from None
