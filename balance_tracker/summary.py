"""Monthly summary: income, expenses, savings and wealth for one month.

The response keeps the camelCase keys the browser client reads. Bank rows
carry their month-end balance in ``current_balance``; it is the historical
value for the requested month, not the live running total.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy import func, select

from .errors import NotFound
from .history import (
    bank_balances_at,
    cash_balance_at,
    credit_card_usage_at,
    month_end,
    month_start,
    next_month_start,
)
from .models import Expense, IncomeEntry, User, db
from .validation import ZERO, parse_month_year, to_decimal

FUTURE_DATE_MESSAGE = "Future date selected - no data available"
BEFORE_REGISTRATION_MESSAGE = "Date before registration - no data available"
NO_TRANSACTIONS_MESSAGE = "No transactions found for this month"

CARD_TRACKING_OPTIONS = ("expenses", "both")


def empty_summary(
    message: str,
    tracking_option: str = "both",
    is_current_month: bool = False,
    is_month_completed: bool = False,
) -> Dict:
    return {
        "monthlyIncome": ZERO,
        "totalCurrentWealth": ZERO,
        "totalExpenses": ZERO,
        "netSavings": ZERO,
        "totalInitialBalance": ZERO,
        "banks": [],
        "creditCards": [],
        "cash": {"balance": ZERO, "initial_balance": ZERO},
        "trackingOption": tracking_option,
        "isCurrentMonth": is_current_month,
        "isMonthCompleted": is_month_completed,
        "message": message,
    }


def month_total(model, user_id: int, year: int, month: int) -> Decimal:
    """Sum of ``amount`` for income or expense rows dated inside the month."""
    start = dt.datetime.combine(month_start(year, month), dt.time.min)
    end = dt.datetime.combine(next_month_start(year, month), dt.time.min)
    total = db.session.scalar(
        select(func.coalesce(func.sum(model.amount), 0)).where(
            model.user_id == user_id,
            model.date >= start,
            model.date < end,
        )
    )
    return to_decimal(total)


def monthly_summary(user_id: int, month, year, today: Optional[dt.date] = None) -> Dict:
    month, year = parse_month_year(month, year)
    today = today or dt.date.today()
    selected = month_start(year, month)
    is_current_month = (year, month) == (today.year, today.month)
    is_month_completed = (year, month) < (today.year, today.month)

    if selected > today:
        return empty_summary(FUTURE_DATE_MESSAGE)

    user = db.session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    tracking_option = user.tracking_option or "both"
    registered = user.created_at
    if (year, month) < (registered.year, registered.month):
        return empty_summary(
            BEFORE_REGISTRATION_MESSAGE,
            tracking_option=tracking_option,
            is_month_completed=True,
        )

    monthly_income = month_total(IncomeEntry, user_id, year, month)
    total_expenses = month_total(Expense, user_id, year, month)

    boundary = month_end(year, month)
    banks = bank_balances_at(user_id, boundary)
    cash = cash_balance_at(user_id, boundary)
    cards = credit_card_usage_at(user_id, boundary) if tracking_option in CARD_TRACKING_OPTIONS else []

    if monthly_income == 0 and total_expenses == 0 and not banks and cash.initial_balance == 0:
        return empty_summary(
            NO_TRANSACTIONS_MESSAGE,
            tracking_option=tracking_option,
            is_current_month=is_current_month,
            is_month_completed=is_month_completed,
        )

    total_wealth = sum((b.balance for b in banks), ZERO) + cash.balance
    total_initial = sum((b.initial_balance for b in banks), ZERO) + cash.initial_balance
    net_savings = total_initial + monthly_income - total_expenses

    return {
        "monthlyIncome": monthly_income,
        "totalCurrentWealth": total_wealth,
        "totalExpenses": total_expenses,
        "netSavings": net_savings,
        "totalInitialBalance": total_initial,
        "banks": [
            {
                "id": b.id,
                "name": b.name,
                "initial_balance": b.initial_balance,
                "current_balance": b.balance,
                "balance_at_month_end": b.balance,
                "created_at": b.created_at.isoformat(),
            }
            for b in banks
        ],
        "creditCards": [
            {
                "id": c.id,
                "name": c.name,
                "credit_limit": c.credit_limit,
                "used_limit": c.used_limit,
                "current_balance": c.used_limit,
                "created_at": c.created_at.isoformat(),
            }
            for c in cards
        ],
        "cash": {"balance": cash.balance, "initial_balance": cash.initial_balance},
        "selectedMonth": month,
        "selectedYear": year,
        "trackingOption": tracking_option,
        "isCurrentMonth": is_current_month,
        "isMonthCompleted": is_month_completed,
        "message": None,
    }
