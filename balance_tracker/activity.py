"""Activity feed.

Merges income, expenses and account setup events (bank added, credit card
added, cash balance set) into a single date-ordered stream with filters and
pagination.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, select
from sqlalchemy.orm import aliased

from .errors import InvalidInput
from .history import month_start, next_month_start
from .ledger import account_display_name
from .models import Bank, CashBalance, CreditCard, Expense, IncomeEntry, db
from .validation import ZERO, parse_month_year, parse_optional_date, parse_optional_int, parse_year, to_decimal

ACTIVITY_TYPES = ("income", "expense", "setup")
DEFAULT_LIMIT = 20
MAX_LIMIT = 500


@dataclass
class Activity:
    activity_type: str
    id: int
    description: str
    amount: Decimal
    account_info: str
    activity_date: dt.datetime
    action_type: str = "created"

    def to_dict(self) -> Dict:
        row = asdict(self)
        row["activity_date"] = self.activity_date.isoformat()
        return row


def _income_activities(user_id: int) -> List[Activity]:
    bank = aliased(Bank)
    stmt = (
        select(IncomeEntry, bank.name)
        .outerjoin(
            bank,
            and_(
                IncomeEntry.credited_to_type == "bank",
                IncomeEntry.credited_to_id == bank.id,
                bank.user_id == IncomeEntry.user_id,
            ),
        )
        .where(IncomeEntry.user_id == user_id)
    )
    return [
        Activity(
            activity_type="income",
            id=entry.id,
            description=entry.source,
            amount=to_decimal(entry.amount),
            account_info=account_display_name(entry.credited_to_type, bank_name),
            activity_date=entry.date,
        )
        for entry, bank_name in db.session.execute(stmt)
    ]


def _expense_activities(user_id: int) -> List[Activity]:
    bank = aliased(Bank)
    card = aliased(CreditCard)
    stmt = (
        select(Expense, bank.name, card.name)
        .outerjoin(
            bank,
            and_(
                Expense.payment_method == "bank",
                Expense.payment_source_id == bank.id,
                bank.user_id == Expense.user_id,
            ),
        )
        .outerjoin(
            card,
            and_(
                Expense.payment_method == "credit_card",
                Expense.payment_source_id == card.id,
                card.user_id == Expense.user_id,
            ),
        )
        .where(Expense.user_id == user_id)
    )
    return [
        Activity(
            activity_type="expense",
            id=expense.id,
            description=expense.title,
            amount=to_decimal(expense.amount),
            account_info=account_display_name(expense.payment_method, bank_name or card_name),
            activity_date=expense.date,
        )
        for expense, bank_name, card_name in db.session.execute(stmt)
    ]


def _setup_activities(user_id: int) -> List[Activity]:
    rows: List[Activity] = []
    for bank in db.session.execute(select(Bank).where(Bank.user_id == user_id)).scalars():
        rows.append(
            Activity("setup", bank.id, f"Added bank: {bank.name}", to_decimal(bank.initial_balance), bank.name, bank.created_at)
        )
    for card in db.session.execute(select(CreditCard).where(CreditCard.user_id == user_id)).scalars():
        rows.append(
            Activity("setup", card.id, f"Added credit card: {card.name}", to_decimal(card.credit_limit), card.name, card.created_at)
        )
    cash = db.session.execute(
        select(CashBalance).where(CashBalance.user_id == user_id, CashBalance.initial_balance > 0)
    ).scalar_one_or_none()
    if cash is not None:
        rows.append(
            Activity("setup", cash.id, "Set cash balance", to_decimal(cash.initial_balance), "Cash", cash.updated_at)
        )
    return rows


def _date_window(
    month=None,
    year=None,
    from_date=None,
    to_date=None,
) -> Tuple[Optional[dt.datetime], Optional[dt.datetime]]:
    """Half-open ``[start, end)`` window; month/year wins over year, which wins over from/to.

    A month without a year is rejected rather than ignored.
    """
    if month not in (None, ""):
        m, y = parse_month_year(month, year)
        return (
            dt.datetime.combine(month_start(y, m), dt.time.min),
            dt.datetime.combine(next_month_start(y, m), dt.time.min),
        )
    if year not in (None, ""):
        y = parse_year(year)
        return dt.datetime(y, 1, 1), dt.datetime(y + 1, 1, 1)
    start = parse_optional_date(from_date, "Invalid from_date")
    end = parse_optional_date(to_date, "Invalid to_date")
    return (
        dt.datetime.combine(start, dt.time.min) if start else None,
        dt.datetime.combine(end + dt.timedelta(days=1), dt.time.min) if end else None,
    )


def collect_activity(user_id: int) -> List[Activity]:
    rows = _income_activities(user_id) + _expense_activities(user_id) + _setup_activities(user_id)
    rows.sort(key=lambda a: (a.activity_date, a.activity_type, a.id), reverse=True)
    return rows


def activity_statistics(rows: List[Activity]) -> Dict[str, object]:
    income = sum((a.amount for a in rows if a.activity_type == "income"), ZERO)
    expenses = sum((a.amount for a in rows if a.activity_type == "expense"), ZERO)
    return {
        "totalTransactions": len(rows),
        "totalIncome": income,
        "totalExpenses": expenses,
        "netBalance": income - expenses,
    }


def filter_activity(rows: List[Activity], kind: str = "", month=None, year=None, from_date=None, to_date=None) -> List[Activity]:
    kind = (kind or "").strip().lower()
    if kind and kind not in ACTIVITY_TYPES:
        raise InvalidInput("Activity type must be income, expense or setup")
    start, end = _date_window(month=month, year=year, from_date=from_date, to_date=to_date)
    return [
        a
        for a in rows
        if (start is None or a.activity_date >= start)
        and (end is None or a.activity_date < end)
        and (not kind or a.activity_type == kind)
    ]


def list_activity(
    user_id: int,
    page=1,
    limit=DEFAULT_LIMIT,
    kind: str = "",
    from_date=None,
    to_date=None,
    month=None,
    year=None,
) -> Dict:
    page_number = max(1, parse_optional_int(page, "Page must be a number") or 1)
    page_size = parse_optional_int(limit, "Limit must be a number") or DEFAULT_LIMIT
    page_size = min(max(1, page_size), MAX_LIMIT)

    everything = collect_activity(user_id)
    matching = filter_activity(everything, kind=kind, month=month, year=year, from_date=from_date, to_date=to_date)
    offset = (page_number - 1) * page_size
    return {
        "activities": [a.to_dict() for a in matching[offset:offset + page_size]],
        "statistics": activity_statistics(everything),
        "currentPage": page_number,
        "totalPages": math.ceil(len(matching) / page_size),
        "totalItems": len(matching),
        "limit": page_size,
    }


def export_activity(user_id: int, kind: str = "", from_date=None, to_date=None, month=None, year=None) -> List[Dict]:
    """Every matching activity row, unpaginated, for CSV export."""
    rows = filter_activity(collect_activity(user_id), kind=kind, month=month, year=year, from_date=from_date, to_date=to_date)
    return [a.to_dict() for a in rows]
