"""Point-in-time account balances.

Balances at a past month-end are recomputed from each account's opening
balance plus every transaction dated on or before the boundary day. The live
``current_balance`` / ``used_limit`` columns are never consulted here.
"""

from __future__ import annotations

import calendar
import datetime as dt
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from sqlalchemy import func, select

from .errors import NotFound
from .models import Bank, CashBalance, CreditCard, Expense, IncomeEntry, db
from .validation import ZERO, to_decimal


@dataclass(frozen=True)
class BankSnapshot:
    id: int
    name: str
    initial_balance: Decimal
    balance: Decimal
    created_at: dt.datetime


@dataclass(frozen=True)
class CashSnapshot:
    initial_balance: Decimal
    balance: Decimal


@dataclass(frozen=True)
class CreditCardSnapshot:
    id: int
    name: str
    credit_limit: Decimal
    used_limit: Decimal
    created_at: dt.datetime


def month_start(year: int, month: int) -> dt.date:
    return dt.date(year, month, 1)


def month_end(year: int, month: int) -> dt.date:
    return dt.date(year, month, calendar.monthrange(year, month)[1])


def next_month_start(year: int, month: int) -> dt.date:
    if month == 12:
        return dt.date(year + 1, 1, 1)
    return dt.date(year, month + 1, 1)


def _cutoff(boundary: dt.date) -> dt.datetime:
    # Transactions carry a time of day, so "on or before the boundary day"
    # means strictly before midnight of the following day.
    return dt.datetime.combine(boundary + dt.timedelta(days=1), dt.time.min)


def _income_total(user_id: int, kind: str, cutoff: dt.datetime):
    return select(func.coalesce(func.sum(IncomeEntry.amount), 0)).where(
        IncomeEntry.user_id == user_id,
        IncomeEntry.credited_to_type == kind,
        IncomeEntry.date < cutoff,
    )


def _expense_total(user_id: int, kind: str, cutoff: dt.datetime):
    return select(func.coalesce(func.sum(Expense.amount), 0)).where(
        Expense.user_id == user_id,
        Expense.payment_method == kind,
        Expense.date < cutoff,
    )


def bank_balances_at(user_id: int, boundary: dt.date) -> List[BankSnapshot]:
    """Balances of the banks that existed at ``boundary``, ordered by name."""
    cutoff = _cutoff(boundary)
    credited = (
        _income_total(user_id, "bank", cutoff)
        .where(IncomeEntry.credited_to_id == Bank.id)
        .correlate(Bank)
        .scalar_subquery()
    )
    debited = (
        _expense_total(user_id, "bank", cutoff)
        .where(Expense.payment_source_id == Bank.id)
        .correlate(Bank)
        .scalar_subquery()
    )
    stmt = (
        select(Bank, credited.label("credited"), debited.label("debited"))
        .where(Bank.user_id == user_id, Bank.created_at < cutoff)
        .order_by(Bank.name)
    )
    snapshots: List[BankSnapshot] = []
    for bank, credit_total, debit_total in db.session.execute(stmt):
        initial = to_decimal(bank.initial_balance)
        snapshots.append(
            BankSnapshot(
                id=bank.id,
                name=bank.name,
                initial_balance=initial,
                balance=initial + to_decimal(credit_total) - to_decimal(debit_total),
                created_at=bank.created_at,
            )
        )
    return snapshots


def bank_balance_at(user_id: int, bank_id: int, boundary: dt.date) -> Decimal:
    for snapshot in bank_balances_at(user_id, boundary):
        if snapshot.id == bank_id:
            return snapshot.balance
    raise NotFound("Bank not found")


def cash_balance_at(user_id: int, boundary: dt.date) -> CashSnapshot:
    cash = db.session.execute(
        select(CashBalance).where(CashBalance.user_id == user_id)
    ).scalar_one_or_none()
    if cash is None:
        return CashSnapshot(initial_balance=ZERO, balance=ZERO)
    cutoff = _cutoff(boundary)
    credited = db.session.scalar(_income_total(user_id, "cash", cutoff))
    debited = db.session.scalar(_expense_total(user_id, "cash", cutoff))
    initial = to_decimal(cash.initial_balance)
    return CashSnapshot(
        initial_balance=initial,
        balance=initial + to_decimal(credited) - to_decimal(debited),
    )


def credit_card_usage_at(user_id: int, boundary: dt.date) -> List[CreditCardSnapshot]:
    cutoff = _cutoff(boundary)
    charged = (
        _expense_total(user_id, "credit_card", cutoff)
        .where(Expense.payment_source_id == CreditCard.id)
        .correlate(CreditCard)
        .scalar_subquery()
    )
    stmt = (
        select(CreditCard, charged.label("charged"))
        .where(CreditCard.user_id == user_id, CreditCard.created_at < cutoff)
        .order_by(CreditCard.name)
    )
    return [
        CreditCardSnapshot(
            id=card.id,
            name=card.name,
            credit_limit=to_decimal(card.credit_limit),
            used_limit=to_decimal(used),
            created_at=card.created_at,
        )
        for card, used in db.session.execute(stmt)
    ]
