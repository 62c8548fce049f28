"""Income and expense log plus the balance mutations that go with it.

Every write runs in a single unit of work: the log row and the account
balance change commit together or not at all. Balance changes are single
``UPDATE ... SET col = col + :delta`` statements, and funds checks read the
account row under ``SELECT ... FOR UPDATE``.

Expenses recorded by users who only track expenses (``tracking_option ==
"expenses"``) skip both the funds check and the balance change; the row
remembers that through ``balance_applied`` so later edits only undo what was
actually applied.
"""

from __future__ import annotations

import datetime as dt
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import and_, select, update
from sqlalchemy.orm import aliased

from . import accounts
from .accounts import AccountRef, BankRef, CashRef, CreditCardRef
from .db import unit_of_work
from .errors import InsufficientFunds, InvalidInput, NotFound
from .history import month_start, next_month_start
from .models import Bank, CashBalance, CreditCard, Expense, IncomeEntry, User, db
from .validation import parse_amount, parse_month_year, parse_transaction_date, require_text, to_decimal

logger = logging.getLogger(__name__)

INCOME = "income"
EXPENSE = "expense"

_INSUFFICIENT = {
    "bank": "Insufficient bank balance",
    "cash": "Insufficient cash balance",
    "credit_card": "Insufficient credit limit",
}


# ---------------------- Balance mutation ----------------------

def _shift_funds(user_id: int, ref: AccountRef, delta: Decimal) -> None:
    """Move the spendable funds of an account by ``delta``.

    For banks and cash that is the balance itself; for credit cards spending
    power grows as ``used_limit`` shrinks.
    """
    if isinstance(ref, BankRef):
        stmt = (
            update(Bank)
            .where(Bank.id == ref.account_id, Bank.user_id == user_id)
            .values(current_balance=Bank.current_balance + delta)
        )
    elif isinstance(ref, CreditCardRef):
        stmt = (
            update(CreditCard)
            .where(CreditCard.id == ref.account_id, CreditCard.user_id == user_id)
            .values(used_limit=CreditCard.used_limit - delta)
        )
    else:
        stmt = (
            update(CashBalance)
            .where(CashBalance.user_id == user_id)
            .values(balance=CashBalance.balance + delta)
        )
    result = db.session.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        logger.warning("user=%s %s account %s not found; balance left unchanged", user_id, ref.kind, ref.account_id)


def _signed(direction: str, amount: Decimal) -> Decimal:
    return amount if direction == INCOME else -amount


def apply_effect(user_id: int, direction: str, ref: AccountRef, amount: Decimal) -> None:
    _shift_funds(user_id, ref, _signed(direction, amount))


def reverse_effect(user_id: int, direction: str, ref: AccountRef, amount: Decimal) -> None:
    _shift_funds(user_id, ref, -_signed(direction, amount))


def check_funds(account, ref: AccountRef, amount: Decimal) -> None:
    if accounts.available_funds(account, ref) < amount:
        raise InsufficientFunds(_INSUFFICIENT[ref.kind])


def tracking_option(user_id: int) -> str:
    option = db.session.scalar(select(User.tracking_option).where(User.id == user_id))
    if option is None:
        raise NotFound("User not found")
    return option


# ---------------------- References ----------------------

def _income_ref(kind, account_id) -> AccountRef:
    ref = accounts.account_ref(kind, account_id)
    if isinstance(ref, CreditCardRef):
        raise InvalidInput("Income can only be credited to a bank or cash")
    return ref


def _stored_ref(kind: str, account_id: Optional[int]) -> AccountRef:
    # Rows already in the log are trusted as written, even if the account is gone.
    if kind == "cash":
        return CashRef()
    if kind == "credit_card":
        return CreditCardRef(account_id)
    return BankRef(account_id)


def _resolve_income_target(user_id: int, ref: AccountRef) -> None:
    if isinstance(ref, CashRef):
        accounts.ensure_cash_balance(user_id)
    else:
        accounts.lock_account(user_id, ref)


def _merge_date(value, current: Optional[dt.datetime]) -> dt.datetime:
    """Parse an edited date, keeping the stored time of day when the day is unchanged."""
    if value in (None, "") and current is not None:
        return current
    parsed = parse_transaction_date(value)
    if current is not None and isinstance(value, str) and len(value.strip()) == 10 and parsed.date() == current.date():
        return current
    return parsed


def _month_filter(column, month, year):
    if month in (None, "") and year in (None, ""):
        return None
    month, year = parse_month_year(month, year)
    start = dt.datetime.combine(month_start(year, month), dt.time.min)
    end = dt.datetime.combine(next_month_start(year, month), dt.time.min)
    return and_(column >= start, column < end)


# ---------------------- Income ----------------------

def create_income(user_id: int, source, amount, credited_to_type, credited_to_id=None, date=None) -> IncomeEntry:
    source_text = require_text(source, "Income source is required")
    value = parse_amount(amount)
    ref = _income_ref(credited_to_type, credited_to_id)
    when = parse_transaction_date(date)
    with unit_of_work() as session:
        _resolve_income_target(user_id, ref)
        entry = IncomeEntry(
            user_id=user_id,
            source=source_text,
            amount=value,
            credited_to_type=ref.kind,
            credited_to_id=ref.account_id,
            date=when,
        )
        session.add(entry)
        session.flush()
        apply_effect(user_id, INCOME, ref, value)
    logger.info("user=%s income=%s +%s to %s:%s", user_id, entry.id, value, ref.kind, ref.account_id)
    return entry


def get_income(user_id: int, income_id: int, lock: bool = False) -> IncomeEntry:
    stmt = select(IncomeEntry).where(IncomeEntry.id == income_id, IncomeEntry.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    entry = db.session.execute(stmt).scalar_one_or_none()
    if entry is None:
        raise NotFound("Income transaction not found")
    return entry


def update_income(
    user_id: int,
    income_id: int,
    source=None,
    amount=None,
    credited_to_type=None,
    credited_to_id=None,
    date=None,
) -> IncomeEntry:
    """Rewrite an income entry.

    The stored amount and account are reversed before the new values are
    applied, so moving an entry between accounts is handled.
    """
    with unit_of_work():
        entry = get_income(user_id, income_id, lock=True)
        old_ref = _stored_ref(entry.credited_to_type, entry.credited_to_id)
        old_amount = to_decimal(entry.amount)

        source_text = entry.source if source is None else require_text(source, "Income source is required")
        value = old_amount if amount is None else parse_amount(amount)
        if credited_to_type is None:
            new_ref = old_ref
        else:
            new_ref = _income_ref(credited_to_type, credited_to_id)
        when = _merge_date(date, entry.date)

        reverse_effect(user_id, INCOME, old_ref, old_amount)
        _resolve_income_target(user_id, new_ref)
        entry.source = source_text
        entry.amount = value
        entry.credited_to_type = new_ref.kind
        entry.credited_to_id = new_ref.account_id
        entry.date = when
        apply_effect(user_id, INCOME, new_ref, value)
    logger.info("user=%s income=%s updated", user_id, income_id)
    return get_income(user_id, income_id)


def delete_income(user_id: int, income_id: int) -> None:
    with unit_of_work() as session:
        entry = get_income(user_id, income_id, lock=True)
        reverse_effect(
            user_id,
            INCOME,
            _stored_ref(entry.credited_to_type, entry.credited_to_id),
            to_decimal(entry.amount),
        )
        session.delete(entry)
    logger.info("user=%s income=%s deleted", user_id, income_id)


def list_income(user_id: int, month=None, year=None) -> List[Dict]:
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
        .order_by(IncomeEntry.date.desc(), IncomeEntry.id.desc())
    )
    window = _month_filter(IncomeEntry.date, month, year)
    if window is not None:
        stmt = stmt.where(window)
    rows = []
    for entry, bank_name in db.session.execute(stmt):
        row = entry.to_dict()
        row["credited_to_name"] = account_display_name(entry.credited_to_type, bank_name)
        rows.append(row)
    return rows


# ---------------------- Expenses ----------------------

def create_expense(user_id: int, title, amount, payment_method, payment_source_id=None, date=None) -> Expense:
    title_text = require_text(title, "Expense title is required")
    value = parse_amount(amount)
    ref = accounts.account_ref(payment_method, payment_source_id)
    when = parse_transaction_date(date)
    with unit_of_work() as session:
        enforce = tracking_option(user_id) != "expenses"
        account = accounts.lock_account(user_id, ref)
        if enforce:
            check_funds(account, ref, value)
        expense = Expense(
            user_id=user_id,
            title=title_text,
            amount=value,
            payment_method=ref.kind,
            payment_source_id=ref.account_id,
            date=when,
            balance_applied=enforce,
        )
        session.add(expense)
        session.flush()
        if enforce:
            apply_effect(user_id, EXPENSE, ref, value)
    logger.info("user=%s expense=%s -%s from %s:%s applied=%s", user_id, expense.id, value, ref.kind, ref.account_id, enforce)
    return expense


def get_expense(user_id: int, expense_id: int, lock: bool = False) -> Expense:
    stmt = select(Expense).where(Expense.id == expense_id, Expense.user_id == user_id)
    if lock:
        stmt = stmt.with_for_update()
    expense = db.session.execute(stmt).scalar_one_or_none()
    if expense is None:
        raise NotFound("Expense transaction not found")
    return expense


def update_expense(
    user_id: int,
    expense_id: int,
    title=None,
    amount=None,
    payment_method=None,
    payment_source_id=None,
    date=None,
) -> Expense:
    with unit_of_work():
        expense = get_expense(user_id, expense_id, lock=True)
        old_ref = _stored_ref(expense.payment_method, expense.payment_source_id)
        old_amount = to_decimal(expense.amount)

        title_text = expense.title if title is None else require_text(title, "Expense title is required")
        value = old_amount if amount is None else parse_amount(amount)
        if payment_method is None:
            new_ref = old_ref
        else:
            new_ref = accounts.account_ref(payment_method, payment_source_id)
        when = _merge_date(date, expense.date)

        if expense.balance_applied:
            reverse_effect(user_id, EXPENSE, old_ref, old_amount)
        enforce = tracking_option(user_id) != "expenses"
        account = accounts.lock_account(user_id, new_ref)
        if enforce:
            check_funds(account, new_ref, value)

        expense.title = title_text
        expense.amount = value
        expense.payment_method = new_ref.kind
        expense.payment_source_id = new_ref.account_id
        expense.date = when
        expense.balance_applied = enforce
        if enforce:
            apply_effect(user_id, EXPENSE, new_ref, value)
    logger.info("user=%s expense=%s updated", user_id, expense_id)
    return get_expense(user_id, expense_id)


def delete_expense(user_id: int, expense_id: int) -> None:
    with unit_of_work() as session:
        expense = get_expense(user_id, expense_id, lock=True)
        if expense.balance_applied:
            reverse_effect(
                user_id,
                EXPENSE,
                _stored_ref(expense.payment_method, expense.payment_source_id),
                to_decimal(expense.amount),
            )
        session.delete(expense)
    logger.info("user=%s expense=%s deleted", user_id, expense_id)


def list_expenses(user_id: int, month=None, year=None) -> List[Dict]:
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
        .order_by(Expense.date.desc(), Expense.id.desc())
    )
    window = _month_filter(Expense.date, month, year)
    if window is not None:
        stmt = stmt.where(window)
    rows = []
    for expense, bank_name, card_name in db.session.execute(stmt):
        row = expense.to_dict()
        row["payment_source_name"] = account_display_name(expense.payment_method, bank_name or card_name)
        rows.append(row)
    return rows


def account_display_name(kind: str, name: Optional[str]) -> str:
    """Label for the account a transaction points at.

    References to accounts that no longer exist are shown as unknown rather
    than failing the whole listing.
    """
    if kind == "cash":
        return "Cash"
    if name:
        return name
    return "Unknown Card" if kind == "credit_card" else "Unknown Bank"
