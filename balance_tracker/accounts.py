"""Account store: banks, credit cards and the per-user cash balance.

Transactions point at an account through a ``(type, id)`` pair. In Python the
pair is an :data:`AccountRef`, one of :class:`BankRef`, :class:`CashRef` or
:class:`CreditCardRef`, and is resolved against the owning user's rows before
any balance is touched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar, List, Optional, Union

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from .db import is_unique_violation, unit_of_work
from .errors import AccountInUse, AlreadyExists, InvalidInput, NotFound
from .models import Bank, CashBalance, CreditCard, Expense, IncomeEntry, db
from .validation import ZERO, parse_amount, parse_balance, parse_optional_int, require_text, to_decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BankRef:
    account_id: int
    kind: ClassVar[str] = "bank"


@dataclass(frozen=True)
class CashRef:
    kind: ClassVar[str] = "cash"
    account_id: ClassVar[Optional[int]] = None


@dataclass(frozen=True)
class CreditCardRef:
    account_id: int
    kind: ClassVar[str] = "credit_card"


AccountRef = Union[BankRef, CashRef, CreditCardRef]


def account_ref(kind, account_id=None) -> AccountRef:
    """Build an account reference from its wire ``(type, id)`` pair."""
    kind = str(kind or "").strip().lower()
    if kind == "cash":
        return CashRef()
    if kind not in ("bank", "credit_card"):
        raise InvalidInput("Invalid account type")
    ref_id = parse_optional_int(account_id, "Invalid account id")
    if ref_id is None:
        raise InvalidInput("An account must be selected")
    return BankRef(ref_id) if kind == "bank" else CreditCardRef(ref_id)


def _owned(model, user_id: int, obj_id: int, lock: bool = False):
    stmt = select(model).where(model.id == obj_id, model.user_id == user_id)
    if lock:
        # Balances may have moved through bulk UPDATEs earlier in this transaction.
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    return db.session.execute(stmt).scalar_one_or_none()


def lock_account(user_id: int, ref: AccountRef):
    """Load the referenced account row for update.

    Raises NotFound for a bank or card the user does not own. The cash row is
    optional, so ``None`` is returned when it has never been set up.
    """
    if isinstance(ref, BankRef):
        bank = _owned(Bank, user_id, ref.account_id, lock=True)
        if bank is None:
            raise NotFound("Bank not found")
        return bank
    if isinstance(ref, CreditCardRef):
        card = _owned(CreditCard, user_id, ref.account_id, lock=True)
        if card is None:
            raise NotFound("Credit card not found")
        return card
    stmt = (
        select(CashBalance)
        .where(CashBalance.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return db.session.execute(stmt).scalar_one_or_none()


def reference_count(user_id: int, ref: AccountRef) -> int:
    """Number of income and expense rows pointing at an account."""
    session = db.session
    total = 0
    if ref.kind in ("bank", "cash"):
        stmt = select(func.count()).select_from(IncomeEntry).where(
            IncomeEntry.user_id == user_id,
            IncomeEntry.credited_to_type == ref.kind,
        )
        if ref.account_id is not None:
            stmt = stmt.where(IncomeEntry.credited_to_id == ref.account_id)
        total += session.scalar(stmt) or 0
    stmt = select(func.count()).select_from(Expense).where(
        Expense.user_id == user_id,
        Expense.payment_method == ref.kind,
    )
    if ref.account_id is not None:
        stmt = stmt.where(Expense.payment_source_id == ref.account_id)
    total += session.scalar(stmt) or 0
    return total


def _raise_duplicate(exc: IntegrityError, message: str) -> None:
    if is_unique_violation(exc):
        raise AlreadyExists(message) from exc
    raise exc


# ---------------------- Banks ----------------------

def list_banks(user_id: int) -> List[Bank]:
    stmt = select(Bank).where(Bank.user_id == user_id).order_by(Bank.name)
    return list(db.session.execute(stmt).scalars())


def get_bank(user_id: int, bank_id: int) -> Bank:
    bank = _owned(Bank, user_id, bank_id)
    if bank is None:
        raise NotFound("Bank not found")
    return bank


def create_bank(user_id: int, name, initial_balance=None) -> Bank:
    bank_name = require_text(name, "Bank name is required").upper()
    opening = parse_balance(initial_balance, "Valid initial balance is required", default=ZERO)
    bank = Bank(user_id=user_id, name=bank_name, initial_balance=opening, current_balance=opening)
    try:
        with unit_of_work() as session:
            session.add(bank)
            session.flush()
    except IntegrityError as exc:
        _raise_duplicate(exc, "Bank already exists")
    logger.info("user=%s created bank=%s opening=%s", user_id, bank.id, opening)
    return bank


def update_bank(user_id: int, bank_id: int, name, initial_balance) -> Bank:
    """Rename a bank and/or change its opening balance.

    ``current_balance`` moves by the same delta as ``initial_balance`` so the
    running total stays equal to opening balance plus recorded transactions.
    """
    bank_name = require_text(name, "Bank name is required").upper()
    new_initial = parse_balance(initial_balance, "Valid initial balance is required")
    try:
        with unit_of_work() as session:
            bank = _owned(Bank, user_id, bank_id, lock=True)
            if bank is None:
                raise NotFound("Bank not found")
            delta = new_initial - to_decimal(bank.initial_balance)
            session.execute(
                update(Bank)
                .where(Bank.id == bank.id, Bank.user_id == user_id)
                .values(
                    name=bank_name,
                    initial_balance=new_initial,
                    current_balance=Bank.current_balance + delta,
                )
                .execution_options(synchronize_session=False)
            )
    except IntegrityError as exc:
        _raise_duplicate(exc, "Bank already exists")
    logger.info("user=%s updated bank=%s initial_delta=%s", user_id, bank_id, delta)
    return get_bank(user_id, bank_id)


def delete_bank(user_id: int, bank_id: int) -> None:
    with unit_of_work() as session:
        bank = _owned(Bank, user_id, bank_id, lock=True)
        if bank is None:
            raise NotFound("Bank not found")
        if reference_count(user_id, BankRef(bank.id)):
            raise AccountInUse(
                "Cannot delete bank with existing transactions. "
                "Please delete all related transactions first."
            )
        session.delete(bank)
    logger.info("user=%s deleted bank=%s", user_id, bank_id)


# ---------------------- Credit cards ----------------------

def list_credit_cards(user_id: int) -> List[CreditCard]:
    stmt = select(CreditCard).where(CreditCard.user_id == user_id).order_by(CreditCard.name)
    return list(db.session.execute(stmt).scalars())


def get_credit_card(user_id: int, card_id: int) -> CreditCard:
    card = _owned(CreditCard, user_id, card_id)
    if card is None:
        raise NotFound("Credit card not found")
    return card


def create_credit_card(user_id: int, name, credit_limit) -> CreditCard:
    card_name = require_text(name, "Card name is required").upper()
    limit = parse_amount(credit_limit, "Valid credit limit greater than 0 is required")
    card = CreditCard(user_id=user_id, name=card_name, credit_limit=limit, used_limit=ZERO)
    try:
        with unit_of_work() as session:
            session.add(card)
            session.flush()
    except IntegrityError as exc:
        _raise_duplicate(exc, "Credit card already exists")
    logger.info("user=%s created credit_card=%s limit=%s", user_id, card.id, limit)
    return card


def update_credit_card(user_id: int, card_id: int, name, credit_limit) -> CreditCard:
    card_name = require_text(name, "Card name is required").upper()
    new_limit = parse_amount(credit_limit, "Valid credit limit greater than 0 is required")
    try:
        with unit_of_work() as session:
            card = _owned(CreditCard, user_id, card_id, lock=True)
            if card is None:
                raise NotFound("Credit card not found")
            used = to_decimal(card.used_limit)
            if new_limit < used:
                raise InvalidInput(f"Credit limit cannot be less than used limit ({used:,.2f})")
            card.name = card_name
            card.credit_limit = new_limit
    except IntegrityError as exc:
        _raise_duplicate(exc, "Credit card already exists")
    return get_credit_card(user_id, card_id)


def delete_credit_card(user_id: int, card_id: int) -> None:
    with unit_of_work() as session:
        card = _owned(CreditCard, user_id, card_id, lock=True)
        if card is None:
            raise NotFound("Credit card not found")
        if reference_count(user_id, CreditCardRef(card.id)):
            raise AccountInUse(
                "Cannot delete credit card with existing transactions. "
                "Please delete all related transactions first."
            )
        session.delete(card)
    logger.info("user=%s deleted credit_card=%s", user_id, card_id)


# ---------------------- Cash ----------------------

def get_cash_balance(user_id: int) -> Optional[CashBalance]:
    stmt = select(CashBalance).where(CashBalance.user_id == user_id)
    return db.session.execute(stmt).scalar_one_or_none()


def ensure_cash_balance(user_id: int) -> CashBalance:
    """Return the locked cash row, creating an empty one inside the current transaction."""
    cash = lock_account(user_id, CashRef())
    if cash is None:
        cash = CashBalance(user_id=user_id, balance=ZERO, initial_balance=ZERO)
        db.session.add(cash)
        db.session.flush()
    return cash


def set_cash_balance(user_id: int, balance) -> CashBalance:
    """Upsert the cash balance.

    The first write sets both ``balance`` and ``initial_balance``; later
    writes only replace ``balance``.
    """
    amount = parse_balance(balance, "Valid cash balance is required", default=ZERO)
    with unit_of_work():
        cash = lock_account(user_id, CashRef())
        if cash is None:
            cash = CashBalance(user_id=user_id, balance=amount, initial_balance=amount)
            db.session.add(cash)
        else:
            cash.balance = amount
    logger.info("user=%s set cash balance=%s", user_id, amount)
    return get_cash_balance(user_id)


def cash_balance_dict(cash: Optional[CashBalance]) -> dict:
    if cash is None:
        return {"balance": ZERO, "initial_balance": ZERO}
    return cash.to_dict()


def available_funds(account, ref: AccountRef) -> Decimal:
    """Headroom an expense can draw on: balance for bank/cash, unused limit for cards."""
    if account is None:
        return ZERO
    if isinstance(ref, CreditCardRef):
        return to_decimal(account.credit_limit) - to_decimal(account.used_limit)
    if isinstance(ref, BankRef):
        return to_decimal(account.current_balance)
    return to_decimal(account.balance)
