"""Income/expense writes and the balance changes that go with them."""

from decimal import Decimal

import pytest

from balance_tracker import accounts, auth, ledger
from balance_tracker.errors import InsufficientFunds, InvalidInput, NotFound
from balance_tracker.models import Bank, db


def _bank_balance(user_id, bank_id):
    return accounts.get_bank(user_id, bank_id).current_balance


def test_income_to_bank_is_reversible(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "1000")
    entry = ledger.create_income(user_id, "Salary", "500", "bank", bank.id, "2025-03-10")

    assert _bank_balance(user_id, bank.id) == Decimal("1500")
    assert entry.month == 3 and entry.year == 2025

    ledger.delete_income(user_id, entry.id)
    assert _bank_balance(user_id, bank.id) == Decimal("1000")


def test_income_to_cash_creates_cash_row(ctx, user_id):
    assert accounts.get_cash_balance(user_id) is None

    ledger.create_income(user_id, "Gift", "50", "cash", None, "2025-03-10")

    cash = accounts.get_cash_balance(user_id)
    assert cash.balance == Decimal("50")
    assert cash.initial_balance == Decimal("0")


def test_income_cannot_target_credit_card(ctx, user_id):
    card = accounts.create_credit_card(user_id, "visa", "1000")
    with pytest.raises(InvalidInput, match="bank or cash"):
        ledger.create_income(user_id, "Refund", "10", "credit_card", card.id, "2025-03-10")


def test_income_to_missing_bank_is_not_found(ctx, user_id):
    with pytest.raises(NotFound, match="Bank not found"):
        ledger.create_income(user_id, "Salary", "10", "bank", 999, "2025-03-10")


def test_expense_insufficient_bank_balance_leaves_balance(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "100")

    with pytest.raises(InsufficientFunds, match="Insufficient bank balance"):
        ledger.create_expense(user_id, "Laptop", "200", "bank", bank.id, "2025-03-15")

    assert _bank_balance(user_id, bank.id) == Decimal("100")
    assert ledger.list_expenses(user_id) == []


def test_expense_insufficient_cash_without_cash_row(ctx, user_id):
    with pytest.raises(InsufficientFunds, match="Insufficient cash balance"):
        ledger.create_expense(user_id, "Coffee", "5", "cash", None, "2025-03-15")


def test_credit_card_usage_and_limit(ctx, user_id):
    card = accounts.create_credit_card(user_id, "visa", "1000")
    ledger.create_expense(user_id, "Flight", "300", "credit_card", card.id, "2025-03-15")

    assert accounts.get_credit_card(user_id, card.id).used_limit == Decimal("300")
    with pytest.raises(InsufficientFunds, match="Insufficient credit limit"):
        ledger.create_expense(user_id, "Hotel", "800", "credit_card", card.id, "2025-03-16")


def test_update_expense_moves_between_banks(ctx, user_id):
    first = accounts.create_bank(user_id, "first", "1000")
    second = accounts.create_bank(user_id, "second", "1000")
    expense = ledger.create_expense(user_id, "Rent", "200", "bank", first.id, "2025-03-01")
    assert _bank_balance(user_id, first.id) == Decimal("800")

    ledger.update_expense(user_id, expense.id, payment_method="bank", payment_source_id=second.id, amount="250")

    assert _bank_balance(user_id, first.id) == Decimal("1000")
    assert _bank_balance(user_id, second.id) == Decimal("750")


def test_update_expense_checks_funds_after_reversal(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "300")
    expense = ledger.create_expense(user_id, "Rent", "200", "bank", bank.id, "2025-03-01")

    # 100 left, but the 200 already spent is released before the check.
    ledger.update_expense(user_id, expense.id, amount="300")
    assert _bank_balance(user_id, bank.id) == Decimal("0")

    with pytest.raises(InsufficientFunds):
        ledger.update_expense(user_id, expense.id, amount="301")
    assert _bank_balance(user_id, bank.id) == Decimal("0")


def test_update_income_keeps_time_of_day_for_same_day(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "0")
    entry = ledger.create_income(user_id, "Salary", "100", "bank", bank.id, "2025-03-10T08:30:00")

    updated = ledger.update_income(user_id, entry.id, source="Bonus", date="2025-03-10")

    assert updated.source == "Bonus"
    assert updated.date.hour == 8 and updated.date.minute == 30


def test_update_income_switches_to_cash(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "0")
    entry = ledger.create_income(user_id, "Salary", "100", "bank", bank.id, "2025-03-10")

    ledger.update_income(user_id, entry.id, credited_to_type="cash")

    assert _bank_balance(user_id, bank.id) == Decimal("0")
    assert accounts.get_cash_balance(user_id).balance == Decimal("100")


def test_expense_only_user_skips_balance_changes(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "100")
    auth.set_tracking_option(user_id, "expenses")

    expense = ledger.create_expense(user_id, "Laptop", "500", "bank", bank.id, "2025-03-15")
    assert expense.balance_applied is False
    assert _bank_balance(user_id, bank.id) == Decimal("100")

    ledger.delete_expense(user_id, expense.id)
    assert _bank_balance(user_id, bank.id) == Decimal("100")


def test_expense_applied_before_switch_is_still_reversed(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "100")
    expense = ledger.create_expense(user_id, "Lunch", "40", "bank", bank.id, "2025-03-15")
    auth.set_tracking_option(user_id, "expenses")

    ledger.delete_expense(user_id, expense.id)

    assert _bank_balance(user_id, bank.id) == Decimal("100")


def test_expense_only_user_still_needs_existing_account(ctx, user_id):
    auth.set_tracking_option(user_id, "expenses")
    with pytest.raises(NotFound, match="Credit card not found"):
        ledger.create_expense(user_id, "Hotel", "10", "credit_card", 42, "2025-03-15")


def test_invalid_amounts_and_dates(ctx, user_id):
    with pytest.raises(InvalidInput, match="positive number"):
        ledger.create_income(user_id, "Salary", "-5", "cash", None, "2025-03-10")
    with pytest.raises(InvalidInput, match="Invalid date format"):
        ledger.create_income(user_id, "Salary", "5", "cash", None, "10/03/2025")
    with pytest.raises(InvalidInput, match="Date is required"):
        ledger.create_expense(user_id, "Lunch", "5", "cash", None, None)


def test_orphaned_bank_reference_shows_unknown(ctx, user_id):
    bank = accounts.create_bank(user_id, "hdfc", "100")
    expense = ledger.create_expense(user_id, "Lunch", "40", "bank", bank.id, "2025-03-15")
    db.session.delete(db.session.get(Bank, bank.id))
    db.session.commit()

    rows = ledger.list_expenses(user_id)
    assert rows[0]["payment_source_name"] == "Unknown Bank"

    ledger.delete_expense(user_id, expense.id)
    assert ledger.list_expenses(user_id) == []


def test_list_filters_by_month(ctx, user_id):
    ledger.create_income(user_id, "March", "10", "cash", None, "2025-03-31T23:59:00")
    ledger.create_income(user_id, "April", "20", "cash", None, "2025-04-01T00:00:00")

    march = ledger.list_income(user_id, month=3, year=2025)

    assert [row["source"] for row in march] == ["March"]
    assert march[0]["credited_to_name"] == "Cash"
    assert len(ledger.list_income(user_id)) == 2


def test_other_users_rows_are_not_found(ctx, user_id):
    entry = ledger.create_income(user_id, "Salary", "10", "cash", None, "2025-03-10")
    other = auth.register_user("bob", "Secret_123", "Bob", "bob@example.com", "Q?", "a")

    with pytest.raises(NotFound, match="Income transaction not found"):
        ledger.delete_income(other.id, entry.id)


def test_cash_expense_is_reversible(ctx, user_id):
    accounts.set_cash_balance(user_id, "80")
    expense = ledger.create_expense(user_id, "Taxi", "25.50", "cash", None, "2025-03-15")
    assert accounts.get_cash_balance(user_id).balance == Decimal("54.50")

    ledger.delete_expense(user_id, expense.id)

    cash = accounts.get_cash_balance(user_id)
    assert cash.balance == Decimal("80")
    assert cash.initial_balance == Decimal("80")


def test_credit_card_expenses_are_reversible(ctx, user_id):
    card = accounts.create_credit_card(user_id, "visa", "1000")
    first = ledger.create_expense(user_id, "Flight", "300", "credit_card", card.id, "2025-03-15")
    second = ledger.create_expense(user_id, "Hotel", "450.25", "credit_card", card.id, "2025-03-16")
    assert accounts.get_credit_card(user_id, card.id).used_limit == Decimal("750.25")

    ledger.delete_expense(user_id, second.id)
    ledger.delete_expense(user_id, first.id)

    assert accounts.get_credit_card(user_id, card.id).used_limit == Decimal("0")


def test_month_filter_needs_both_parts(ctx, user_id):
    with pytest.raises(InvalidInput, match="Month and year are required"):
        ledger.list_expenses(user_id, month=3)
