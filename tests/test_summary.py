import datetime as dt
from decimal import Decimal

import pytest

from balance_tracker import accounts, auth, ledger
from balance_tracker.errors import InvalidInput
from balance_tracker.models import Bank, CreditCard
from balance_tracker.summary import (
    BEFORE_REGISTRATION_MESSAGE,
    FUTURE_DATE_MESSAGE,
    NO_TRANSACTIONS_MESSAGE,
    monthly_summary,
)

TODAY = dt.date(2026, 10, 18)


@pytest.fixture
def march_activity(ctx, user_id, backdate):
    bank = accounts.create_bank(user_id, "hdfc", "1000")
    backdate(Bank, bank.id, dt.datetime(2025, 2, 1, 10, 0))
    ledger.create_income(user_id, "Salary", "500", "bank", bank.id, "2025-03-10")
    ledger.create_expense(user_id, "Rent", "200", "bank", bank.id, "2025-03-15")
    return bank


def test_month_with_activity(march_activity, user_id):
    summary = monthly_summary(user_id, 3, 2025, today=TODAY)

    assert summary["message"] is None
    assert summary["monthlyIncome"] == Decimal("500")
    assert summary["totalExpenses"] == Decimal("200")
    assert summary["totalInitialBalance"] == Decimal("1000")
    assert summary["netSavings"] == Decimal("1300")
    assert summary["totalCurrentWealth"] == Decimal("1300")
    assert summary["banks"][0]["current_balance"] == Decimal("1300")
    assert summary["isMonthCompleted"] is True
    assert summary["isCurrentMonth"] is False
    assert (summary["selectedMonth"], summary["selectedYear"]) == (3, 2025)


def test_month_before_activity_shows_opening_balance(march_activity, user_id):
    summary = monthly_summary(user_id, 2, 2025, today=TODAY)

    assert summary["message"] is None
    assert summary["monthlyIncome"] == Decimal("0")
    assert summary["banks"][0]["current_balance"] == Decimal("1000")
    assert summary["totalCurrentWealth"] == Decimal("1000")


def test_month_before_bank_existed_has_no_transactions(march_activity, user_id):
    summary = monthly_summary(user_id, 1, 2025, today=TODAY)

    assert summary["message"] == NO_TRANSACTIONS_MESSAGE
    assert summary["banks"] == []
    assert summary["totalCurrentWealth"] == Decimal("0")


def test_month_before_registration(march_activity, user_id):
    summary = monthly_summary(user_id, 12, 2024, today=TODAY)

    assert summary["message"] == BEFORE_REGISTRATION_MESSAGE
    assert summary["isMonthCompleted"] is True
    assert summary["monthlyIncome"] == Decimal("0")


def test_future_month(ctx, user_id):
    summary = monthly_summary(user_id, 11, 2026, today=TODAY)

    assert summary["message"] == FUTURE_DATE_MESSAGE
    assert summary["isCurrentMonth"] is False


def test_current_month_flag(ctx, user_id):
    accounts.set_cash_balance(user_id, "10")
    summary = monthly_summary(user_id, 10, 2026, today=TODAY)

    assert summary["isCurrentMonth"] is True
    assert summary["isMonthCompleted"] is False
    assert summary["cash"]["balance"] == Decimal("10")


def test_monthly_totals_add_up_to_range(march_activity, user_id):
    ledger.create_income(user_id, "Bonus", "75", "bank", march_activity.id, "2025-04-02")

    per_month = [monthly_summary(user_id, m, 2025, today=TODAY)["monthlyIncome"] for m in (2, 3, 4)]

    assert sum(per_month) == Decimal("575")


def test_credit_cards_follow_tracking_option(march_activity, user_id, backdate):
    card = accounts.create_credit_card(user_id, "visa", "1000")
    backdate(CreditCard, card.id, dt.datetime(2025, 2, 1))
    ledger.create_expense(user_id, "Hotel", "120", "credit_card", card.id, "2025-03-20")

    summary = monthly_summary(user_id, 3, 2025, today=TODAY)
    assert summary["creditCards"][0]["used_limit"] == Decimal("120")
    assert summary["totalExpenses"] == Decimal("320")

    auth.set_tracking_option(user_id, "income")
    assert monthly_summary(user_id, 3, 2025, today=TODAY)["creditCards"] == []


def test_invalid_month(ctx, user_id):
    with pytest.raises(InvalidInput, match="between 1 and 12"):
        monthly_summary(user_id, 13, 2025, today=TODAY)
    with pytest.raises(InvalidInput, match="required"):
        monthly_summary(user_id, None, 2025, today=TODAY)
