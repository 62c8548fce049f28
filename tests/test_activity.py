import datetime as dt
from decimal import Decimal

import pytest

from balance_tracker import accounts, ledger
from balance_tracker.activity import export_activity, list_activity
from balance_tracker.errors import InvalidInput
from balance_tracker.models import Bank
from balance_tracker.reports import ACTIVITY_CSV_HEADER, activity_csv_text


@pytest.fixture
def feed(ctx, user_id, backdate):
    bank = accounts.create_bank(user_id, "hdfc", "1000")
    backdate(Bank, bank.id, dt.datetime(2025, 2, 1, 10, 0))
    ledger.create_income(user_id, "Salary", "500", "bank", bank.id, "2025-03-10T09:00:00")
    ledger.create_expense(user_id, "Rent", "200", "bank", bank.id, "2025-03-15T09:00:00")
    ledger.create_expense(user_id, "Groceries", "50", "bank", bank.id, "2025-04-02T09:00:00")
    return bank


def test_feed_is_newest_first_with_statistics(feed, user_id):
    result = list_activity(user_id)

    descriptions = [a["description"] for a in result["activities"]]
    assert descriptions == ["Groceries", "Rent", "Salary", "Added bank: HDFC"]
    assert result["totalItems"] == 4
    stats = result["statistics"]
    assert stats["totalIncome"] == Decimal("500")
    assert stats["totalExpenses"] == Decimal("250")
    assert stats["netBalance"] == Decimal("250")
    assert result["activities"][1]["account_info"] == "HDFC"


def test_filter_by_type_and_month(feed, user_id):
    expenses = list_activity(user_id, kind="expense")
    assert [a["description"] for a in expenses["activities"]] == ["Groceries", "Rent"]

    march = list_activity(user_id, month=3, year=2025)
    assert [a["description"] for a in march["activities"]] == ["Rent", "Salary"]


def test_filter_by_date_range_is_inclusive(feed, user_id):
    result = list_activity(user_id, from_date="2025-03-10", to_date="2025-03-15")
    assert [a["description"] for a in result["activities"]] == ["Rent", "Salary"]


def test_pagination(feed, user_id):
    first = list_activity(user_id, page=1, limit=3)
    second = list_activity(user_id, page="2", limit="3")

    assert first["totalPages"] == 2
    assert len(first["activities"]) == 3
    assert [a["description"] for a in second["activities"]] == ["Added bank: HDFC"]


def test_unknown_type_rejected(feed, user_id):
    with pytest.raises(InvalidInput):
        list_activity(user_id, kind="transfer")


def test_cash_setup_only_when_initial_positive(ctx, user_id):
    accounts.set_cash_balance(user_id, "0")
    assert list_activity(user_id)["totalItems"] == 0


def test_csv_export(feed, user_id):
    text = activity_csv_text(export_activity(user_id, kind="income"))

    lines = text.splitlines()
    assert lines[0] == ",".join(ACTIVITY_CSV_HEADER)
    assert lines[1] == "2025-03-10,income,Salary,500.00,HDFC"
    assert len(lines) == 2


def test_year_filter_and_bounds(feed, user_id):
    assert list_activity(user_id, year=2025)["totalItems"] == 4
    assert list_activity(user_id, year="2024")["totalItems"] == 0
    with pytest.raises(InvalidInput, match="Year is out of range"):
        list_activity(user_id, year=0)
    with pytest.raises(InvalidInput, match="Month and year are required"):
        list_activity(user_id, month=3)
