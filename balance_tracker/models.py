"""SQLAlchemy models for the Balance Tracker web application."""

from __future__ import annotations

import datetime as dt

from flask_sqlalchemy import SQLAlchemy


db = SQLAlchemy()

# Up to 999,999,999,999,999,999.99
Money = db.Numeric(20, 2)

TRACKING_OPTIONS = ("income", "expenses", "both")
INCOME_TARGETS = ("bank", "cash")
PAYMENT_METHODS = ("cash", "bank", "credit_card")


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = (
        db.CheckConstraint("tracking_option IN ('income', 'expenses', 'both')", name="ck_users_tracking_option"),
    )

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    security_question = db.Column(db.String(100), nullable=False)
    security_answer_hash = db.Column(db.String(255), nullable=False)
    tracking_option = db.Column(db.String(20), nullable=False, default="both")
    created_at = db.Column(db.DateTime, default=dt.datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=dt.datetime.now, onupdate=dt.datetime.now, nullable=False)

    banks = db.relationship("Bank", back_populates="user", cascade="all, delete-orphan")
    credit_cards = db.relationship("CreditCard", back_populates="user", cascade="all, delete-orphan")
    cash_balance = db.relationship("CashBalance", back_populates="user", uselist=False, cascade="all, delete-orphan")
    income_entries = db.relationship("IncomeEntry", back_populates="user", cascade="all, delete-orphan")
    expenses = db.relationship("Expense", back_populates="user", cascade="all, delete-orphan")


class Bank(db.Model):
    __tablename__ = "banks"
    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_banks_user_name"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    initial_balance = db.Column(Money, nullable=False, default=0)
    current_balance = db.Column(Money, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=dt.datetime.now, nullable=False)

    user = db.relationship("User", back_populates="banks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "initial_balance": self.initial_balance,
            "current_balance": self.current_balance,
            "created_at": self.created_at.isoformat(),
        }


class CreditCard(db.Model):
    __tablename__ = "credit_cards"
    __table_args__ = (db.UniqueConstraint("user_id", "name", name="uq_credit_cards_user_name"),)

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)
    credit_limit = db.Column(Money, nullable=False)
    used_limit = db.Column(Money, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=dt.datetime.now, nullable=False)

    user = db.relationship("User", back_populates="credit_cards")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "credit_limit": self.credit_limit,
            "used_limit": self.used_limit,
            "created_at": self.created_at.isoformat(),
        }


class CashBalance(db.Model):
    __tablename__ = "cash_balance"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    balance = db.Column(Money, nullable=False, default=0)
    initial_balance = db.Column(Money, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=dt.datetime.now, onupdate=dt.datetime.now, nullable=False)

    user = db.relationship("User", back_populates="cash_balance")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "balance": self.balance,
            "initial_balance": self.initial_balance,
            "updated_at": self.updated_at.isoformat(),
        }


class IncomeEntry(db.Model):
    __tablename__ = "income_entries"
    __table_args__ = (
        db.CheckConstraint("credited_to_type IN ('bank', 'cash')", name="ck_income_credited_to_type"),
        db.Index("ix_income_user_date", "user_id", "date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    source = db.Column(db.String(100), nullable=False)
    amount = db.Column(Money, nullable=False)
    credited_to_type = db.Column(db.String(10), nullable=False)
    # Polymorphic reference; resolved against banks by application code only.
    credited_to_id = db.Column(db.Integer)
    date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime, default=dt.datetime.now, nullable=False)

    user = db.relationship("User", back_populates="income_entries")

    @property
    def month(self) -> int:
        return self.date.month

    @property
    def year(self) -> int:
        return self.date.year

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "source": self.source,
            "amount": self.amount,
            "credited_to_type": self.credited_to_type,
            "credited_to_id": self.credited_to_id,
            "date": self.date.isoformat(),
            "month": self.month,
            "year": self.year,
            "created_at": self.created_at.isoformat(),
        }


class Expense(db.Model):
    __tablename__ = "expenses"
    __table_args__ = (
        db.CheckConstraint("payment_method IN ('cash', 'bank', 'credit_card')", name="ck_expenses_payment_method"),
        db.Index("ix_expenses_user_date", "user_id", "date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(200), nullable=False)
    amount = db.Column(Money, nullable=False)
    payment_method = db.Column(db.String(15), nullable=False)
    # Polymorphic reference; resolved against banks or credit_cards by application code only.
    payment_source_id = db.Column(db.Integer)
    date = db.Column(db.DateTime, nullable=False)
    # False when the expense was recorded without touching any balance (expense-only tracking).
    balance_applied = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=dt.datetime.now, nullable=False)

    user = db.relationship("User", back_populates="expenses")

    @property
    def month(self) -> int:
        return self.date.month

    @property
    def year(self) -> int:
        return self.date.year

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "payment_source_id": self.payment_source_id,
            "date": self.date.isoformat(),
            "month": self.month,
            "year": self.year,
            "balance_applied": self.balance_applied,
            "created_at": self.created_at.isoformat(),
        }
