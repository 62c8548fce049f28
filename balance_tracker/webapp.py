"""Flask JSON API for the Balance Tracker."""

from __future__ import annotations

import datetime as dt
import logging
import os
from functools import wraps
from typing import Dict, Optional

from flask import Flask, Response, g, jsonify, request, session
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from . import accounts, activity, auth, ledger
from .config import AppConfig
from .db import init_db
from .errors import AuthenticationRequired, FinanceError
from .models import db
from .reports import activity_csv_text
from .summary import monthly_summary

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Request failed, please try again"


def login_required(view):
    @wraps(view)
    def wrapped_view(**kwargs):
        if g.user_id is None:
            raise AuthenticationRequired()
        return view(**kwargs)

    return wrapped_view


def _load_logged_in_user() -> None:
    g.user_id = session.get("user_id")


def _payload() -> Dict:
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()


def _truthy(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes"}


def _configure_logging(level: str) -> None:
    package_logger = logging.getLogger(__package__)
    package_logger.setLevel(level)
    if not logging.getLogger().handlers and not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(FinanceError)
    def handle_finance_error(exc: FinanceError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Storage failure on %s %s", request.method, request.path)
        return jsonify({"error": GENERIC_FAILURE}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"error": exc.description}), exc.code


def create_app(config: Optional[AppConfig] = None, overrides: Optional[Dict] = None) -> Flask:
    cfg = config or AppConfig.load(os.environ.get("BALANCE_TRACKER_CONFIG"))
    app = Flask(__name__)
    app.config.update(
        SQLALCHEMY_DATABASE_URI=cfg.database_url,
        SECRET_KEY=cfg.secret_key,
        PERMANENT_SESSION_LIFETIME=dt.timedelta(hours=cfg.session_hours),
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE="Strict",
        DEBUG=cfg.debug,
    )
    if overrides:
        app.config.update(overrides)

    _configure_logging(cfg.log_level)
    db.init_app(app)
    app.before_request(_load_logged_in_user)
    _register_error_handlers(app)
    with app.app_context():
        init_db()

    # ---------------------- Auth ----------------------
    @app.route("/auth/register", methods=["POST"])
    def register():
        data = _payload()
        user = auth.register_user(
            data.get("username"),
            data.get("password"),
            data.get("name"),
            data.get("email"),
            data.get("securityQuestion"),
            data.get("securityAnswer"),
        )
        session.clear()
        session.permanent = True
        session["user_id"] = user.id
        return jsonify({"success": True, "userId": user.id}), 201

    @app.route("/auth/login", methods=["POST"])
    def login():
        data = _payload()
        user = auth.authenticate(data.get("username"), data.get("password"))
        session.clear()
        session.permanent = True
        session["user_id"] = user.id
        return jsonify(
            {
                "success": True,
                "userId": user.id,
                "name": user.name,
                "trackingOption": user.tracking_option,
            }
        )

    @app.route("/auth/logout", methods=["POST"])
    def logout():
        session.clear()
        return jsonify({"success": True})

    @app.route("/auth/user")
    @login_required
    def current_user():
        return jsonify(auth.user_profile(auth.get_user(g.user_id)))

    @app.route("/auth/tracking-option", methods=["POST"])
    @login_required
    def tracking_option():
        user = auth.set_tracking_option(g.user_id, _payload().get("trackingOption"))
        return jsonify({"success": True, "trackingOption": user.tracking_option})

    @app.route("/auth/forgot-username", methods=["POST"])
    def forgot_username():
        user = auth.find_username(_payload().get("email"))
        return jsonify(
            {
                "success": True,
                "username": user.username,
                "name": user.name,
                "message": "Username found successfully",
            }
        )

    @app.route("/auth/forgot-password", methods=["POST"])
    def forgot_password():
        data = _payload()
        user = auth.start_password_reset(username=data.get("username"), email=data.get("email"))
        return jsonify(
            {
                "success": True,
                "userId": user.id,
                "username": user.username,
                "name": user.name,
                "securityQuestion": user.security_question,
            }
        )

    @app.route("/auth/reset-password", methods=["POST"])
    def reset_password():
        data = _payload()
        auth.reset_password(data.get("userId"), data.get("securityAnswer"), data.get("newPassword"))
        return jsonify({"success": True, "message": "Password reset successfully"})

    # ---------------------- Accounts ----------------------
    @app.route("/accounts/banks", methods=["GET", "POST"])
    @login_required
    def banks():
        if request.method == "POST":
            data = _payload()
            bank = accounts.create_bank(g.user_id, data.get("name"), data.get("initialBalance"))
            return jsonify(bank.to_dict()), 201
        return jsonify([b.to_dict() for b in accounts.list_banks(g.user_id)])

    @app.route("/accounts/banks/<int:bank_id>", methods=["GET", "PUT", "DELETE"])
    @login_required
    def bank_detail(bank_id: int):
        if request.method == "PUT":
            data = _payload()
            bank = accounts.update_bank(g.user_id, bank_id, data.get("name"), data.get("initialBalance"))
            return jsonify(bank.to_dict())
        if request.method == "DELETE":
            accounts.delete_bank(g.user_id, bank_id)
            return jsonify({"success": True, "message": "Bank deleted successfully"})
        return jsonify(accounts.get_bank(g.user_id, bank_id).to_dict())

    @app.route("/accounts/credit-cards", methods=["GET", "POST"])
    @login_required
    def credit_cards():
        if request.method == "POST":
            data = _payload()
            card = accounts.create_credit_card(g.user_id, data.get("name"), data.get("creditLimit"))
            return jsonify(card.to_dict()), 201
        return jsonify([c.to_dict() for c in accounts.list_credit_cards(g.user_id)])

    @app.route("/accounts/credit-cards/<int:card_id>", methods=["GET", "PUT", "DELETE"])
    @login_required
    def credit_card_detail(card_id: int):
        if request.method == "PUT":
            data = _payload()
            card = accounts.update_credit_card(g.user_id, card_id, data.get("name"), data.get("creditLimit"))
            return jsonify(card.to_dict())
        if request.method == "DELETE":
            accounts.delete_credit_card(g.user_id, card_id)
            return jsonify({"success": True, "message": "Credit card deleted successfully"})
        return jsonify(accounts.get_credit_card(g.user_id, card_id).to_dict())

    @app.route("/accounts/cash", methods=["GET", "POST"])
    @login_required
    def cash_balance():
        if request.method == "POST":
            cash = accounts.set_cash_balance(g.user_id, _payload().get("balance"))
            return jsonify(cash.to_dict())
        return jsonify(accounts.cash_balance_dict(accounts.get_cash_balance(g.user_id)))

    # ---------------------- Transactions ----------------------
    @app.route("/transactions/income", methods=["GET", "POST"])
    @login_required
    def income():
        if request.method == "POST":
            data = _payload()
            entry = ledger.create_income(
                g.user_id,
                data.get("source"),
                data.get("amount"),
                data.get("creditedToType"),
                data.get("creditedToId"),
                data.get("date"),
            )
            return jsonify(entry.to_dict()), 201
        return jsonify(ledger.list_income(g.user_id, request.args.get("month"), request.args.get("year")))

    @app.route("/transactions/income/<int:income_id>", methods=["GET", "PUT", "DELETE"])
    @login_required
    def income_detail(income_id: int):
        if request.method == "PUT":
            data = _payload()
            entry = ledger.update_income(
                g.user_id,
                income_id,
                source=data.get("source"),
                amount=data.get("amount"),
                credited_to_type=data.get("creditedToType"),
                credited_to_id=data.get("creditedToId"),
                date=data.get("date"),
            )
            return jsonify(
                {
                    "success": True,
                    "message": "Income transaction updated successfully",
                    "income": entry.to_dict(),
                }
            )
        if request.method == "DELETE":
            ledger.delete_income(g.user_id, income_id)
            return jsonify({"success": True, "message": "Income transaction deleted successfully"})
        return jsonify(ledger.get_income(g.user_id, income_id).to_dict())

    @app.route("/transactions/expenses", methods=["GET", "POST"])
    @login_required
    def expenses():
        if request.method == "POST":
            data = _payload()
            expense = ledger.create_expense(
                g.user_id,
                data.get("title"),
                data.get("amount"),
                data.get("paymentMethod"),
                data.get("paymentSourceId"),
                data.get("date"),
            )
            return jsonify(expense.to_dict()), 201
        return jsonify(ledger.list_expenses(g.user_id, request.args.get("month"), request.args.get("year")))

    @app.route("/transactions/expenses/<int:expense_id>", methods=["GET", "PUT", "DELETE"])
    @login_required
    def expense_detail(expense_id: int):
        if request.method == "PUT":
            data = _payload()
            expense = ledger.update_expense(
                g.user_id,
                expense_id,
                title=data.get("title"),
                amount=data.get("amount"),
                payment_method=data.get("paymentMethod"),
                payment_source_id=data.get("paymentSourceId"),
                date=data.get("date"),
            )
            return jsonify(
                {
                    "success": True,
                    "message": "Expense transaction updated successfully",
                    "expense": expense.to_dict(),
                }
            )
        if request.method == "DELETE":
            ledger.delete_expense(g.user_id, expense_id)
            return jsonify({"success": True, "message": "Expense transaction deleted successfully"})
        return jsonify(ledger.get_expense(g.user_id, expense_id).to_dict())

    # ---------------------- Reports ----------------------
    @app.route("/summary/monthly")
    @login_required
    def summary():
        return jsonify(monthly_summary(g.user_id, request.args.get("month"), request.args.get("year")))

    @app.route("/activity")
    @login_required
    def activity_feed():
        args = request.args
        filters = {
            "kind": args.get("type", ""),
            "from_date": args.get("from_date"),
            "to_date": args.get("to_date"),
            "month": args.get("month"),
            "year": args.get("year"),
        }
        if _truthy(args.get("export")):
            body = activity_csv_text(activity.export_activity(g.user_id, **filters))
            return Response(
                body,
                mimetype="text/csv",
                headers={"Content-Disposition": "attachment; filename=activity-export.csv"},
            )
        return jsonify(
            activity.list_activity(
                g.user_id,
                page=args.get("page", 1),
                limit=args.get("limit", activity.DEFAULT_LIMIT),
                **filters,
            )
        )

    return app
