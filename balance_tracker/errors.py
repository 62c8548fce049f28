"""Error types raised by the balance tracker core.

Each error carries the HTTP status it maps to at the web boundary; callers
branch on the class, never on the message text.
"""

from __future__ import annotations


class FinanceError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class InvalidInput(FinanceError):
    status_code = 400


class InsufficientFunds(FinanceError):
    status_code = 400


class AlreadyExists(FinanceError):
    status_code = 400


class AccountInUse(FinanceError):
    status_code = 400


class NotFound(FinanceError):
    status_code = 404


class AuthenticationRequired(FinanceError):
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)
