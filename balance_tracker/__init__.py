"""Balance Tracker package."""

__all__ = [
    "config",
    "models",
    "db",
    "accounts",
    "ledger",
    "history",
    "summary",
    "activity",
    "auth",
    "reports",
    "webapp",
]

__version__ = "0.1.0"
