"""Command-line interface for the Balance Tracker.

Usage:
  python -m balance_tracker.cli init-db
  python -m balance_tracker.cli serve --port 5000
  python -m balance_tracker.cli summary --username alice --month 3 --year 2025

The config file path comes from ``--config`` or ``BALANCE_TRACKER_CONFIG``.
"""

from __future__ import annotations

import argparse
import os
from typing import List, Optional

from sqlalchemy import select

from .config import AppConfig
from .errors import FinanceError
from .models import User, db
from .reports import format_text_report, save_json
from .summary import monthly_summary
from .webapp import create_app


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Balance Tracker")
    p.add_argument("--config", "-c", help="Path to JSON config file")
    sub = p.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")

    serve = sub.add_parser("serve", help="Run the development server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=5000)

    summary = sub.add_parser("summary", help="Print a monthly summary")
    summary.add_argument("--username", "-u", required=True)
    summary.add_argument("--month", "-m", type=int, required=True)
    summary.add_argument("--year", "-y", type=int, required=True)
    summary.add_argument("--json", dest="json_out", help="Write summary JSON to path")
    return p.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    cfg = AppConfig.load(args.config or os.environ.get("BALANCE_TRACKER_CONFIG"))
    app = create_app(cfg)

    if args.command == "init-db":
        print(f"Database ready at: {cfg.database_url}")
        return 0

    if args.command == "serve":
        app.run(host=args.host, port=args.port, debug=cfg.debug)
        return 0

    with app.app_context():
        user_id = db.session.scalar(select(User.id).where(User.username == args.username))
        if user_id is None:
            print(f"No such user: {args.username}")
            return 1
        try:
            summary = monthly_summary(user_id, args.month, args.year)
        except FinanceError as exc:
            print(f"Error: {exc.message}")
            return 1

    print(format_text_report(summary))
    if args.json_out:
        save_json(summary, args.json_out)
        print(f"\nSaved JSON summary to: {args.json_out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
