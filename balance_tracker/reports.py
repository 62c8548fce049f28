"""Reporting utilities.

Formats monthly summaries as text or JSON and the activity feed as CSV.
"""

from __future__ import annotations

import csv
import io
import json
from decimal import Decimal
from pathlib import Path
from typing import Dict, IO, Iterable, List

ACTIVITY_CSV_HEADER = ["Date", "Type", "Description", "Amount", "Account"]


def _money(value) -> str:
    if value is None:
        return "0.00"
    return f"{Decimal(str(value)):,.2f}"


def format_text_report(summary: Dict) -> str:
    lines: List[str] = []
    period = ""
    if summary.get("selectedMonth") and summary.get("selectedYear"):
        period = f" ({summary['selectedYear']:04d}-{summary['selectedMonth']:02d})"
    lines.append(f"=== Monthly Summary{period} ===")
    if summary.get("message"):
        lines.append(summary["message"])
    lines.append(f"Income:          {_money(summary['monthlyIncome'])}")
    lines.append(f"Expenses:        {_money(summary['totalExpenses'])}")
    lines.append(f"Net savings:     {_money(summary['netSavings'])}")
    lines.append(f"Initial balance: {_money(summary['totalInitialBalance'])}")
    lines.append(f"Total wealth:    {_money(summary['totalCurrentWealth'])}")
    lines.append("")

    lines.append("-- Banks (balance at month end) --")
    for bank in summary.get("banks") or []:
        lines.append(f"{bank['name'][:30]:30} {_money(bank['current_balance'])}")
    cash = summary.get("cash") or {}
    lines.append(f"{'CASH':30} {_money(cash.get('balance'))}")

    cards = summary.get("creditCards") or []
    if cards:
        lines.append("")
        lines.append("-- Credit Cards (used / limit) --")
        for card in cards:
            lines.append(f"{card['name'][:30]:30} {_money(card['used_limit'])} / {_money(card['credit_limit'])}")
    return "\n".join(lines)


def save_json(summary: Dict, path: str | Path) -> None:
    p = Path(path)
    p.parent.mkdir(parents=True, exist_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, default=str)


def _ensure_text_writer(target: str | Path | IO[str]):
    if hasattr(target, "write"):
        return target, None
    path = Path(target)
    path.parent.mkdir(parents=True, exist_ok=True)
    handle = path.open("w", newline="", encoding="utf-8")
    return handle, handle


def export_activity_csv(activities: Iterable[Dict], path: str | Path | IO[str]) -> None:
    rows: List[List[str]] = [ACTIVITY_CSV_HEADER]
    for activity in activities:
        rows.append(
            [
                str(activity.get("activity_date") or "")[:10],
                activity.get("activity_type") or "",
                activity.get("description") or "",
                f"{Decimal(str(activity.get('amount') or 0)):.2f}",
                activity.get("account_info") or "",
            ]
        )

    writer_target, to_close = _ensure_text_writer(path)
    try:
        writer = csv.writer(writer_target, lineterminator="\n")
        writer.writerows(rows)
    finally:
        if to_close is not None:
            to_close.close()


def activity_csv_text(activities: Iterable[Dict]) -> str:
    buffer = io.StringIO()
    export_activity_csv(activities, buffer)
    return buffer.getvalue()
