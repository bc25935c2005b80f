#!/usr/bin/env python3
"""Last-seen report built from the relay's daily activity logs.

For every user PHID that shows up with a resolved link in the window, report
the most recent day it was seen as a Markdown table.
"""

from __future__ import annotations

import argparse
import datetime as dt
import os
import re
import sys
from pathlib import Path

from phab_relay.activity import log_filename
from phab_relay.config import ENV_KEYS

USER_PREFIX = "PHID-USER"
INBOX_KEY = "SYNAPSE_PHAB_INBOX"
REPORT_NAME = "activity.md"

_PROFILE = re.compile(r".*/p/([^/]*)")


def window_files(log_dir: Path, days: int, today: dt.date) -> list[tuple[str, Path]]:
    """(date, path) for each existing activity file in the window, newest first."""
    found = []
    for offset in range(days + 1):
        day = today - dt.timedelta(days=offset)
        path = log_dir / log_filename(day)
        if path.exists():
            found.append((day.isoformat(), path))
    return found


def _linked_lines(path: Path) -> list[str]:
    with path.open("r", encoding="utf-8", errors="replace") as fh:
        return [line.rstrip("\n") for line in fh if line.startswith(USER_PREFIX) and "<a" in line]


def _profile_name(line: str) -> str:
    match = _PROFILE.match(line)
    return match.group(1) if match else ""


def collect_last_seen(log_dir: Path, days: int = 30, today: dt.date | None = None) -> list[tuple[str, str]]:
    """Return (date, username) rows sorted newest first."""
    files = window_files(log_dir, days, today or dt.date.today())
    lines_by_day = [(day, _linked_lines(path)) for day, path in files]

    users: set[str] = set()
    for _, lines in lines_by_day:
        users.update(line.split(" ", 1)[0] for line in lines)

    rows: list[tuple[str, str]] = []
    for phid in sorted(users):
        for day, lines in lines_by_day:
            names = sorted(
                {_profile_name(line) for line in lines if line.split(" ", 1)[0] == phid} - {""}
            )
            if names:
                rows.append((day, names[0]))
                break
    rows.sort(reverse=True)
    return rows


def render_table(rows: list[tuple[str, str]]) -> str:
    out = [" | date | user |", " | ---  | ---  |"]
    out.extend(f"| {day} | [@{user}](/p/{user}) |" for day, user in rows)
    return "\n".join(out) + "\n"


def main() -> int:
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--log-dir", default=os.getenv(ENV_KEYS["log_dir"], "."), help="activity log directory")
    ap.add_argument("--days", type=int, default=30, help="days to look back, today excluded")
    ap.add_argument(
        "--output",
        help=f"report path (default: ${INBOX_KEY}{REPORT_NAME}; '-' for stdout)",
    )
    args = ap.parse_args()

    log_dir = Path(args.log_dir)
    if not log_dir.is_dir():
        print(f"error: log dir not found: {log_dir}", file=sys.stderr)
        return 2

    table = render_table(collect_last_seen(log_dir, args.days))
    output = args.output
    if output is None:
        inbox = os.getenv(INBOX_KEY)
        output = f"{inbox}{REPORT_NAME}" if inbox is not None else "-"
    if output == "-":
        sys.stdout.write(table)
    else:
        Path(output).write_text(table, encoding="utf-8")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
