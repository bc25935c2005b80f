from __future__ import annotations

import datetime as dt
from pathlib import Path

from phab_relay.reports import collect_last_seen, render_table

TODAY = dt.date(2026, 10, 19)


def _write(log_dir: Path, day: dt.date, lines: list[str], prefix: str = "") -> None:
    (log_dir / f"{prefix}phab-relay.{day.isoformat()}.log").write_text("\n".join(lines) + "\n", encoding="utf-8")


def test_reports_newest_day_per_user(tmp_path: Path) -> None:
    _write(
        tmp_path,
        TODAY - dt.timedelta(days=1),
        [
            "startup -> started",
            "PHID-USER-alice -> <a href='https://phab.example/p/alice/'>alice</a>",
            "PHID-TASK-1 -> <a href='https://phab.example/T1'>T1</a>",
        ],
    )
    _write(
        tmp_path,
        TODAY - dt.timedelta(days=3),
        [
            "PHID-USER-alice -> <a href='https://phab.example/p/alice/'>alice</a>",
            "PHID-USER-bob -> <a href='https://phab.example/p/bob/'>bob</a> aka: bobby",
            "PHID-USER-carol -> ",
        ],
    )
    _write(
        tmp_path,
        TODAY - dt.timedelta(days=45),
        ["PHID-USER-dave -> <a href='https://phab.example/p/dave/'>dave</a>"],
    )
    _write(tmp_path, TODAY, ["PHID-USER-erin -> <a href='https://phab.example/p/erin/'>erin</a>"], prefix="error.")

    rows = collect_last_seen(tmp_path, days=30, today=TODAY)

    assert rows == [("2026-10-18", "alice"), ("2026-10-16", "bob")]


def test_render_table_is_markdown_with_profile_links() -> None:
    table = render_table([("2026-10-18", "alice")])
    assert table == (
        " | date | user |\n"
        " | ---  | ---  |\n"
        "| 2026-10-18 | [@alice](/p/alice) |\n"
    )


def test_empty_directory_gives_header_only(tmp_path: Path) -> None:
    assert collect_last_seen(tmp_path, today=TODAY) == []
    assert render_table([]).count("\n") == 2
