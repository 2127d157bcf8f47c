"""Session log reader behind `ralph logs`."""
from __future__ import annotations

import time
from collections import deque
from pathlib import Path
from typing import Iterable, List

import click

from ralph.defaults import ACTIVITY_LOG_NAME, ERRORS_LOG_NAME

# Written by SessionLog.banner() at the start of every agent session
SESSION_BANNER = "Ralph Session Started:"


def session_log_path(ralph_dir: Path, errors: bool = False) -> Path:
    return ralph_dir / (ERRORS_LOG_NAME if errors else ACTIVITY_LOG_NAME)


def last_session(lines: Iterable[str]) -> List[str]:
    """Lines from the most recent session banner onward (everything if there is none)."""
    out: List[str] = []
    for line in lines:
        if SESSION_BANNER in line:
            # keep the rule printed just above the banner
            out = out[-1:] if out and out[-1].startswith("═") else []
        out.append(line)
    return out


def show_session_log(
    ralph_dir: Path,
    errors: bool = False,
    lines: int = 40,
    follow: bool = False,
    session_only: bool = False,
) -> None:
    """Print the tail of activity.log (or errors.log); with follow, keep printing.

    errors.log has no banners, so session_only applies to activity.log only.
    """
    log_file = session_log_path(ralph_dir, errors)
    if not log_file.exists():
        raise click.ClickException(
            f"No session log at {log_file} (has `ralph run` or `ralph parse` run here?)"
        )

    with log_file.open("r", encoding="utf-8", errors="replace") as fp:
        if session_only and not errors:
            selected: Iterable[str] = last_session(fp)
            if lines > 0:
                selected = list(selected)[-lines:]
        else:
            selected = deque(fp, maxlen=lines) if lines > 0 else ()
        for line in selected:
            click.echo(line, nl=False)
        if not follow:
            return
        _follow(log_file, fp)


def _follow(log_file: Path, fp) -> None:
    while True:
        line = fp.readline()
        if line:
            click.echo(line, nl=False)
            continue
        # rotated away or truncated under us: start over from the top
        if not log_file.exists() or log_file.stat().st_size < fp.tell():
            time.sleep(0.5)
            if log_file.exists():
                fp.close()
                fp = log_file.open("r", encoding="utf-8", errors="replace")
            continue
        time.sleep(0.5)
