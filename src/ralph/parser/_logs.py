"""Session log sinks — activity.log and errors.log under .ralph/.

Lines are mirrored to stderr so stdout stays free for signal words.
"""
from __future__ import annotations

from datetime import datetime
from pathlib import Path

import click

from ralph.defaults import ACTIVITY_LOG_NAME, ERRORS_LOG_NAME
from ralph.fs import append_line

from ._estimate import health_indicator

_RULE = "═" * 63
_CLEAR = "\r\033[K"


def _ts() -> str:
    return datetime.now().strftime("%H:%M:%S")


class SessionLog:
    def __init__(self, ralph_dir: str | Path, mirror: bool = True) -> None:
        self.ralph_dir = Path(ralph_dir)
        self.activity_path = self.ralph_dir / ACTIVITY_LOG_NAME
        self.errors_path = self.ralph_dir / ERRORS_LOG_NAME
        self.mirror = mirror

    def banner(self) -> None:
        stamp = datetime.now().strftime("%a %b %d %H:%M:%S %Y")
        for line in ("", _RULE, f"Ralph Session Started: {stamp}", _RULE):
            append_line(self.activity_path, line)

    def activity(self, message: str, tokens: int) -> None:
        line = f"[{_ts()}] {health_indicator(tokens)} {message}"
        append_line(self.activity_path, line)
        self._echo(line)

    def error(self, message: str) -> None:
        ts = _ts()
        append_line(self.errors_path, f"[{ts}] {message}")
        self._echo(f"[{ts}] ❗ {message}")

    def _echo(self, line: str) -> None:
        if self.mirror:
            click.echo(f"{_CLEAR}{line}", err=True)
