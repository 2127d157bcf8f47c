"""Gutter detection — is the agent going in circles?

Three independent sources, none deduplicated:
    repeated failure  the same shell command failed FAILURE_LIMIT times
    write thrashing   one path written THRASH_LIMIT times inside the window
    sigil             the agent wrote GUTTER_SIGIL in its own text
"""
from __future__ import annotations

import re
from typing import List, Optional

from ralph.defaults import FAILURE_LIMIT, THRASH_LIMIT

from ._constants import COMPLETE, COMPLETE_SIGIL, GUTTER, GUTTER_SIGIL, Signal
from ._logs import SessionLog
from ._state import FailureLedger, WriteLedger

_FENCED = re.compile(r"```.*?```", re.DOTALL)
_INLINE = re.compile(r"`[^`\n]*`")


def strip_code(text: str) -> str:
    """Drop fenced blocks and inline code spans so quoted markers don't count."""
    return _INLINE.sub("", _FENCED.sub("", text))


def scan_sigils(text: str) -> List[Signal]:
    """Signals declared in text, COMPLETE before GUTTER, at most one of each."""
    prose = strip_code(text)
    found: List[Signal] = []
    if COMPLETE_SIGIL in prose:
        found.append(COMPLETE)
    if GUTTER_SIGIL in prose:
        found.append(GUTTER)
    return found


class GutterDetector:
    def __init__(self, log: SessionLog) -> None:
        self.log = log
        self.failures = FailureLedger()
        self.writes = WriteLedger()

    def shell_failed(self, command: str, exit_code: int) -> Optional[Signal]:
        count = self.failures.record(command)
        self.log.error(f"SHELL FAIL: {command} → exit {exit_code} (attempt {count})")
        if count >= FAILURE_LIMIT:
            self.log.error(f"⚠️ GUTTER: same command failed {count}x")
            return GUTTER
        return None

    def file_written(self, path: str, now: float) -> Optional[Signal]:
        count = self.writes.record(now, path)
        if count >= THRASH_LIMIT:
            self.log.error(f"⚠️ THRASHING: {path} written {count}x in 10 min")
            return GUTTER
        return None
