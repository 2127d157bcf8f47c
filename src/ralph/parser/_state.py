"""Session state — running totals and anomaly ledgers for one agent invocation.

Nothing here outlives an iteration: rotation builds a new SessionState.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ralph.defaults import PROMPT_CHARS, THRASH_WINDOW_SEC


@dataclass
class SessionState:
    prompt_chars: int = PROMPT_CHARS
    bytes_read: int = 0
    bytes_written: int = 0
    assistant_chars: int = 0
    shell_output_chars: int = 0
    tool_call_count: int = 0
    warn_signal_sent: bool = False

    def counters(self) -> Dict[str, int]:
        return {
            "prompt_chars": self.prompt_chars,
            "bytes_read": self.bytes_read,
            "bytes_written": self.bytes_written,
            "assistant_chars": self.assistant_chars,
            "shell_output_chars": self.shell_output_chars,
            "tool_call_count": self.tool_call_count,
        }


class FailureLedger:
    """Exact command text -> cumulative failure count. Never decremented."""

    def __init__(self) -> None:
        self._counts: Dict[str, int] = {}

    def record(self, command: str) -> int:
        count = self._counts.get(command, 0) + 1
        self._counts[command] = count
        return count

    def count(self, command: str) -> int:
        return self._counts.get(command, 0)

    def __len__(self) -> int:
        return len(self._counts)


@dataclass
class WriteLedger:
    """Every (timestamp, path) write seen this session, in arrival order."""

    window_sec: float = THRASH_WINDOW_SEC
    entries: List[Tuple[float, str]] = field(default_factory=list)

    def record(self, now: float, path: str) -> int:
        """Append a write and return how many writes to path fall in the trailing window."""
        self.entries.append((now, path))
        cutoff = now - self.window_sec
        return sum(1 for ts, p in self.entries if p == path and ts >= cutoff)

    def __len__(self) -> int:
        return len(self.entries)
