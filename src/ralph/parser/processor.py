"""EventProcessor — one agent invocation's stream-json, one event at a time.

Each event updates the SessionState, may log to activity.log/errors.log, and
returns the signals it raised (usually none). The processor never decides
what to do about a signal; that belongs to the loop.

Event shapes handled (type/subtype):
    system/init            session start, model name
    assistant              text length, sigils
    thinking               text length, sigils
    tool_call/started      tool count
    tool_call/completed    read/write/shell sizing, gutter checks, thresholds
    result                 session end
"""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, List, Optional

from ralph.defaults import STATUS_INTERVAL_SEC, WARN_THRESHOLD, ROTATE_THRESHOLD
from ralph.fs import ensure_ralph_dir

from ._constants import COMPLETE, GUTTER, ROTATE, WARN, Signal
from ._estimate import estimate_tokens, kb, status_line, threshold_signal
from ._gutter import GutterDetector, scan_sigils
from ._logs import SessionLog
from ._state import SessionState
from ._tools import ToolCompletion, parse_tool_completion

log = logging.getLogger(__name__)

Clock = Callable[[], float]


def parse_event(line: str) -> Optional[dict[str, Any]]:
    """Parse one stream line. None for blanks, bad JSON, non-objects, or a missing type."""
    raw = line.strip()
    if not raw:
        return None
    try:
        payload = json.loads(raw)
    except (ValueError, RecursionError):
        # RecursionError: pathologically nested arrays/objects
        log.debug("skipping unparsable line: %.120s", raw)
        return None
    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        log.debug("skipping record without a type: %.120s", raw)
        return None
    return payload


def message_text(payload: dict[str, Any]) -> str:
    """Text of an assistant/thinking event, whichever field carries it."""
    message = payload.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    if isinstance(content, list):
        parts = [
            block["text"] for block in content
            if isinstance(block, dict) and isinstance(block.get("text"), str)
        ]
        if parts:
            return "".join(parts)
    elif isinstance(content, str) and content:
        return content
    text = payload.get("text")
    return text if isinstance(text, str) else ""


class EventProcessor:
    def __init__(
        self,
        workspace: str | Path,
        *,
        clock: Clock = time.time,
        mirror: bool = True,
    ) -> None:
        self.ralph_dir = ensure_ralph_dir(workspace)
        self.log = SessionLog(self.ralph_dir, mirror=mirror)
        self.state = SessionState()
        self.gutter = GutterDetector(self.log)
        self.clock = clock
        self._last_status = clock()
        self._started = False
        self._finished = False

    @property
    def tokens(self) -> int:
        return estimate_tokens(self.state)

    def start(self) -> None:
        if not self._started:
            self._started = True
            self.log.banner()

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def process_line(self, line: str) -> List[Signal]:
        event = parse_event(line)
        if event is None:
            return []
        return self.process_event(event)

    def process_event(self, event: dict[str, Any]) -> List[Signal]:
        self.start()
        etype = event.get("type")
        subtype = event.get("subtype")

        if etype == "system":
            if subtype == "init":
                self._session_start(event)
            return []
        if etype in ("assistant", "thinking"):
            return self._text(event)
        if etype == "tool_call":
            if subtype == "started":
                self.state.tool_call_count += 1
                return []
            if subtype == "completed":
                return self._tool_completed(event)
            return []
        if etype == "result":
            self._session_end(event)
        return []

    def tick(self) -> None:
        """Write the periodic status line once STATUS_INTERVAL_SEC has passed."""
        now = self.clock()
        if now - self._last_status >= STATUS_INTERVAL_SEC:
            self._status()
            self._last_status = now

    def finish(self) -> List[Signal]:
        """End of stream: last threshold check and final status line. Idempotent."""
        if self._finished:
            return []
        self._finished = True
        self.start()
        signals = self._check_thresholds()
        self._status()
        return signals

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _session_start(self, event: dict[str, Any]) -> None:
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        model = event.get("model") or data.get("model") or "unknown"
        self._activity(f"SESSION START: model={model}")

    def _session_end(self, event: dict[str, Any]) -> None:
        data = event.get("data") if isinstance(event.get("data"), dict) else {}
        duration = event.get("duration_ms") or data.get("duration_ms") or 0
        self._activity(f"SESSION END: {duration}ms, ~{self.tokens} tokens used")

    def _text(self, event: dict[str, Any]) -> List[Signal]:
        text = message_text(event)
        if not text:
            return []
        self.state.assistant_chars += len(text)
        signals = scan_sigils(text)
        for sig in signals:
            if sig == COMPLETE:
                self._activity("✅ Agent signaled COMPLETE")
            elif sig == GUTTER:
                self._activity("🚨 Agent signaled GUTTER (stuck)")
        return signals

    def _tool_completed(self, event: dict[str, Any]) -> List[Signal]:
        tool = parse_tool_completion(event)
        signals: List[Signal] = []
        if tool.kind == "read":
            self._read(tool)
        elif tool.kind == "write":
            sig = self._write(tool)
            if sig:
                signals.append(sig)
        elif tool.kind == "shell":
            sig = self._shell(tool)
            if sig:
                signals.append(sig)
        else:
            self._activity(f"TOOL {tool.name} (completed)")
        signals.extend(self._check_thresholds())
        return signals

    def _read(self, tool: ToolCompletion) -> None:
        self.state.bytes_read += tool.nbytes
        self._activity(f"READ {tool.path} ({tool.lines} lines, ~{kb(tool.nbytes)}KB)")

    def _write(self, tool: ToolCompletion) -> Optional[Signal]:
        self.state.bytes_written += tool.nbytes
        self._activity(f"WRITE {tool.path} (~{kb(tool.nbytes)}KB)")
        return self.gutter.file_written(tool.path, self.clock())

    def _shell(self, tool: ToolCompletion) -> Optional[Signal]:
        self.state.shell_output_chars += tool.output_chars
        if tool.exit_code == 0:
            if tool.output_chars > 1024:
                self._activity(f"SHELL {tool.command} → exit 0 ({tool.output_chars} chars output)")
            else:
                self._activity(f"SHELL {tool.command} → exit 0")
            return None
        self._activity(f"SHELL {tool.command} → exit {tool.exit_code}")
        return self.gutter.shell_failed(tool.command, tool.exit_code)

    def _check_thresholds(self) -> List[Signal]:
        tokens = self.tokens
        sig = threshold_signal(self.state)
        if sig == ROTATE:
            self._activity(f"ROTATE: Token threshold reached ({tokens} >= {ROTATE_THRESHOLD})")
        elif sig == WARN:
            self._activity(f"WARN: Approaching token limit ({tokens} >= {WARN_THRESHOLD})")
        return [sig] if sig else []

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _activity(self, message: str) -> None:
        self.log.activity(message, self.tokens)

    def _status(self) -> None:
        self.log.activity(status_line(self.state), self.tokens)
