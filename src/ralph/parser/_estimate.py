"""Token estimate and context-health rendering.

The estimate is a fixed chars/4 ratio over everything the agent has seen or
produced. It is recomputed from the counters on every call.
"""
from __future__ import annotations

from typing import Optional

from ralph.defaults import CHARS_PER_TOKEN, ROTATE_THRESHOLD, WARN_THRESHOLD

from ._constants import (
    APPROACHING_PCT,
    CRITICAL,
    ELEVATED,
    ELEVATED_BELOW_PCT,
    HEALTHY,
    HEALTHY_BELOW_PCT,
    IMMINENT_PCT,
    ROTATE,
    WARN,
    Signal,
)
from ._state import SessionState


def estimate_tokens(state: SessionState) -> int:
    total = (
        state.prompt_chars
        + state.bytes_read
        + state.bytes_written
        + state.assistant_chars
        + state.shell_output_chars
    )
    return total // CHARS_PER_TOKEN


def percent_of_rotate(tokens: int) -> int:
    return tokens * 100 // ROTATE_THRESHOLD


def health_indicator(tokens: int) -> str:
    pct = percent_of_rotate(tokens)
    if pct < HEALTHY_BELOW_PCT:
        return HEALTHY
    if pct < ELEVATED_BELOW_PCT:
        return ELEVATED
    return CRITICAL


def threshold_signal(state: SessionState) -> Optional[Signal]:
    """Return ROTATE, WARN or None for the current counters.

    ROTATE is checked first and wins outright. WARN fires once per session;
    this marks state.warn_signal_sent when it does.
    """
    tokens = estimate_tokens(state)
    if tokens >= ROTATE_THRESHOLD:
        return ROTATE
    if tokens >= WARN_THRESHOLD and not state.warn_signal_sent:
        state.warn_signal_sent = True
        return WARN
    return None


def kb(nbytes: int) -> str:
    """One-decimal KB for display."""
    return f"{nbytes / 1024:.1f}"


def status_line(state: SessionState) -> str:
    tokens = estimate_tokens(state)
    pct = percent_of_rotate(tokens)
    msg = f"TOKENS: {tokens} / {ROTATE_THRESHOLD} ({pct}%)"
    if pct >= IMMINENT_PCT:
        msg += " - rotation imminent"
    elif pct >= APPROACHING_PCT:
        msg += " - approaching limit"
    breakdown = (
        f"[read:{state.bytes_read // 1024}KB write:{state.bytes_written // 1024}KB "
        f"assist:{state.assistant_chars // 1024}KB shell:{state.shell_output_chars // 1024}KB]"
    )
    return f"{msg} {breakdown}"
