"""Stream parser — token estimate, gutter detection and signals for one agent session."""
from ._constants import COMPLETE, COMPLETE_SIGIL, GUTTER, GUTTER_SIGIL, ROTATE, SIGNALS, WARN, Signal
from ._estimate import estimate_tokens, health_indicator, status_line
from ._gutter import GutterDetector, scan_sigils
from ._state import FailureLedger, SessionState, WriteLedger
from .processor import EventProcessor, parse_event
from .stream import pump

__all__ = [
    "COMPLETE",
    "COMPLETE_SIGIL",
    "GUTTER",
    "GUTTER_SIGIL",
    "ROTATE",
    "SIGNALS",
    "WARN",
    "Signal",
    "EventProcessor",
    "FailureLedger",
    "GutterDetector",
    "SessionState",
    "WriteLedger",
    "estimate_tokens",
    "health_indicator",
    "parse_event",
    "pump",
    "scan_sigils",
    "status_line",
]
