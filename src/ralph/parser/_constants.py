"""Signal vocabulary, sigil strings and health tiers."""
from __future__ import annotations

from typing import Literal

Signal = Literal["WARN", "ROTATE", "GUTTER", "COMPLETE"]

WARN: Signal = "WARN"
ROTATE: Signal = "ROTATE"
GUTTER: Signal = "GUTTER"
COMPLETE: Signal = "COMPLETE"

SIGNALS: tuple[Signal, ...] = (WARN, ROTATE, GUTTER, COMPLETE)

# Markers the agent writes into its own text to declare status
COMPLETE_SIGIL = "<ralph>COMPLETE</ralph>"
GUTTER_SIGIL = "<ralph>GUTTER</ralph>"

# Health tiers as a percentage of the rotate threshold
HEALTHY_BELOW_PCT = 60
ELEVATED_BELOW_PCT = 80

HEALTHY = "\U0001f7e2"   # green circle
ELEVATED = "\U0001f7e1"  # yellow circle
CRITICAL = "\U0001f534"  # red circle

# Status-line qualifiers
IMMINENT_PCT = 90
APPROACHING_PCT = 72
