"""Loop controller — spawn, watch, rotate, stop."""
from ._agent import AgentProcess, build_command
from .controller import (
    EXIT_CODES,
    IterationResult,
    LoopController,
    LoopResult,
    SetupError,
    check_prerequisites,
)

__all__ = [
    "AgentProcess",
    "EXIT_CODES",
    "IterationResult",
    "LoopController",
    "LoopResult",
    "SetupError",
    "build_command",
    "check_prerequisites",
]
