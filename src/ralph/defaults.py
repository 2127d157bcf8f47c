"""Shared constants — env var names, workspace paths, thresholds, resolvers.

Single source of truth for the numbers the stream parser and the loop agree on.
"""

from __future__ import annotations

from pathlib import Path

# ---------------------------------------------------------------------------
# Env var names
# ---------------------------------------------------------------------------

ENV_MODEL = "RALPH_MODEL"
ENV_AGENT_BIN = "RALPH_AGENT_BIN"
ENV_MAX_ITERATIONS = "RALPH_MAX_ITERATIONS"
# Set for the agent child so its own tooling can tell which iteration it is in
ENV_ITERATION = "RALPH_ITERATION"

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_MODEL = "opus-4.5-thinking"
DEFAULT_MAX_ITERATIONS = 20
DEFAULT_AGENT_BIN = "cursor-agent"
AGENT_BINS = ("cursor-agent", "agent")

# ---------------------------------------------------------------------------
# Workspace layout
# ---------------------------------------------------------------------------

RALPH_DIR_NAME = ".ralph"
TASK_FILE_NAME = "RALPH_TASK.md"
ACTIVITY_LOG_NAME = "activity.log"
ERRORS_LOG_NAME = "errors.log"
PROGRESS_FILE_NAME = "progress.md"
CONFIG_FILE_NAME = "config.yaml"

# ---------------------------------------------------------------------------
# Context thresholds (token-estimate units)
# ---------------------------------------------------------------------------

WARN_THRESHOLD = 70_000
ROTATE_THRESHOLD = 80_000

# Seed for the fixed instruction preamble (~2KB prompt + file references)
PROMPT_CHARS = 3_000
CHARS_PER_TOKEN = 4
# Byte estimate per reported line when a tool result carries no size
BYTES_PER_LINE = 100

# ---------------------------------------------------------------------------
# Gutter heuristics
# ---------------------------------------------------------------------------

FAILURE_LIMIT = 3
THRASH_LIMIT = 5
THRASH_WINDOW_SEC = 600

STATUS_INTERVAL_SEC = 30


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def resolve_workspace(raw: str | Path | None = None) -> Path:
    """Resolve workspace: explicit path > cwd. '.' means cwd."""
    if raw is None or str(raw) in ("", "."):
        return Path.cwd()
    return Path(raw).expanduser().resolve()


def resolve_ralph_dir(workspace: str | Path | None = None) -> Path:
    """Resolve the workspace-local .ralph directory."""
    return resolve_workspace(workspace) / RALPH_DIR_NAME
