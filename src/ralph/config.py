from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from ralph.defaults import (
    ACTIVITY_LOG_NAME,
    AGENT_BINS,
    CONFIG_FILE_NAME,
    DEFAULT_AGENT_BIN,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MODEL,
    ENV_AGENT_BIN,
    ENV_MAX_ITERATIONS,
    ENV_MODEL,
    ERRORS_LOG_NAME,
    PROGRESS_FILE_NAME,
    RALPH_DIR_NAME,
    TASK_FILE_NAME,
    resolve_workspace,
)


@dataclass(frozen=True)
class LoopConfig:
    workspace: Path
    model: str
    max_iterations: int
    agent_bin: str
    branch: Optional[str] = None
    open_pr: bool = False
    skip_confirm: bool = False
    extra_args: tuple[str, ...] = ()

    @property
    def ralph_dir(self) -> Path:
        return self.workspace / RALPH_DIR_NAME

    @property
    def task_file(self) -> Path:
        return self.workspace / TASK_FILE_NAME

    @property
    def progress_file(self) -> Path:
        return self.ralph_dir / PROGRESS_FILE_NAME

    @property
    def activity_log(self) -> Path:
        return self.ralph_dir / ACTIVITY_LOG_NAME

    @property
    def errors_log(self) -> Path:
        return self.ralph_dir / ERRORS_LOG_NAME


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    raw = yaml.safe_load(path.read_text()) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top-level config must be a YAML mapping")
    return raw


def load_config(
    workspace: str | Path | None = None,
    *,
    model: Optional[str] = None,
    max_iterations: Optional[int] = None,
    agent_bin: Optional[str] = None,
    branch: Optional[str] = None,
    open_pr: bool = False,
    skip_confirm: bool = False,
) -> LoopConfig:
    """Build a LoopConfig. Precedence: explicit args > env > .ralph/config.yaml > defaults."""
    ws = resolve_workspace(workspace)
    raw = _read_yaml(ws / RALPH_DIR_NAME / CONFIG_FILE_NAME)

    model = model or os.getenv(ENV_MODEL) or str(raw.get("model", DEFAULT_MODEL))

    agent_bin = agent_bin or os.getenv(ENV_AGENT_BIN) or str(raw.get("agent_bin", DEFAULT_AGENT_BIN))
    agent_bin = agent_bin.strip()
    if agent_bin not in AGENT_BINS:
        raise ValueError(
            f"Invalid agent binary '{agent_bin}'. Expected one of: {', '.join(AGENT_BINS)}."
        )

    if max_iterations is None:
        env_iter = os.getenv(ENV_MAX_ITERATIONS)
        try:
            max_iterations = int(env_iter or raw.get("max_iterations", DEFAULT_MAX_ITERATIONS))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"max_iterations must be an integer: {exc}") from exc
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be positive, got {max_iterations}")

    extra_raw = raw.get("extra_args", [])
    extra_args = tuple(str(a) for a in extra_raw) if isinstance(extra_raw, list) else ()

    return LoopConfig(
        workspace=ws,
        model=model,
        max_iterations=max_iterations,
        agent_bin=agent_bin,
        branch=branch or raw.get("branch") or None,
        open_pr=open_pr,
        skip_confirm=skip_confirm,
        extra_args=extra_args,
    )
