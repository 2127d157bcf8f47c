"""Iteration prompts — fresh start and post-rotation resume."""
from __future__ import annotations

from typing import Optional

from ralph.config import LoopConfig
from ralph.defaults import TASK_FILE_NAME
from ralph.parser import COMPLETE_SIGIL, GUTTER_SIGIL
from ralph.task import CriteriaCount

_END_REASONS = {
    "rotate": "its context filled up and it was rotated out",
    "exited": "it exited before the task was finished",
}


def _progress_path(config: LoopConfig) -> str:
    """progress.md relative to the workspace, the way the agent sees it from its cwd."""
    return config.progress_file.relative_to(config.workspace).as_posix()


def _rules_section(config: LoopConfig) -> str:
    progress = _progress_path(config)
    return "\n".join([
        "RULES:",
        f"  - {TASK_FILE_NAME} is the source of truth. Work the first unchecked criterion.",
        "  - When a criterion is done, change its `[ ]` to `[x]` in the task file.",
        f"  - Append what you did and what is next to {progress}.",
        "  - Commit after every completed criterion. Your memory does not survive;",
        "    only committed work and the files above do.",
        "  - Do not ask questions. Nobody is watching the session.",
        "",
        "SIGNALS (write them on their own line, outside code blocks):",
        f"  {COMPLETE_SIGIL}  every criterion in {TASK_FILE_NAME} is checked",
        f"  {GUTTER_SIGIL}    you are stuck and further attempts will not help",
    ])


def _progress_line(criteria: CriteriaCount) -> str:
    return f"Progress: {criteria.done} / {criteria.total} criteria complete ({criteria.remaining} remaining)."


def build_fresh_prompt(config: LoopConfig, criteria: CriteriaCount) -> str:
    return "\n".join([
        f"You are working on the task described in {TASK_FILE_NAME} in {config.workspace}.",
        _progress_line(criteria),
        "",
        f"Read {TASK_FILE_NAME} first, then {_progress_path(config)} if it exists.",
        "",
        _rules_section(config),
    ])


def build_resume_prompt(
    config: LoopConfig,
    criteria: CriteriaCount,
    iteration: int,
    previous_reason: str,
    head: Optional[str] = None,
) -> str:
    """Prompt for iteration > 1. Continuity comes from git history, not the old conversation."""
    why = _END_REASONS.get(previous_reason, previous_reason)
    lines = [
        f"This is iteration {iteration}. The previous agent session ended because {why}.",
        "You start with a fresh context. Rebuild it from the workspace:",
        f"  1. {TASK_FILE_NAME} for the criteria",
        f"  2. {_progress_path(config)} for notes left by earlier sessions",
        "  3. `git log --oneline -20` and `git status` for committed and uncommitted work",
    ]
    if head:
        lines.append(f"Latest commit: {head}")
    lines.extend([
        "",
        _progress_line(criteria),
        "",
        _rules_section(config),
    ])
    return "\n".join(lines)
