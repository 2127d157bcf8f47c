"""Loop controller — run the agent until the task is done, it is stuck, or we run out of iterations.

One iteration = one agent subprocess with a fresh EventProcessor. The loop
only looks at the signals the processor yields:

    COMPLETE  stop, success
    GUTTER    stop, error (no automatic retry)
    ROTATE    kill the agent, start the next iteration with a fresh context
    WARN      logged, nothing else

Nothing in memory carries across iterations. The next agent picks up from
committed work, the task file and .ralph/progress.md.
"""
from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Literal, Optional

import click

from ralph.config import LoopConfig
from ralph.fs import append_line, ensure_ralph_dir
from ralph.parser import COMPLETE, GUTTER, ROTATE, WARN, EventProcessor, Signal, pump
from ralph.task import CriteriaCount, count_criteria
from ralph.vcs import VCSError, checkout_branch, head_summary, open_pull_request

from ._agent import AgentProcess, build_command
from ._prompts import build_fresh_prompt, build_resume_prompt

log = logging.getLogger(__name__)

LoopState = Literal["COMPLETE", "GUTTER", "MAX_ITER", "LAUNCH_FAILED", "INTERRUPTED"]
EndReason = Literal["complete", "gutter", "rotate", "exited", "launch_failed", "interrupted"]

# Process exit codes for `ralph run`
EXIT_CODES: dict[str, int] = {
    "COMPLETE": 0,
    "GUTTER": 2,
    "MAX_ITER": 3,
    "LAUNCH_FAILED": 1,
    "INTERRUPTED": 1,
}

_TERMINAL_SIGNALS: dict[str, EndReason] = {
    COMPLETE: "complete",
    GUTTER: "gutter",
    ROTATE: "rotate",
}


class SetupError(Exception):
    """Raised before any agent is spawned when the run cannot start."""


@dataclass
class IterationResult:
    iteration: int
    exit_code: int
    end_reason: EndReason
    signals: List[Signal] = field(default_factory=list)
    tokens: int = 0


@dataclass
class LoopResult:
    state: LoopState
    iterations: List[IterationResult]
    message: str

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.state]


def check_prerequisites(config: LoopConfig, require_agent: bool = True) -> None:
    """Fail fast on anything that would make the first iteration pointless."""
    if not config.workspace.is_dir():
        raise SetupError(f"Workspace not found: {config.workspace}")
    if not config.task_file.is_file():
        raise SetupError(f"Task file not found: {config.task_file}")
    if config.open_pr and not config.branch:
        raise SetupError("--pr requires --branch (e.g. --branch feature/foo --pr)")
    if require_agent and shutil.which(config.agent_bin) is None:
        raise SetupError(f"Agent binary not found on PATH: {config.agent_bin}")


Launcher = Callable[..., Any]


class LoopController:
    def __init__(
        self,
        config: LoopConfig,
        *,
        launch: Launcher = AgentProcess.launch,
        clock: Callable[[], float] = time.time,
        poll_sec: float = 1.0,
        mirror: bool = True,
    ) -> None:
        self.config = config
        self._launch = launch
        self._clock = clock
        self._poll_sec = poll_sec
        self._mirror = mirror
        self.iterations: List[IterationResult] = []

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self) -> LoopResult:
        ensure_ralph_dir(self.config.workspace)
        if self.config.branch:
            try:
                checkout_branch(self.config.workspace, self.config.branch)
            except VCSError as exc:
                raise SetupError(str(exc)) from exc
            self._log(f"on branch {self.config.branch}")

        previous: Optional[EndReason] = None
        for iteration in range(1, self.config.max_iterations + 1):
            criteria = self._criteria()
            if criteria.complete:
                return self._finish("COMPLETE", "all criteria checked")

            self._log(
                f"iteration {iteration}/{self.config.max_iterations} "
                f"({criteria.done}/{criteria.total} criteria done)"
            )
            result = self.run_iteration(iteration, criteria, previous)
            self.iterations.append(result)

            if result.end_reason == "complete":
                return self._finish("COMPLETE", "agent signaled COMPLETE")
            if result.end_reason == "gutter":
                return self._finish(
                    "GUTTER",
                    f"agent is stuck (gutter detected, see {self.config.errors_log}); not retrying",
                )
            if result.end_reason == "launch_failed":
                return self._finish("LAUNCH_FAILED", f"could not start {self.config.agent_bin}")
            if result.end_reason == "interrupted":
                return self._finish("INTERRUPTED", "interrupted by operator")
            if result.end_reason == "rotate":
                self._record_rotation(iteration, result.tokens)
            else:
                self._log(f"iteration {iteration}: agent exited ({result.exit_code}) without a signal")
                if self._criteria().complete:
                    return self._finish("COMPLETE", "all criteria checked")
            previous = result.end_reason

        return self._finish("MAX_ITER", f"iteration cap reached ({self.config.max_iterations})")

    def run_iteration(
        self,
        iteration: int,
        criteria: CriteriaCount,
        previous: Optional[EndReason] = None,
    ) -> IterationResult:
        if iteration == 1 or previous is None:
            prompt = build_fresh_prompt(self.config, criteria)
        else:
            prompt = build_resume_prompt(
                self.config, criteria, iteration, previous,
                head=head_summary(self.config.workspace),
            )
        cmd = build_command(self.config, prompt)

        try:
            agent = self._launch(cmd, self.config.workspace, iteration)
        except OSError as exc:
            self._log(f"failed to launch {cmd[0]}: {exc}")
            return IterationResult(iteration=iteration, exit_code=127, end_reason="launch_failed")

        processor = EventProcessor(self.config.workspace, clock=self._clock, mirror=self._mirror)
        signals: List[Signal] = []
        end_reason: EndReason = "exited"
        stream = pump(agent.lines(), processor, poll_sec=self._poll_sec)
        handled = False
        try:
            for sig in stream:
                signals.append(sig)
                if sig == WARN:
                    self._log(f"iteration {iteration}: context at ~{processor.tokens} tokens (warn)")
                    continue
                end_reason = _TERMINAL_SIGNALS[sig]
                break
            handled = True
        except KeyboardInterrupt:
            end_reason = "interrupted"
            handled = True
        finally:
            stream.close()
            processor.finish()
            if end_reason != "exited" or not handled:
                agent.terminate()
            if not handled:
                # the error propagates; reap the child so it is not orphaned
                agent.wait()

        exit_code = agent.wait()
        return IterationResult(
            iteration=iteration,
            exit_code=exit_code,
            end_reason=end_reason,
            signals=signals,
            tokens=processor.tokens,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _criteria(self) -> CriteriaCount:
        return count_criteria(self.config.task_file)

    def _record_rotation(self, iteration: int, tokens: int) -> None:
        head = head_summary(self.config.workspace) or "no commits"
        msg = (
            f"🔄 ROTATE: iteration {iteration} ended at ~{tokens} tokens; "
            f"iteration {iteration + 1} resumes from committed history ({head})"
        )
        append_line(self.config.activity_log, f"[{datetime.now().strftime('%H:%M:%S')}] {msg}")
        self._log(msg)

    def _finish(self, state: LoopState, message: str) -> LoopResult:
        if state == "COMPLETE" and self.config.open_pr and self.config.branch:
            try:
                url = open_pull_request(
                    self.config.workspace,
                    self.config.branch,
                    title=f"ralph: {self.config.branch}",
                    body=f"Completed by ralph in {len(self.iterations)} iteration(s).",
                )
                self._log(f"opened PR: {url}")
            except VCSError as exc:
                self._log(f"PR not opened: {exc}")
        self._log(f"{state}: {message}")
        return LoopResult(state=state, iterations=list(self.iterations), message=message)

    def _log(self, message: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        click.echo(f"[{ts}] {message}")
