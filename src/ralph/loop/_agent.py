"""Agent subprocess — build the command line, own the child, stream its stdout."""
from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Iterable, List

from ralph.config import LoopConfig
from ralph.defaults import ENV_ITERATION

log = logging.getLogger(__name__)


def build_command(config: LoopConfig, prompt: str) -> List[str]:
    return [
        config.agent_bin,
        "-p",
        "--force",
        "--output-format",
        "stream-json",
        "--model",
        config.model,
        *config.extra_args,
        prompt,
    ]


class AgentProcess:
    """One running agent invocation. stderr is folded into stdout."""

    def __init__(self, proc: subprocess.Popen) -> None:
        self.proc = proc

    @classmethod
    def launch(cls, cmd: List[str], cwd: Path, iteration: int = 0) -> "AgentProcess":
        """Start cmd in cwd. Raises OSError (FileNotFoundError included) if it cannot start."""
        env = dict(os.environ)
        env[ENV_ITERATION] = str(iteration)
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            # stderr noise may not be UTF-8; one bad byte must not end the stream
            encoding="utf-8",
            errors="replace",
            bufsize=1,
            env=env,
        )
        log.debug("launched %s (pid %s)", cmd[0], proc.pid)
        return cls(proc)

    def lines(self) -> Iterable[str]:
        assert self.proc.stdout is not None
        return self.proc.stdout

    def running(self) -> bool:
        return self.proc.poll() is None

    def terminate(self) -> None:
        """SIGTERM, give it five seconds, then SIGKILL."""
        if not self.running():
            return
        self.proc.terminate()
        try:
            self.proc.wait(timeout=5)
        except subprocess.TimeoutExpired:
            log.debug("pid %s ignored SIGTERM, killing", self.proc.pid)
            self.proc.kill()

    def wait(self, timeout: float = 30) -> int:
        try:
            code = self.proc.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            self.proc.kill()
            code = self.proc.wait(timeout=5)
        if self.proc.stdout is not None:
            self.proc.stdout.close()
        return code
