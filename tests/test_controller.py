"""LoopController — iteration decisions driven by parser signals."""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List

import pytest

import _events as ev
from ralph.config import LoopConfig
from ralph.loop import LoopController, SetupError, build_command, check_prerequisites


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAgent:
    def __init__(self, lines: Iterable[str], exit_code: int = 0) -> None:
        self._lines = lines
        self.exit_code = exit_code
        self.terminated = False
        self.waited = False

    def lines(self) -> Iterable[str]:
        return iter(self._lines)

    def terminate(self) -> None:
        self.terminated = True

    def wait(self, timeout: float = 30) -> int:
        self.waited = True
        return -15 if self.terminated else self.exit_code


class FakeLauncher:
    """Hands out one scripted agent per iteration."""

    def __init__(self, scripts: List[object]) -> None:
        self.scripts = list(scripts)
        self.calls: list[tuple[list[str], Path, int]] = []
        self.agents: list[FakeAgent] = []

    def __call__(self, cmd: list[str], cwd: Path, iteration: int) -> FakeAgent:
        self.calls.append((cmd, cwd, iteration))
        script = self.scripts.pop(0)
        if isinstance(script, BaseException):
            raise script
        agent = script if isinstance(script, FakeAgent) else FakeAgent(script)
        self.agents.append(agent)
        return agent

    def prompt(self, index: int) -> str:
        return self.calls[index][0][-1]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def workspace(tmp_path) -> Path:
    (tmp_path / "RALPH_TASK.md").write_text("# Task\n- [x] one\n- [ ] two\n")
    return tmp_path


def _config(workspace: Path, **overrides) -> LoopConfig:
    values = dict(workspace=workspace, model="test-model", max_iterations=3, agent_bin="cursor-agent")
    values.update(overrides)
    return LoopConfig(**values)


def _controller(workspace: Path, launcher: FakeLauncher, **overrides) -> LoopController:
    return LoopController(
        _config(workspace, **overrides),
        launch=launcher,
        clock=ev.FakeClock(),
        poll_sec=0.01,
        mirror=False,
    )


ROTATE_LINES = [ev.init(), ev.read(content_size=330_000), ev.assistant("still going")]


# ---------------------------------------------------------------------------
# Terminal signals
# ---------------------------------------------------------------------------


def test_complete_stops_successfully(workspace):
    launcher = FakeLauncher([[ev.init(), ev.assistant("<ralph>COMPLETE</ralph>"), ev.read(lines=1)]])
    result = _controller(workspace, launcher).run()
    assert result.state == "COMPLETE"
    assert result.exit_code == 0
    assert len(launcher.calls) == 1
    assert launcher.agents[0].terminated


def test_gutter_stops_with_error(workspace):
    launcher = FakeLauncher([[ev.shell("run-tests", 1)] * 3])
    result = _controller(workspace, launcher).run()
    assert result.state == "GUTTER"
    assert result.exit_code == 2
    assert result.iterations[0].end_reason == "gutter"
    assert len(launcher.calls) == 1


def test_gutter_message_points_at_errors_log(workspace):
    launcher = FakeLauncher([[ev.assistant("<ralph>GUTTER</ralph>")]])
    result = _controller(workspace, launcher).run()
    assert str(workspace / ".ralph" / "errors.log") in result.message


def test_unexpected_error_still_reaps_agent(workspace, monkeypatch):
    def explode(self, line):
        raise RuntimeError("boom")

    monkeypatch.setattr("ralph.parser.processor.EventProcessor.process_line", explode)
    launcher = FakeLauncher([[ev.init()]])
    with pytest.raises(RuntimeError, match="boom"):
        _controller(workspace, launcher).run()
    assert launcher.agents[0].terminated
    assert launcher.agents[0].waited


def test_warn_is_informational(workspace):
    launcher = FakeLauncher([
        [ev.read(content_size=277_000), ev.read(lines=1)],
        [ev.assistant("<ralph>COMPLETE</ralph>")],
    ])
    result = _controller(workspace, launcher).run()
    assert result.iterations[0].signals == ["WARN"]
    assert result.iterations[0].end_reason == "exited"
    assert not launcher.agents[0].terminated
    assert result.state == "COMPLETE"


# ---------------------------------------------------------------------------
# Rotation
# ---------------------------------------------------------------------------


def test_rotate_starts_fresh_iteration(workspace):
    launcher = FakeLauncher([ROTATE_LINES, [ev.init(), ev.assistant("<ralph>COMPLETE</ralph>")]])
    result = _controller(workspace, launcher).run()

    assert result.state == "COMPLETE"
    assert [it.end_reason for it in result.iterations] == ["rotate", "complete"]
    assert launcher.agents[0].terminated
    assert result.iterations[0].tokens >= 80_000
    assert result.iterations[1].tokens < 1_000
    assert [call[2] for call in launcher.calls] == [1, 2]

    assert "iteration 2" in launcher.prompt(1)
    assert "rotated out" in launcher.prompt(1)
    assert "git log" in launcher.prompt(1)
    assert "2. .ralph/progress.md for notes" in launcher.prompt(1)
    assert "iteration 2" not in launcher.prompt(0)

    activity = (workspace / ".ralph" / "activity.log").read_text()
    assert "ROTATE: iteration 1 ended at" in activity
    assert "resumes from committed history" in activity
    assert activity.count("Ralph Session Started:") == 2


def test_rotation_until_cap(workspace):
    launcher = FakeLauncher([ROTATE_LINES] * 3)
    result = _controller(workspace, launcher).run()
    assert result.state == "MAX_ITER"
    assert result.exit_code == 3
    assert "iteration cap reached" in result.message
    assert len(result.iterations) == 3


# ---------------------------------------------------------------------------
# No signal
# ---------------------------------------------------------------------------


def test_exit_without_signal_loops_until_cap(workspace):
    launcher = FakeLauncher([[ev.init(), ev.result()]] * 3)
    result = _controller(workspace, launcher).run()
    assert result.state == "MAX_ITER"
    assert [it.end_reason for it in result.iterations] == ["exited"] * 3
    assert "exited before the task was finished" in launcher.prompt(2)


def test_exit_after_criteria_checked_is_complete(workspace):
    task = workspace / "RALPH_TASK.md"

    def finishing_agent():
        yield ev.init()
        task.write_text("# Task\n- [x] one\n- [x] two\n")
        yield ev.result()

    launcher = FakeLauncher([finishing_agent(), [ev.init()]])
    result = _controller(workspace, launcher).run()
    assert result.state == "COMPLETE"
    assert len(launcher.calls) == 1


def test_already_complete_spawns_nothing(workspace):
    (workspace / "RALPH_TASK.md").write_text("- [x] done\n")
    launcher = FakeLauncher([])
    result = _controller(workspace, launcher).run()
    assert result.state == "COMPLETE"
    assert launcher.calls == []


def test_task_without_criteria_is_not_complete(workspace):
    (workspace / "RALPH_TASK.md").write_text("# Just prose\n")
    launcher = FakeLauncher([[ev.result()]])
    result = _controller(workspace, launcher, max_iterations=1).run()
    assert result.state == "MAX_ITER"


def test_launch_failure_stops(workspace):
    launcher = FakeLauncher([FileNotFoundError("cursor-agent")])
    result = _controller(workspace, launcher).run()
    assert result.state == "LAUNCH_FAILED"
    assert result.iterations[0].exit_code == 127


# ---------------------------------------------------------------------------
# Command line and prerequisites
# ---------------------------------------------------------------------------


def test_build_command(workspace):
    cmd = build_command(_config(workspace, extra_args=("--x",)), "do it")
    assert cmd == [
        "cursor-agent", "-p", "--force", "--output-format", "stream-json",
        "--model", "test-model", "--x", "do it",
    ]


def test_fresh_prompt_mentions_sigils(workspace):
    launcher = FakeLauncher([[ev.assistant("<ralph>COMPLETE</ralph>")]])
    _controller(workspace, launcher).run()
    prompt = launcher.prompt(0)
    assert "<ralph>COMPLETE</ralph>" in prompt
    assert "<ralph>GUTTER</ralph>" in prompt
    assert "1 / 2 criteria complete" in prompt
    assert "then .ralph/progress.md if it exists" in prompt


def test_pr_requires_branch(workspace):
    with pytest.raises(SetupError, match="--pr requires --branch"):
        check_prerequisites(_config(workspace, open_pr=True), require_agent=False)


def test_missing_task_file(tmp_path):
    with pytest.raises(SetupError, match="Task file not found"):
        check_prerequisites(_config(tmp_path), require_agent=False)


def test_missing_workspace(tmp_path):
    with pytest.raises(SetupError, match="Workspace not found"):
        check_prerequisites(_config(tmp_path / "nope"), require_agent=False)


def test_missing_agent_binary(workspace, monkeypatch):
    monkeypatch.setattr("ralph.loop.controller.shutil.which", lambda name: None)
    with pytest.raises(SetupError, match="not found on PATH"):
        check_prerequisites(_config(workspace))
