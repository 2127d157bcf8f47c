"""AgentProcess — real child processes standing in for the agent binary."""

from __future__ import annotations

import sys
import textwrap

import pytest

import _events as ev
from ralph.loop import AgentProcess
from ralph.parser import COMPLETE, EventProcessor, pump


def _script(tmp_path, body: str):
    path = tmp_path / "fake_agent.py"
    path.write_text(textwrap.dedent(body))
    return path


def test_streams_stdout_and_exit_code(tmp_path):
    script = _script(tmp_path, """
        import os, sys
        print('{"type": "system", "subtype": "init", "model": "fake"}', flush=True)
        print("warning on stderr", file=sys.stderr, flush=True)
        print(os.environ.get("RALPH_ITERATION", ""), flush=True)
        sys.exit(3)
    """)
    agent = AgentProcess.launch([sys.executable, str(script)], tmp_path, iteration=4)
    lines = [line.strip() for line in agent.lines()]
    assert agent.wait() == 3
    assert '"model": "fake"' in lines[0]
    assert "warning on stderr" in lines
    assert "4" in lines


def test_terminate_stops_a_hung_agent(tmp_path):
    script = _script(tmp_path, f"""
        import time
        print({ev.assistant("<ralph>COMPLETE</ralph>").strip()!r}, flush=True)
        time.sleep(60)
    """)
    agent = AgentProcess.launch([sys.executable, str(script)], tmp_path)
    processor = EventProcessor(tmp_path, mirror=False)
    stream = pump(agent.lines(), processor, poll_sec=0.05)
    assert next(stream) == COMPLETE
    stream.close()
    agent.terminate()
    assert agent.wait(timeout=10) != 0
    assert not agent.running()


def test_invalid_utf8_line_does_not_end_stream(tmp_path):
    script = _script(tmp_path, f"""
        import sys
        sys.stdout.buffer.write(b"\\xff\\xfe garbage\\n")
        sys.stdout.buffer.flush()
        sys.stderr.buffer.write(b"\\xff\\n")
        sys.stderr.buffer.flush()
        print({ev.assistant("<ralph>COMPLETE</ralph>").strip()!r}, flush=True)
    """)
    agent = AgentProcess.launch([sys.executable, str(script)], tmp_path)
    processor = EventProcessor(tmp_path, mirror=False)
    assert list(pump(agent.lines(), processor, poll_sec=0.05)) == [COMPLETE]
    assert agent.wait() == 0


def test_missing_binary_raises_oserror(tmp_path):
    with pytest.raises(OSError):
        AgentProcess.launch([str(tmp_path / "no-such-agent")], tmp_path)
