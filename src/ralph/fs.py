"""Filesystem helpers — .ralph/ setup and append-only log lines."""

from __future__ import annotations

from pathlib import Path

from ralph.defaults import RALPH_DIR_NAME


def ensure_ralph_dir(workspace: str | Path) -> Path:
    """Create <workspace>/.ralph if needed and return it.

    Raises OSError when the directory cannot be created; callers treat that
    as a fatal setup error.
    """
    d = Path(workspace) / RALPH_DIR_NAME
    d.mkdir(parents=True, exist_ok=True)
    return d


def append_line(path: str | Path, line: str) -> None:
    """Append one line to path with a single write call."""
    data = line if line.endswith("\n") else line + "\n"
    with open(path, "a", encoding="utf-8") as f:
        f.write(data)


def head_lines(path: str | Path, count: int = 30) -> list[str]:
    """Return the first `count` lines of a text file (no trailing newlines)."""
    out: list[str] = []
    with open(path, encoding="utf-8", errors="replace") as f:
        for line in f:
            if len(out) >= count:
                break
            out.append(line.rstrip("\n"))
    return out
