"""Task-completion check — count checklist criteria in RALPH_TASK.md.

A criterion is a list item (`-`, `*` or `1.`) followed by a checkbox:
    - [ ] open
    - [x] done
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

_CRITERION = re.compile(r"^\s*(?:[-*]|[0-9]+\.)\s+\[(x| )\]")


@dataclass(frozen=True)
class CriteriaCount:
    total: int
    done: int

    @property
    def remaining(self) -> int:
        return self.total - self.done

    @property
    def complete(self) -> bool:
        return self.total > 0 and self.remaining == 0


def parse_criteria(text: str) -> CriteriaCount:
    total = 0
    done = 0
    for line in text.splitlines():
        m = _CRITERION.match(line)
        if not m:
            continue
        total += 1
        if m.group(1) == "x":
            done += 1
    return CriteriaCount(total=total, done=done)


def count_criteria(task_file: str | Path) -> CriteriaCount:
    """Count criteria in task_file. A missing file counts as zero criteria."""
    path = Path(task_file)
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        return CriteriaCount(total=0, done=0)
    return parse_criteria(text)
