"""Git and gh shell-outs — branch setup, head summary, pull request.

These are thin wrappers; the loop only needs to know whether they worked.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path
from typing import List, Optional


class VCSError(RuntimeError):
    pass


def _run(cmd: List[str], cwd: Path, timeout: int = 60) -> subprocess.CompletedProcess:
    return subprocess.run(
        cmd, cwd=str(cwd), capture_output=True, text=True, timeout=timeout,
    )


def _git(workspace: Path, *args: str) -> subprocess.CompletedProcess:
    return _run(["git", *args], workspace)


def is_repo(workspace: Path) -> bool:
    if shutil.which("git") is None:
        return False
    try:
        result = _git(workspace, "rev-parse", "--is-inside-work-tree")
    except (OSError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0 and result.stdout.strip() == "true"


def head_summary(workspace: Path) -> Optional[str]:
    """'<short sha> <subject>' of HEAD, or None outside a repo or before the first commit."""
    if not is_repo(workspace):
        return None
    result = _git(workspace, "log", "-1", "--format=%h %s")
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def checkout_branch(workspace: Path, name: str) -> None:
    """Switch to branch `name`, creating it from HEAD if needed."""
    if not is_repo(workspace):
        raise VCSError(f"{workspace} is not a git repository; --branch needs one")
    exists = _git(workspace, "rev-parse", "--verify", "--quiet", f"refs/heads/{name}")
    args = ["checkout", name] if exists.returncode == 0 else ["checkout", "-b", name]
    result = _git(workspace, *args)
    if result.returncode != 0:
        raise VCSError(f"git {' '.join(args)} failed: {result.stderr.strip()[:200]}")


def open_pull_request(workspace: Path, branch: str, title: str, body: str) -> str:
    """Push `branch` and open a PR with gh. Returns the PR URL gh prints."""
    if shutil.which("gh") is None:
        raise VCSError("gh CLI not found; cannot open a pull request")
    push = _git(workspace, "push", "-u", "origin", branch)
    if push.returncode != 0:
        raise VCSError(f"git push failed: {push.stderr.strip()[:200]}")
    pr = _run(
        ["gh", "pr", "create", "--head", branch, "--title", title, "--body", body],
        workspace,
    )
    if pr.returncode != 0:
        raise VCSError(f"gh pr create failed: {pr.stderr.strip()[:200]}")
    return pr.stdout.strip()
