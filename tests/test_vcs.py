"""Git helpers against a throwaway repository."""

from __future__ import annotations

import shutil
import subprocess

import pytest

from ralph.vcs import VCSError, checkout_branch, head_summary, is_repo, open_pull_request

needs_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd, *args: str) -> str:
    return subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True).stdout


@pytest.fixture
def repo(tmp_path):
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "config", "user.email", "ralph@example.com")
    _git(tmp_path, "config", "user.name", "ralph")
    (tmp_path / "RALPH_TASK.md").write_text("- [ ] a\n")
    _git(tmp_path, "add", ".")
    _git(tmp_path, "commit", "-q", "-m", "add task")
    return tmp_path


def test_plain_directory_is_not_a_repo(tmp_path):
    assert is_repo(tmp_path) is False
    assert head_summary(tmp_path) is None


def test_branch_outside_repo_fails(tmp_path):
    with pytest.raises(VCSError, match="not a git repository"):
        checkout_branch(tmp_path, "feature/x")


@needs_git
def test_head_summary(repo):
    summary = head_summary(repo)
    assert summary is not None
    assert summary.endswith(" add task")


@needs_git
def test_checkout_creates_then_reuses_branch(repo):
    checkout_branch(repo, "feature/x")
    assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip() == "feature/x"
    _git(repo, "checkout", "-q", "-")
    checkout_branch(repo, "feature/x")
    assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip() == "feature/x"


def test_pr_without_gh(tmp_path, monkeypatch):
    monkeypatch.setattr("ralph.vcs.shutil.which", lambda name: None)
    with pytest.raises(VCSError, match="gh CLI not found"):
        open_pull_request(tmp_path, "feature/x", "t", "b")
