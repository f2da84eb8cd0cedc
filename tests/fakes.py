from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from pathlib import Path

import pytest

from code_review_backend.services.errors import ProcessError
from code_review_backend.services.process_runner import ProcessResult

BRANCH_LIST_ARGS = ("branch", "--all", "--format=%(refname:short)")

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

GIT_ENV = {
    **os.environ,
    "GIT_AUTHOR_NAME": "Review Test",
    "GIT_AUTHOR_EMAIL": "review@example.com",
    "GIT_COMMITTER_NAME": "Review Test",
    "GIT_COMMITTER_EMAIL": "review@example.com",
}


class FakeGitRunner:
    """Scripted stand-in for GitRunner keyed by argument tuples.

    Unscripted calls fail the way `git rev-parse --verify` does for an
    unknown revision.
    """

    def __init__(self, responses: dict[tuple[str, ...], str | Exception] | None = None):
        self.responses = responses or {}
        self.calls: list[tuple[str, ...]] = []

    async def run(self, root, *args: str) -> ProcessResult:
        self.calls.append(args)
        outcome = self.responses.get(args)
        if outcome is None:
            raise ProcessError(128, "fatal: Needed a single revision\n", command=" ".join(["git", *args]))
        if isinstance(outcome, Exception):
            raise outcome
        return ProcessResult(outcome, 0)


class FakeChatModel:
    """Streams canned fragments, optionally failing afterwards"""

    def __init__(self, fragments: list[str], error: Exception | None = None, hang: bool = False):
        self.fragments = fragments
        self.error = error
        self.hang = hang
        self.messages: list[list[dict[str, str]]] = []
        self.closed = False

    async def stream_chat(self, messages):
        self.messages.append(messages)
        try:
            for fragment in self.fragments:
                await asyncio.sleep(0)
                yield fragment
            if self.error is not None:
                raise self.error
            if self.hang:
                await asyncio.Event().wait()
        finally:
            self.closed = True

    @property
    def prompt(self) -> str:
        return self.messages[-1][0]["content"]


def git(cwd: Path, *args: str) -> str:
    completed = subprocess.run(
        ["git", "-c", "commit.gpgsign=false", *args],
        cwd=cwd,
        env=GIT_ENV,
        check=True,
        capture_output=True,
        text=True,
    )
    return completed.stdout


def init_repo(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    git(path, "init", "-q")
    git(path, "symbolic-ref", "HEAD", "refs/heads/main")
    return path


def commit_file(repo: Path, name: str, content: str, message: str | None = None) -> None:
    target = repo / name
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")
    git(repo, "add", "--all")
    git(repo, "commit", "-q", "-m", message or f"Update {name}")
