"""
Branch Resolver - Resolve branch names locally or under the remote alias
"""

from __future__ import annotations

import logging
from pathlib import Path

from code_review_backend.models.diff import ResolvedRef

from .errors import BranchListError, BranchNotFoundError, NotARepositoryError, ProcessError
from .process_runner import GitRunner

logger = logging.getLogger(__name__)

DEFAULT_REMOTE = "origin"
DEFAULT_BASE_CANDIDATES = ("main", "master")


class BranchResolver:
    """Resolve and list branches of a working tree"""

    def __init__(self, git: GitRunner, remote: str = DEFAULT_REMOTE):
        self.git = git
        self.remote = remote

    @property
    def remote_prefix(self) -> str:
        return f"{self.remote}/"

    async def resolve(self, root: str | Path, name: str) -> ResolvedRef:
        """Verify `name`, falling back to `<remote>/<name>`"""
        if await self._verify(root, name):
            return ResolvedRef(name=name, ref=name)

        if not name.startswith(self.remote_prefix):
            remote_ref = f"{self.remote_prefix}{name}"
            if await self._verify(root, remote_ref):
                logger.info("[BranchResolver] Resolved %s to %s", name, remote_ref)
                return ResolvedRef(name=name, ref=remote_ref, is_remote=True)

        raise BranchNotFoundError(name)

    async def _verify(self, root: str | Path, ref: str) -> bool:
        try:
            await self.git.run(root, "rev-parse", "--verify", ref)
        except ProcessError as e:
            if GitRunner.reports_not_a_repository(e):
                raise NotARepositoryError(str(root)) from e
            return False
        return True

    async def list_branches(self, root: str | Path) -> list[str]:
        """Unique short branch names, local and remote, in listing order"""
        try:
            result = await self.git.run(root, "branch", "--all", "--format=%(refname:short)")
        except ProcessError as e:
            raise BranchListError(e) from e

        branches: list[str] = []
        seen: set[str] = set()
        for line in result.stdout.splitlines():
            name = line.strip()
            if not name or self._is_synthetic(name):
                continue
            name = self.strip_remote(name)
            if name not in seen:
                seen.add(name)
                branches.append(name)
        return branches

    def _is_synthetic(self, name: str) -> bool:
        # "<remote>/HEAD" is shortened to the bare remote name by newer git
        if name in (f"{self.remote_prefix}HEAD", self.remote):
            return True
        return name.startswith("(")  # "(HEAD detached at ...)"

    def strip_remote(self, name: str) -> str:
        if name.startswith(self.remote_prefix):
            return name[len(self.remote_prefix):]
        return name

    def same_branch(self, left: str, right: str) -> bool:
        return self.strip_remote(left) == self.strip_remote(right)


def default_base_branch(branches: list[str]) -> str | None:
    """Pick `main`, else `master`, else nothing"""
    for candidate in DEFAULT_BASE_CANDIDATES:
        if candidate in branches:
            return candidate
    return None
