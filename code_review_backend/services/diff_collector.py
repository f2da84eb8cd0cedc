"""
Diff Collector - Gather working-tree and branch-to-branch diffs from git
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from code_review_backend.models.diff import DiffBundle, SectionLabel

from .branch_resolver import BranchResolver
from .errors import CompareError, NotARepositoryError, ProcessError
from .process_runner import GitRunner

logger = logging.getLogger(__name__)


class DiffCollector:
    """Collect labeled diff sections for review"""

    def __init__(self, git: GitRunner, resolver: BranchResolver | None = None):
        self.git = git
        self.resolver = resolver or BranchResolver(git)

    async def collect_working_changes(self, root: str | Path) -> DiffBundle:
        """Staged then unstaged changes; empty bundle when there are none"""
        results = await asyncio.gather(
            self.git.run(root, "diff", "--cached"),
            self.git.run(root, "diff"),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, ProcessError) and (
                GitRunner.is_not_a_repository(result) or GitRunner.reports_not_a_repository(result)
            ):
                raise NotARepositoryError(str(root)) from result
        for result in results:
            if isinstance(result, BaseException):
                raise result
        staged, unstaged = results

        bundle = DiffBundle.from_sections(
            [
                (SectionLabel.STAGED, staged.stdout),
                (SectionLabel.UNSTAGED, unstaged.stdout),
            ]
        )
        logger.info(
            "[DiffCollector] Collected %d working-tree section(s) in %s",
            len(bundle.sections),
            root,
        )
        return bundle

    async def collect_branch_diff(
        self,
        root: str | Path,
        target_branch: str,
        base_branch: str,
    ) -> DiffBundle:
        """Three-dot diff `base...target` as a single BRANCH DIFF section"""
        target = await self.resolver.resolve(root, target_branch)
        base = await self.resolver.resolve(root, base_branch)

        try:
            result = await self.git.run(root, "diff", f"{base.ref}...{target.ref}")
        except ProcessError as e:
            raise CompareError(target_branch, base_branch, e) from e

        bundle = DiffBundle.from_sections([(SectionLabel.BRANCH, result.stdout)])
        logger.info(
            "[DiffCollector] Compared %s...%s (%d bytes)",
            base.ref,
            target.ref,
            len(result.stdout),
        )
        return bundle
