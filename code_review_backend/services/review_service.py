"""
Review Service - Handle the `review` and `reviewBranch` commands
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from pathlib import Path

from code_review_backend.models.chat import ReviewContext, StreamEvent

from .branch_resolver import BranchResolver, default_base_branch
from .chat_relay import CancellationToken, ChatRelay
from .diff_collector import DiffCollector
from .errors import BranchListError, CodeReviewError, ModelError
from .prompt_builder import build_prompt

logger = logging.getLogger(__name__)

REVIEW_COMMAND = "review"
REVIEW_BRANCH_COMMAND = "reviewBranch"
FAILURE_MARKER = "❌"
NO_WORKSPACE_TEXT = f"{FAILURE_MARKER} No workspace folder open. Please open a git repository first."

HELP_TEXT = (
    "I can help you review your git changes! Use the `/review` command to analyze your local changes, "
    "or ask me questions about code quality and best practices.\n\n"
    "**Available commands:**\n"
    "- `/review` - Review all local git changes (staged and unstaged)\n"
    "- `/reviewBranch` - Review all changes in a git branch compared to another branch\n"
)


def _progress(message: str) -> StreamEvent:
    return StreamEvent(type="progress", message=message)


def _content(chunk: str) -> StreamEvent:
    return StreamEvent(type="content", chunk=chunk)


async def handle_review_command(
    command: str | None,
    prompt_text: str,
    root: str | Path,
    *,
    collector: DiffCollector,
    resolver: BranchResolver,
    relay: ChatRelay,
    cancel_token: CancellationToken,
) -> AsyncIterator[StreamEvent]:
    """Dispatch a command and stream its events, ending with `done`"""
    try:
        if command in (REVIEW_COMMAND, REVIEW_BRANCH_COMMAND) and not str(root).strip():
            events = _single(_content(NO_WORKSPACE_TEXT))
        elif command == REVIEW_COMMAND:
            events = review_working_changes(root, collector=collector, relay=relay, cancel_token=cancel_token)
        elif command == REVIEW_BRANCH_COMMAND:
            events = review_branch(
                root,
                prompt_text,
                collector=collector,
                resolver=resolver,
                relay=relay,
                cancel_token=cancel_token,
            )
        else:
            events = _single(_content(HELP_TEXT))

        async for event in events:
            yield event
    except Exception as e:
        logger.exception("[ReviewService] %s command failed", command)
        yield StreamEvent(type="error", error=f"{FAILURE_MARKER} Error: {e}")

    if not cancel_token.is_cancelled:
        yield StreamEvent(type="done", done=True, metadata={"command": command})


async def _single(event: StreamEvent) -> AsyncIterator[StreamEvent]:
    yield event


async def review_working_changes(
    root: str | Path,
    *,
    collector: DiffCollector,
    relay: ChatRelay,
    cancel_token: CancellationToken,
) -> AsyncIterator[StreamEvent]:
    yield _progress("Fetching git changes...")

    bundle = await collector.collect_working_changes(root)
    if bundle.is_empty:
        yield _content("ℹ️ No local git changes to review. Make some changes to your files first!")
        return

    yield _progress("Analyzing changes with AI...")
    async for event in _relay_review(relay, build_prompt(bundle), cancel_token):
        yield event


async def review_branch(
    root: str | Path,
    prompt_text: str,
    *,
    collector: DiffCollector,
    resolver: BranchResolver,
    relay: ChatRelay,
    cancel_token: CancellationToken,
) -> AsyncIterator[StreamEvent]:
    target_branch, base_branch = parse_branch_arguments(prompt_text)

    if target_branch and not base_branch:
        branches = await _branches_or_empty(resolver, root)
        base_branch = default_base_branch(branches)

    if not target_branch or not base_branch:
        yield _content("⚠️ Please specify the branches to compare.\n\n")
        yield _content("**Usage**: `/reviewBranch <target-branch> <base-branch>`\n\n")
        yield _content("**Example**: `/reviewBranch feature/new-feature main`\n\n")
        branches = await _branches_or_empty(resolver, root)
        if branches:
            yield _content("**Available branches**:\n")
            for branch in branches:
                yield _content(f"- {branch}\n")
        return

    yield _progress(f"Fetching changes between {base_branch} and {target_branch}...")

    try:
        bundle = await collector.collect_branch_diff(root, target_branch, base_branch)
    except CodeReviewError as e:
        yield _content(f"{FAILURE_MARKER} Error getting branch diff: {e}\n\n")
        yield _content("Make sure both branches exist and are valid.")
        return

    if bundle.is_empty:
        yield _content(f"ℹ️ No differences found between `{target_branch}` and `{base_branch}`.")
        return

    yield _progress("Analyzing branch changes with AI...")
    context = ReviewContext(target_branch=target_branch, base_branch=base_branch)
    async for event in _relay_review(relay, build_prompt(bundle, context), cancel_token):
        yield event


def parse_branch_arguments(prompt_text: str) -> tuple[str | None, str | None]:
    """Split `<target> [<base>]` out of free text"""
    parts = prompt_text.split()
    if len(parts) >= 2:
        return parts[0], parts[1]
    if len(parts) == 1:
        return parts[0], None
    return None, None


async def _branches_or_empty(resolver: BranchResolver, root: str | Path) -> list[str]:
    # Only used to enrich hints, so a listing failure is not an error here
    try:
        return await resolver.list_branches(root)
    except BranchListError:
        return []


async def _relay_review(relay: ChatRelay, prompt: str, cancel_token: CancellationToken) -> AsyncIterator[StreamEvent]:
    try:
        async for fragment in relay.review(prompt, cancel_token):
            yield _content(fragment)
    except ModelError as err:
        yield _content(f"\n\n{FAILURE_MARKER} **Error**: {err.message}")
