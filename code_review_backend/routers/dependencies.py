"""Request-scoped collaborators, resolved through FastAPI dependency injection"""

from __future__ import annotations

from typing import Any

from fastapi import Depends

from code_review_backend.services.branch_resolver import DEFAULT_REMOTE, BranchResolver
from code_review_backend.services.chat_relay import ChatRelay
from code_review_backend.services.config_manager import ConfigManager
from code_review_backend.services.diff_collector import DiffCollector
from code_review_backend.services.llm_service import LLMService
from code_review_backend.services.process_runner import DEFAULT_MAX_OUTPUT_BYTES, GitRunner, ProcessRunner


def get_config() -> dict[str, Any]:
    return ConfigManager.get_instance().get_config()


def get_git_runner(config: dict[str, Any] = Depends(get_config)) -> GitRunner:
    git_cfg = config.get("git", {})
    runner = ProcessRunner(max_output_bytes=git_cfg.get("maxOutputBytes", DEFAULT_MAX_OUTPUT_BYTES))
    return GitRunner(runner, executable=git_cfg.get("executable", "git"))


def get_branch_resolver(
    git: GitRunner = Depends(get_git_runner),
    config: dict[str, Any] = Depends(get_config),
) -> BranchResolver:
    return BranchResolver(git, remote=config.get("git", {}).get("remote", DEFAULT_REMOTE))


def get_diff_collector(
    git: GitRunner = Depends(get_git_runner),
    resolver: BranchResolver = Depends(get_branch_resolver),
) -> DiffCollector:
    return DiffCollector(git, resolver)


def get_chat_relay(config: dict[str, Any] = Depends(get_config)) -> ChatRelay:
    return ChatRelay(LLMService(config))
