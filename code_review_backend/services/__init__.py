"""Services module - Business logic layer"""

from .branch_resolver import BranchResolver, default_base_branch
from .chat_relay import CancellationToken, ChatRelay
from .config_manager import ConfigManager
from .diff_collector import DiffCollector
from .llm_service import LLMService
from .process_runner import GitRunner, ProcessResult, ProcessRunner
from .prompt_builder import build_prompt
from .review_service import handle_review_command

__all__ = [
    "BranchResolver",
    "default_base_branch",
    "CancellationToken",
    "ChatRelay",
    "ConfigManager",
    "DiffCollector",
    "LLMService",
    "GitRunner",
    "ProcessResult",
    "ProcessRunner",
    "build_prompt",
    "handle_review_command",
]
