"""
Error taxonomy for diff collection and review relay
"""

from __future__ import annotations

from enum import Enum


class CodeReviewError(Exception):
    """Base class for every classified failure in the review pipeline"""


class ProcessError(CodeReviewError):
    """External process exited with a non-zero code (or could not be started)"""

    def __init__(self, exit_code: int, stderr: str, command: str | None = None):
        self.exit_code = exit_code
        self.stderr = stderr
        self.command = command
        detail = stderr.strip() or "no error output"
        prefix = f"'{command}' failed" if command else "Process failed"
        super().__init__(f"{prefix} with exit code {exit_code}: {detail}")


class NotARepositoryError(CodeReviewError):
    """git reported (exit code 128) that the directory is not a repository"""

    def __init__(self, root: str | None = None):
        self.root = root
        super().__init__("Not a git repository")


class OutputTooLargeError(CodeReviewError):
    """Process output exceeded the configured ceiling"""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Command output exceeded {limit} bytes")


class BranchNotFoundError(CodeReviewError):
    """Branch exists neither locally nor as a remote-tracking reference"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Branch '{name}' not found")


class BranchListError(CodeReviewError):
    def __init__(self, cause: Exception | None = None):
        self.cause = cause
        super().__init__("Failed to get git branches")


class CompareError(CodeReviewError):
    """Diff between two resolved references failed"""

    def __init__(self, target: str, base: str, cause: ProcessError | None = None):
        self.target = target
        self.base = base
        self.cause = cause
        message = f"Unable to compare branches '{target}' and '{base}'"
        if cause is not None and cause.stderr.strip():
            message += f": {cause.stderr.strip()}"
        super().__init__(message)


class ModelErrorCode(str, Enum):
    """Classification of model service failures"""

    QUOTA_EXCEEDED = "quota_exceeded"
    NO_PERMISSIONS = "no_permissions"
    NOT_FOUND = "not_found"
    BLOCKED = "blocked"
    TRANSIENT = "transient"
    REQUEST_FAILED = "request_failed"


class ModelError(CodeReviewError):
    """Classified failure reported by the conversational model service"""

    def __init__(
        self,
        message: str,
        code: ModelErrorCode,
        cause: BaseException | None = None,
    ):
        self.message = message
        self.code = code
        self.cause = cause
        super().__init__(message)
