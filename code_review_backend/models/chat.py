"""Review request/stream data models"""

from __future__ import annotations

from pydantic import BaseModel


class ReviewContext(BaseModel):
    """Branch pair named in the prompt of a branch review"""

    target_branch: str
    base_branch: str


class ReviewCommandRequest(BaseModel):
    """Request for a review command"""

    command: str | None = None  # "review", "reviewBranch" or None for help
    prompt: str = ""  # Free-text arguments, e.g. "feature/x main"
    workspace_root: str


class BranchListResponse(BaseModel):
    """Branches offered by the branch-pair picker"""

    workspace_root: str
    branches: list[str] = []


class StreamEvent(BaseModel):
    """SSE stream event"""

    type: str  # "progress", "content", "error", "done"
    chunk: str | None = None
    message: str | None = None
    metadata: dict | None = None
    done: bool = False
    error: str | None = None
