"""Models module - Pydantic data models"""

from .chat import BranchListResponse, ReviewCommandRequest, ReviewContext, StreamEvent
from .diff import DiffBundle, DiffSection, ResolvedRef, SectionLabel

__all__ = [
    # Request/stream models
    "BranchListResponse",
    "ReviewCommandRequest",
    "ReviewContext",
    "StreamEvent",
    # Diff models
    "DiffBundle",
    "DiffSection",
    "ResolvedRef",
    "SectionLabel",
]
