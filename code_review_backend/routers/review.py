"""Review API endpoints"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends, HTTPException, Query
from sse_starlette.sse import EventSourceResponse

from code_review_backend.models.chat import BranchListResponse, ReviewCommandRequest
from code_review_backend.services.branch_resolver import BranchResolver
from code_review_backend.services.chat_relay import CancellationToken, ChatRelay
from code_review_backend.services.diff_collector import DiffCollector
from code_review_backend.services.errors import BranchListError, NotARepositoryError
from code_review_backend.services.review_service import handle_review_command

from .dependencies import get_branch_resolver, get_chat_relay, get_diff_collector

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stream")
async def review_stream(
    request: ReviewCommandRequest,
    collector: DiffCollector = Depends(get_diff_collector),
    resolver: BranchResolver = Depends(get_branch_resolver),
    relay: ChatRelay = Depends(get_chat_relay),
):
    """Run a review command and stream its events (SSE)"""
    events = review_events(
        request,
        CancellationToken(),
        collector=collector,
        resolver=resolver,
        relay=relay,
    )
    return EventSourceResponse(events)


async def review_events(
    request: ReviewCommandRequest,
    cancel_token: CancellationToken,
    *,
    collector: DiffCollector,
    resolver: BranchResolver,
    relay: ChatRelay,
) -> AsyncIterator[dict[str, str]]:
    """SSE payloads for one request; a disconnect cancels `cancel_token`"""
    try:
        async for event in handle_review_command(
            request.command,
            request.prompt,
            request.workspace_root,
            collector=collector,
            resolver=resolver,
            relay=relay,
            cancel_token=cancel_token,
        ):
            yield {"event": "message", "data": event.model_dump_json()}
    except (asyncio.CancelledError, GeneratorExit):
        logger.info("[Review] Client disconnected, cancelling review")
        cancel_token.cancel()
        raise


@router.get("/branches", response_model=BranchListResponse)
async def list_branches(
    workspace_root: str = Query(...),
    exclude: str | None = Query(None),
    resolver: BranchResolver = Depends(get_branch_resolver),
) -> BranchListResponse:
    """List branches for the branch-pair picker"""
    try:
        branches = await resolver.list_branches(workspace_root)
    except (BranchListError, NotARepositoryError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    if exclude:
        branches = [branch for branch in branches if branch != exclude]

    return BranchListResponse(workspace_root=workspace_root, branches=branches)
