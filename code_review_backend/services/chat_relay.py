"""
Chat Relay - Forward a review prompt to a chat model and relay its stream
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Protocol

from .errors import ModelError

logger = logging.getLogger(__name__)

_CANCELLED = object()


class ChatModel(Protocol):
    """Anything that streams a reply to a list of chat messages"""

    def stream_chat(self, messages: list[dict[str, str]]) -> AsyncIterator[str]: ...


class CancellationToken:
    """Cooperative cancellation signal shared across one request"""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass(frozen=True)
class ReviewRequest:
    prompt: str
    cancel_token: CancellationToken

    def to_messages(self) -> list[dict[str, str]]:
        return [{"role": "user", "content": self.prompt}]


class ChatRelay:
    """Relay model output fragment by fragment until done or cancelled"""

    def __init__(self, model: ChatModel):
        self.model = model

    async def review(self, prompt: str, cancel_token: CancellationToken) -> AsyncIterator[str]:
        request = ReviewRequest(prompt=prompt, cancel_token=cancel_token)
        if cancel_token.is_cancelled:
            return

        stream = self.model.stream_chat(request.to_messages())
        iterator = stream.__aiter__()
        delivered = 0
        try:
            while not cancel_token.is_cancelled:
                fragment = await self._next_fragment(iterator, cancel_token)
                if fragment is None:
                    break
                if fragment is _CANCELLED or cancel_token.is_cancelled:
                    logger.info("[ChatRelay] Cancelled after %d fragment(s)", delivered)
                    break
                delivered += 1
                yield fragment
        except ModelError as err:
            logger.error(
                "[ChatRelay] Language model error: %s (code=%s, cause=%r)",
                err.message,
                err.code.value,
                err.cause,
            )
            raise
        finally:
            aclose = getattr(iterator, "aclose", None)
            if aclose is not None:
                await aclose()

    async def _next_fragment(self, iterator: AsyncIterator[str], cancel_token: CancellationToken):
        """Next fragment, None at end of stream, or _CANCELLED"""
        next_task = asyncio.ensure_future(_anext_or_none(iterator))
        cancel_task = asyncio.ensure_future(cancel_token.wait())
        try:
            await asyncio.wait({next_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            await _discard(next_task)
            raise
        finally:
            cancel_task.cancel()

        if cancel_token.is_cancelled:
            # Whatever the stream produced after cancellation is dropped
            await _discard(next_task)
            return _CANCELLED

        return next_task.result()


async def _anext_or_none(iterator: AsyncIterator[str]) -> str | None:
    try:
        return await iterator.__anext__()
    except StopAsyncIteration:
        return None


async def _discard(task: asyncio.Future) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as e:
        # Errors raised after cancellation never reach the caller
        logger.debug("[ChatRelay] Dropped stream error after cancellation: %r", e)
