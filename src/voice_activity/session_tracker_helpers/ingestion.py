"""Per-user ordered dispatch of transition events."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Tuple

from voice_activity.data_models import TransitionEvent
from voice_activity.exceptions import ApplicationError
from voice_activity.redis_protocol.error_types import REDIS_ERRORS

logger = logging.getLogger(__name__)

TRANSITION_ERRORS = (ApplicationError, ValueError, TypeError, KeyError) + REDIS_ERRORS

UserKey = Tuple[str, str]


class OrderedDispatcher:
    """
    Fire-and-forget submission with arrival order preserved per (tenant, user).

    Each key gets its own queue and a worker task that exits once the queue is
    empty, so idle users hold no resources.
    """

    def __init__(self, handler: Callable[[TransitionEvent], Awaitable[None]]):
        self._handler = handler
        self._queues: Dict[UserKey, asyncio.Queue] = {}
        self._workers: Dict[UserKey, asyncio.Task] = {}
        self.failed_events = 0

    def submit(self, event: TransitionEvent) -> None:
        key = event.user_key
        queue = self._queues.get(key)
        if queue is None:
            queue = asyncio.Queue()
            self._queues[key] = queue
            self._workers[key] = asyncio.get_running_loop().create_task(self._drain(key, queue))
        queue.put_nowait(event)

    async def _drain(self, key: UserKey, queue: asyncio.Queue) -> None:
        try:
            while not queue.empty():
                event = queue.get_nowait()
                try:
                    await self._handler(event)
                except TRANSITION_ERRORS:  # One bad event must not stall the user  # policy_guard: allow-silent-handler
                    self.failed_events += 1
                    logger.exception("Failed to apply transition for %s/%s", event.tenant_id, event.user_id)
                except Exception:  # Keep draining the rest of this user's queue  # policy_guard: allow-broad-except
                    self.failed_events += 1
                    logger.exception(
                        "Unexpected error applying transition for %s/%s; continuing with queued events",
                        event.tenant_id,
                        event.user_id,
                    )
                finally:
                    queue.task_done()
        finally:
            self._queues.pop(key, None)
            self._workers.pop(key, None)

    @property
    def pending_users(self) -> int:
        return len(self._workers)

    async def drain(self) -> None:
        """Wait until every submitted event has been handled."""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)
