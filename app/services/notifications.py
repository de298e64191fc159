"""Learner notifications.

The engine only dispatches; delivery happens in the background worker
(``python -m app.worker``), which consumes the ``notifications`` queue.
"""

from __future__ import annotations

import logging
from typing import Protocol

from app.core.metrics import QUEUE_DEPTH
from app.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

NOTIFICATIONS_QUEUE = "notifications"


class Notifier(Protocol):
    async def notify(self, recipient_id: str, title: str, message: str) -> None: ...


class QueueNotifier:
    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def notify(self, recipient_id: str, title: str, message: str) -> None:
        task = await self._queue.enqueue(
            NOTIFICATIONS_QUEUE,
            {"recipient_id": recipient_id, "title": title, "message": message},
        )
        depth = await self._queue.queue_length(NOTIFICATIONS_QUEUE)
        QUEUE_DEPTH.labels(queue_name=NOTIFICATIONS_QUEUE).set(depth)
        logger.info("Notification queued task=%s recipient=%s", task.id, recipient_id)
