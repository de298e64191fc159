"""Background worker process.

RUN:  python -m app.worker

The API enqueues side effects (certificate notifications today) onto the
task queue and returns immediately; this process drains them.  Same
image as the API, different command:

  api:    uvicorn app.main:app --host 0.0.0.0 --port 8000
  worker: python -m app.worker

Failures are logged and the loop moves on.  A dead-letter queue would
be the next step if deliveries start failing in practice.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.core.metrics import SIDE_EFFECT_FAILURES
from app.services.notifications import NOTIFICATIONS_QUEUE
from app.services.task_queue import task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(NOTIFICATIONS_QUEUE)
async def handle_notification(payload: dict) -> None:
    """Deliver a learner notification.

    Delivery is a log line for now; a mail or push gateway plugs in here.
    """
    recipient = payload.get("recipient_id")
    if not recipient:
        raise ValueError("notification payload has no recipient_id")
    logger.info(
        "Notify learner=%s title=%r: %s",
        recipient,
        payload.get("title"),
        payload.get("message"),
        extra={"learner_id": recipient},
    )


async def process_one(queue_name: str, timeout: int = 1) -> bool:
    """Dequeue and handle a single task.  Returns False when the queue was empty."""
    task = await task_queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        SIDE_EFFECT_FAILURES.labels(effect=queue_name).inc()
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def run_worker() -> None:
    """Poll all registered queues round-robin, forever."""
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)

    while True:
        for queue_name in queues:
            await process_one(queue_name)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
