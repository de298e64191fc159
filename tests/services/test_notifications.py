from __future__ import annotations

import asyncio

from prometheus_client import REGISTRY

from app import worker
from app.services.notifications import NOTIFICATIONS_QUEUE, QueueNotifier
from app.services.task_queue import InMemoryTaskQueue, task_queue


def test_queue_notifier_enqueues_payload() -> None:
    queue = InMemoryTaskQueue()
    notifier = QueueNotifier(queue)

    asyncio.run(notifier.notify("learner-1", "Certificate issued", "hello"))

    task = asyncio.run(queue.dequeue(NOTIFICATIONS_QUEUE))
    assert task is not None
    assert task.payload == {
        "recipient_id": "learner-1",
        "title": "Certificate issued",
        "message": "hello",
    }
    depth = REGISTRY.get_sample_value(
        "task_queue_depth", {"queue_name": NOTIFICATIONS_QUEUE}
    )
    assert depth == 1


def test_worker_registers_notification_handler() -> None:
    assert NOTIFICATIONS_QUEUE in worker.HANDLERS


def test_worker_processes_one_notification() -> None:
    asyncio.run(
        task_queue.enqueue(
            NOTIFICATIONS_QUEUE,
            {"recipient_id": "learner-1", "title": "t", "message": "m"},
        )
    )

    assert asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE)) is True
    assert asyncio.run(task_queue.queue_length(NOTIFICATIONS_QUEUE)) == 0
    assert asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE)) is False


def test_worker_survives_a_bad_payload() -> None:
    labels = {"effect": NOTIFICATIONS_QUEUE}
    before = REGISTRY.get_sample_value("side_effect_failures_total", labels) or 0.0
    asyncio.run(task_queue.enqueue(NOTIFICATIONS_QUEUE, {"title": "no recipient"}))

    assert asyncio.run(worker.process_one(NOTIFICATIONS_QUEUE)) is True

    after = REGISTRY.get_sample_value("side_effect_failures_total", labels)
    assert after == before + 1
