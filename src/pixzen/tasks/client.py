"""Tasks client with idempotent enqueue.

Processing of inbound messages is detached from the webhook response.
Backends, selectable via TASKS_BACKEND env var:
- thread (default): runs handlers on a process-local ThreadPoolExecutor
- inline: executes handler synchronously (for dev/tests)

There is no backpressure: the executor queue is unbounded.
"""

from __future__ import annotations

import os
import threading
from collections import OrderedDict
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol

from pixzen.observability.correlation import bound_correlation_id, get_correlation_id
from pixzen.observability.logging import get_logger
from pixzen.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_MAX_WORKERS = 8

# Remembered task ids (oldest forgotten first)
MAX_TRACKED_IDS = 10_000


class TaskHandler(Protocol):
    """Protocol for task handlers."""

    def __call__(self, payload: dict) -> None:
        """Execute task with given payload."""
        ...


def _get_config() -> dict[str, str | int]:
    """Get tasks config from environment.

    - TASKS_BACKEND: thread | inline (default: thread)
    - TASKS_MAX_WORKERS: thread pool size (default: 8)
    """
    try:
        max_workers = int(os.environ.get("TASKS_MAX_WORKERS", DEFAULT_MAX_WORKERS))
    except ValueError:
        max_workers = DEFAULT_MAX_WORKERS
    return {
        "backend": os.environ.get("TASKS_BACKEND", "thread"),
        "max_workers": max(1, max_workers),
    }


class TasksClient:
    """Tasks client with idempotent enqueue by task_id.

    Tracks task_ids to ensure idempotency (same task_id = no-op). The
    correlation id of the enqueuing request is carried into the task.

    Raises:
        ValueError: If the backend is unknown.
    """

    def __init__(self, backend: str | None = None, max_workers: int | None = None) -> None:
        config = _get_config()
        self._backend = backend or str(config["backend"])
        if self._backend not in ("thread", "inline"):
            raise ValueError(f"Unknown TASKS_BACKEND: {self._backend}")

        self._max_workers = max_workers or int(config["max_workers"])
        self._executor: ThreadPoolExecutor | None = None
        self._seen_ids: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def backend(self) -> str:
        return self._backend

    def _mark_seen(self, task_id: str) -> bool:
        """Record task_id. False if it was already recorded."""
        with self._lock:
            if task_id in self._seen_ids:
                return False
            self._seen_ids[task_id] = None
            while len(self._seen_ids) > MAX_TRACKED_IDS:
                self._seen_ids.popitem(last=False)
            return True

    def _get_executor(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="pixzen-task"
                )
            return self._executor

    def _run(
        self, task_id: str, handler: TaskHandler, payload: dict, cid: str | None
    ) -> None:
        with bound_correlation_id(cid):
            try:
                handler(payload)
            except Exception:
                logger.exception(
                    "task failed",
                    extra={"extra_fields": safe_log_context(task_id=task_id)},
                )

    def enqueue(
        self,
        task_id: str,
        handler: TaskHandler,
        payload: dict,
    ) -> bool:
        """Enqueue task for execution.

        Idempotent by task_id: if same task_id was already enqueued,
        returns False without executing handler again.

        Args:
            task_id: Unique identifier for idempotency.
            handler: Callable that processes the payload.
            payload: Task data.

        Returns:
            True if task was enqueued (new task_id).
            False if no-op (task_id already seen).
        """
        if not self._mark_seen(task_id):
            logger.info(
                "duplicate task ignored",
                extra={"extra_fields": safe_log_context(task_id=task_id)},
            )
            return False

        cid = get_correlation_id()
        if self._backend == "inline":
            self._run(task_id, handler, payload, cid)
        else:
            self._get_executor().submit(self._run, task_id, handler, payload, cid)
        return True

    def was_executed(self, task_id: str) -> bool:
        """Check if task_id was already enqueued."""
        with self._lock:
            return task_id in self._seen_ids

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool (waits for running tasks by default)."""
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=wait)

    def clear(self) -> None:
        """Forget seen task_ids (useful for testing)."""
        with self._lock:
            self._seen_ids.clear()
