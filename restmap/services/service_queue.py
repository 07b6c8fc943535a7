"""
Batching of service calls over one transport session.

A ``ServiceQueue`` tracks the tasks it creates.  When a task completes
it is removed from the queue, and once the queue is empty the ``final``
callback fires exactly once and the session is invalidated.  A queue
is good for one batch: create a new instance for the next one.

Calls default to ``auto_start=False`` so a batch can be assembled
before anything runs; start it with :meth:`ServiceQueue.resume_all`.
A task that is created suspended and never resumed keeps the queue
from ever finishing.

Tracked and failed tasks and the error list are guarded by one lock
owned by the queue.  ``final`` and the callers' completions run outside
of it, on whatever thread the transport delivers completions on.
"""

from __future__ import annotations

import logging
import threading
import weakref
from enum import Enum
from typing import Any, Callable, List, Optional, Set, Union

from restmap.call import Call
from restmap.core.config import Configuration
from restmap.core.errors import RestMapError
from restmap.result import Result, WriteResult
from restmap.services.service import ResultCompletion, Service, WriteCompletion
from restmap.session import Task, TaskState, TransportSession


logger = logging.getLogger(__name__)

FinalCallback = Callable[[Optional[Set[Task]], Optional[List[RestMapError]]], None]


class QueueState(str, Enum):
    ACTIVE = "active"
    FINALIZED = "finalized"
    CANCELLED = "cancelled"


class ServiceQueue(Service):
    """Service that calls ``final`` once every task it issued has completed.

    ``final`` receives the set of failed tasks and the list of their
    errors in completion order, or ``None`` for both when nothing
    failed.
    """

    def __init__(
        self,
        configuration: Configuration,
        final: FinalCallback,
        session: Optional[TransportSession] = None,
    ) -> None:
        super().__init__(configuration, session)
        self.task_queue: Set[Task] = set()
        self.failed_tasks: Optional[Set[Task]] = None
        self.errors: List[RestMapError] = []
        self.state = QueueState.ACTIVE
        self._final = final
        self._lock = threading.RLock()
        self._delivering = 0
        # Release the session if the queue is dropped without being invalidated.
        self._release = weakref.finalize(self, self.session.finish_tasks_and_invalidate)

    # ------------------------------------------------------------------
    # Call shapes
    # ------------------------------------------------------------------
    def perform_json_result(
        self,
        call: Call,
        completion: ResultCompletion,
        auto_start: bool = False,
    ) -> Optional[Task]:
        return self._submit(
            lambda handle: super(ServiceQueue, self).perform_json_result(call, handle, auto_start=False),
            completion,
            auto_start,
        )

    def perform(
        self,
        call: Call,
        parse: Callable[[dict], Any],
        completion: ResultCompletion,
        auto_start: bool = False,
    ) -> Optional[Task]:
        return self._submit(
            lambda handle: super(ServiceQueue, self).perform(call, parse, handle, auto_start=False),
            completion,
            auto_start,
        )

    def perform_write(
        self,
        call: Call,
        completion: WriteCompletion,
        auto_start: bool = False,
    ) -> Optional[Task]:
        return self._submit(
            lambda handle: super(ServiceQueue, self).perform_write(call, handle, auto_start=False),
            completion,
            auto_start,
        )

    # ------------------------------------------------------------------
    # Interact with tasks
    # ------------------------------------------------------------------
    @property
    def has_outstanding_tasks(self) -> bool:
        with self._lock:
            return len(self.task_queue) > 0

    def resume_all(self) -> None:
        """Start every tracked task that is still suspended."""
        with self._lock:
            not_started = [task for task in self.task_queue if task.state is TaskState.SUSPENDED]
        for task in not_started:
            self.session.resume(task)

    def invalidate_and_cancel(self) -> None:
        """Abort the batch: forget all tasks and cancel the session.

        ``final`` is not called.
        """
        with self._lock:
            self.task_queue.clear()
            if self.failed_tasks is not None:
                self.failed_tasks.clear()
            self.state = QueueState.CANCELLED
        self._release.detach()
        self.session.invalidate_and_cancel()

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------
    def _submit(
        self,
        issue: Callable[[Callable], Optional[Task]],
        completion: Callable,
        auto_start: bool,
    ) -> Optional[Task]:
        queue_ref = weakref.ref(self)
        created: List[Task] = []

        def wrapped(result: Union[Result, WriteResult]) -> None:
            queue = queue_ref()
            if queue is None or not created:
                completion(result)
                return
            tracked = queue._cleanup(created[0], result)
            try:
                completion(result)
            finally:
                if tracked:
                    queue._should_call_final()

        task = issue(wrapped)
        if task is None:
            logger.error("Invalid session: %r could not create a task, it is not part of the batch", self)
            return None

        with self._lock:
            self.task_queue.add(task)
            created.append(task)
        if auto_start:
            self.session.resume(task)
        return task

    def _cleanup(self, task: Task, result: Union[Result, WriteResult]) -> bool:
        """Forget ``task``; return False if it was no longer tracked."""
        with self._lock:
            if task not in self.task_queue:
                return False
            self.task_queue.remove(task)
            self._delivering += 1
            if result.is_failure:
                if self.failed_tasks is None:
                    self.failed_tasks = set()
                self.failed_tasks.add(task)
                if result.error is not None:
                    self.errors.append(result.error)
            return True

    def _should_call_final(self) -> None:
        with self._lock:
            self._delivering -= 1
            # Completions of removed tasks may still be running on other threads.
            if self.state is not QueueState.ACTIVE or self.task_queue or self._delivering:
                return
            self.state = QueueState.FINALIZED
            failed = self.failed_tasks
            errors = list(self.errors) if self.errors else None
        try:
            self._final(failed, errors)
        finally:
            self.finish_tasks_and_invalidate()
