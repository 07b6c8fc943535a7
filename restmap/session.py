"""Transport session: creates, runs and tears down request handles.

A :class:`TransportSession` owns a ``requests.Session`` for connection
pooling and a thread pool that runs requests.  :meth:`data_task`
creates a suspended :class:`Task`; :meth:`resume` hands it to the pool
and the task's completion is invoked on a worker thread with
``(response, error)``.

Sessions are invalidated either gracefully (in-flight work finishes,
then the HTTP session is closed) or by cancelling everything that is
still outstanding.
"""

from __future__ import annotations

import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from enum import Enum
from typing import Callable, List, Optional, Set

import requests

from restmap.core.config import settings
from restmap.core.errors import CancelledError, InvalidSessionError


logger = logging.getLogger(__name__)

TaskCompletion = Callable[[Optional[requests.Response], Optional[Exception]], None]


class TaskState(str, Enum):
    SUSPENDED = "suspended"
    RUNNING = "running"
    CANCELING = "canceling"
    COMPLETED = "completed"


class Task:
    """Handle for one outstanding request.

    Tasks hash by identity, so they can be tracked in sets.  The state
    only moves forward: suspended, running, (canceling), completed.
    """

    _ids = itertools.count(1)

    def __init__(self, request: requests.PreparedRequest, completion: TaskCompletion, timeout: Optional[float]) -> None:
        self.id = next(Task._ids)
        self.request = request
        self.timeout = timeout
        self.state = TaskState.SUSPENDED
        self.response: Optional[requests.Response] = None
        self.error: Optional[Exception] = None
        self._completion = completion
        self._future: Optional[Future] = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<Task {self.id} {self.request.method} {self.request.url} {self.state.value}>"

    def _start(self) -> bool:
        with self._lock:
            if self.state is not TaskState.SUSPENDED:
                return False
            self.state = TaskState.RUNNING
            return True

    def _cancel(self) -> bool:
        """Mark the task cancelled; return True if nothing will ever run it."""
        with self._lock:
            if self.state in (TaskState.COMPLETED, TaskState.CANCELING):
                return False
            running = self.state is TaskState.RUNNING
            self.state = TaskState.CANCELING
            if running and (self._future is None or not self._future.cancel()):
                # Already on a worker; it reports the cancellation when it returns.
                return False
            return True

    def _finish(self, response: Optional[requests.Response], error: Optional[Exception]) -> None:
        with self._lock:
            if self.state is TaskState.COMPLETED:
                return
            if self.state is TaskState.CANCELING:
                response, error = None, CancelledError()
            self.state = TaskState.COMPLETED
            self.response = response
            self.error = error
        self._completion(response, error)


class TransportSession:
    """Runs tasks on a thread pool over one shared ``requests.Session``."""

    def __init__(self, max_workers: Optional[int] = None, http: Optional[requests.Session] = None) -> None:
        self.http = http or requests.Session()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_workers,
            thread_name_prefix="restmap",
        )
        self._tasks: Set[Task] = set()
        self._lock = threading.Lock()
        self._valid = True

    @property
    def valid(self) -> bool:
        return self._valid

    # ------------------------------------------------------------------
    # Task lifecycle
    # ------------------------------------------------------------------
    def data_task(
        self,
        request: requests.Request,
        completion: TaskCompletion,
        timeout: Optional[float] = None,
    ) -> Optional[Task]:
        """Create a suspended task for ``request``.

        Returns ``None`` once the session has been invalidated.  Errors
        raised while preparing the request (bad URL, unknown scheme)
        propagate to the caller.
        """
        if not self._valid:
            logger.error("Session %r is invalidated, no task created for %s %s", self, request.method, request.url)
            return None
        prepared = self.http.prepare_request(request)
        task = Task(prepared, completion, timeout)
        with self._lock:
            if not self._valid:
                logger.error("Session %r was invalidated while creating a task", self)
                return None
            self._tasks.add(task)
        return task

    def resume(self, task: Task) -> None:
        """Start a suspended task.  Running or finished tasks are ignored."""
        if not task._start():
            return
        logger.debug("Sending %s request to %s", task.request.method, task.request.url)
        self._dispatch(task)

    def _dispatch(self, task: Task) -> None:
        try:
            future = self._executor.submit(self._run, task)
        except RuntimeError:
            # Executor already shut down.
            self._complete(task, None, InvalidSessionError(f"{self!r} cannot run {task!r}"))
            return
        with task._lock:
            task._future = future

    def _run(self, task: Task) -> None:
        try:
            response = self.http.send(task.request, timeout=task.timeout)
            error = None
        except requests.RequestException as exc:
            response, error = None, exc
        self._complete(task, response, error)

    def _complete(self, task: Task, response: Optional[requests.Response], error: Optional[Exception]) -> None:
        with self._lock:
            self._tasks.discard(task)
        try:
            task._finish(response, error)
        except Exception:
            logger.exception("Completion handler of %r raised", task)

    @property
    def outstanding(self) -> List[Task]:
        with self._lock:
            return list(self._tasks)

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------
    def finish_tasks_and_invalidate(self) -> None:
        """Refuse new tasks and release resources once in-flight work is done."""
        with self._lock:
            if not self._valid:
                return
            self._valid = False
        self._shutdown(graceful=True)

    def invalidate_and_cancel(self) -> None:
        """Refuse new tasks and cancel every task that has not completed."""
        with self._lock:
            self._valid = False
            outstanding = list(self._tasks)
        for task in outstanding:
            if task._cancel():
                self._complete(task, None, None)
        self._shutdown(graceful=False)

    def _shutdown(self, graceful: bool) -> None:
        if graceful:
            # May be called from a worker thread, so never join the pool here.
            threading.Thread(target=self._drain, name="restmap-drain", daemon=True).start()
        else:
            self._executor.shutdown(wait=False)
            self.http.close()

    def _drain(self) -> None:
        self._executor.shutdown(wait=True)
        self.http.close()
