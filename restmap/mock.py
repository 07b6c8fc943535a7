"""In-process transport for tests and offline examples.

:class:`MockSession` keeps the :class:`~restmap.session.TransportSession`
contract but never touches the network: responses are stubbed per
method and path and returned as real ``requests.Response`` objects.

With ``auto_complete=True`` (the default) a task completes on the
calling thread as soon as it is resumed.  With ``auto_complete=False``
resumed tasks wait in :attr:`MockSession.running` until :meth:`complete`
or :meth:`complete_all` is called, which lets tests control the order
in which completions arrive.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import requests

from restmap.session import Task, TransportSession


logger = logging.getLogger(__name__)


@dataclass
class MockResponse:
    """Canned answer for one stubbed request.

    Attributes:
        status: HTTP status code.
        json: Value serialized as the body.  Ignored when ``body`` is set.
        body: Raw body bytes.
        headers: Response headers.
        error: Transport exception raised instead of answering.
    """

    status: int = 200
    json: Any = None
    body: Optional[bytes] = None
    headers: Dict[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None

    def content(self) -> bytes:
        if self.body is not None:
            return self.body
        if self.json is None:
            return b""
        return json.dumps(self.json).encode("utf-8")


class MockSession(TransportSession):
    """Transport session answering from stubs instead of the network."""

    def __init__(self, auto_complete: bool = True, default: Optional[MockResponse] = None) -> None:
        self.http = requests.Session()
        self.auto_complete = auto_complete
        self.default = default or MockResponse(status=404)
        self.stubs: List[tuple[str, str, MockResponse]] = []
        self.sent: List[requests.PreparedRequest] = []
        self.running: List[Task] = []
        self.invalidated: Optional[str] = None
        self._tasks = set()
        self._lock = threading.Lock()
        self._valid = True

    def stub(self, method: str, path: str, response: Optional[MockResponse] = None, **kwargs: Any) -> MockResponse:
        """Answer ``method`` requests whose URL path ends with ``path``.

        Either pass a :class:`MockResponse` or its fields as keyword
        arguments.  Later stubs win over earlier ones.
        """
        response = response or MockResponse(**kwargs)
        self.stubs.insert(0, (method.upper(), "/" + path.strip("/"), response))
        return response

    def response_for(self, request: requests.PreparedRequest) -> MockResponse:
        path = urlsplit(request.url).path.rstrip("/")
        for method, stub_path, response in self.stubs:
            if method == request.method and path.endswith(stub_path):
                return response
        return self.default

    def _dispatch(self, task: Task) -> None:
        with self._lock:
            self.running.append(task)
        if self.auto_complete:
            self.complete(task)

    def complete(self, task: Task) -> None:
        """Answer one running task from its stub on the calling thread."""
        with self._lock:
            if task not in self.running:
                return
            self.running.remove(task)
        self.sent.append(task.request)
        answer = self.response_for(task.request)
        if answer.error is not None:
            self._complete(task, None, answer.error)
        else:
            self._complete(task, self._build_response(answer, task.request), None)

    def complete_all(self) -> None:
        """Answer every running task, including ones started meanwhile."""
        while self.running:
            self.complete(self.running[0])

    @staticmethod
    def _build_response(answer: MockResponse, request: requests.PreparedRequest) -> requests.Response:
        response = requests.Response()
        response.status_code = answer.status
        response._content = answer.content()
        response.headers.update(answer.headers)
        response.url = request.url
        response.request = request
        response.encoding = "utf-8"
        return response

    def invalidate_and_cancel(self) -> None:
        running = list(self.running)
        super().invalidate_and_cancel()
        # Nothing else will ever answer these; report their cancellation now.
        for task in running:
            self.complete(task)

    def _shutdown(self, graceful: bool) -> None:
        self.invalidated = "graceful" if graceful else "cancel"
        logger.debug("Mock session invalidated (%s)", self.invalidated)
