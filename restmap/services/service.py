"""
Request dispatch and response classification.

``Service`` turns a :class:`~restmap.call.Call` into a transport task,
submits it and maps the raw ``(response, error)`` pair into a
:class:`~restmap.result.Result` or :class:`~restmap.result.WriteResult`
for the caller's completion handler.  Errors never propagate as
exceptions out of a completion; they are delivered as failures.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional, TypeVar

import requests

from restmap.call import Call, JsonNode, NodeKind
from restmap.core.config import Configuration
from restmap.core.errors import (
    DecodeError,
    InvalidResponseDataError,
    InvalidSessionError,
    InvalidUrlError,
    NetworkError,
    RestMapError,
)
from restmap.result import Result, ResultKind, WriteResult
from restmap.session import Task, TaskCompletion, TransportSession


logger = logging.getLogger(__name__)

M = TypeVar("M")
ResultCompletion = Callable[[Result], None]
WriteCompletion = Callable[[WriteResult], None]


class Service:
    """Perform calls against one base configuration and transport session."""

    def __init__(self, configuration: Configuration, session: Optional[TransportSession] = None) -> None:
        self.configuration = configuration
        self.session = session or TransportSession()

    # ------------------------------------------------------------------
    # Call shapes
    # ------------------------------------------------------------------
    def perform_json_result(
        self,
        call: Call,
        completion: ResultCompletion,
        auto_start: bool = True,
    ) -> Optional[Task]:
        """Issue a read call and deliver the rooted JSON node.

        The completion receives ``Result.json(node)`` for an array or
        object node, ``Result.not_found`` when the root node is missing,
        ``Result.ok()`` for an empty body or ``Result.failure(error)``.
        """
        # Task handles must not keep the service alive.
        classify = type(self)._json_result

        def handle(response: Optional[requests.Response], error: Optional[Exception]) -> None:
            completion(classify(call, response, error))

        return self._perform(call, handle, auto_start, lambda exc: completion(Result.failure(exc)))

    def perform(
        self,
        call: Call,
        parse: Callable[[dict], M],
        completion: ResultCompletion,
        auto_start: bool = True,
    ) -> Optional[Task]:
        """Issue a read call and decode the node with ``parse``.

        An object node yields one model, an array node a list of
        models.  ``parse`` is typically a pydantic ``model_validate`` or
        :meth:`restmap.persistence.EntityMapping.from_json`.  Whatever
        ``parse`` raises is delivered as a ``DecodeError`` failure.
        """
        classify, decode = type(self)._json_result, type(self)._model_result

        def handle(response: Optional[requests.Response], error: Optional[Exception]) -> None:
            result = classify(call, response, error)
            if result.kind is ResultKind.JSON:
                result = decode(result.value, parse)
            completion(result)

        return self._perform(call, handle, auto_start, lambda exc: completion(Result.failure(exc)))

    def perform_write(
        self,
        call: Call,
        completion: WriteCompletion,
        auto_start: bool = True,
    ) -> Optional[Task]:
        """Issue a write call; the body of a successful response is ignored."""
        raises_error = type(self)._raises_error

        def handle(response: Optional[requests.Response], error: Optional[Exception]) -> None:
            failure = raises_error(response, error)
            completion(WriteResult.failure(failure) if failure else WriteResult.ok())

        return self._perform(call, handle, auto_start, lambda exc: completion(WriteResult.failure(exc)))

    # ------------------------------------------------------------------
    # Session interaction
    # ------------------------------------------------------------------
    def resume(self, task: Task) -> None:
        self.session.resume(task)

    def finish_tasks_and_invalidate(self) -> None:
        self.session.finish_tasks_and_invalidate()

    def invalidate_and_cancel(self) -> None:
        self.session.invalidate_and_cancel()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _perform(
        self,
        call: Call,
        handle: TaskCompletion,
        auto_start: bool,
        fail: Callable[[RestMapError], None],
    ) -> Optional[Task]:
        request = call.request(self.configuration)
        try:
            task = self.session.data_task(request, handle, timeout=self.configuration.timeout)
        except (requests.RequestException, ValueError) as exc:
            logger.error("Could not build request for %r: %s", call, exc)
            fail(InvalidUrlError(request.url))
            return None
        if task is None:
            fail(InvalidSessionError(f"{self!r} could not create a task for {call!r}"))
            return None
        if auto_start:
            self.session.resume(task)
        return task

    @staticmethod
    def _raises_error(response: Optional[requests.Response], error: Optional[Exception]) -> Optional[RestMapError]:
        if error is not None:
            if isinstance(error, RestMapError):
                return error
            return NetworkError.from_exception(error)
        if response is None:
            return NetworkError(None)
        if not 200 <= response.status_code < 300:
            logger.error("%s %s answered %s", response.request.method if response.request else "?", response.url, response.status_code)
            return NetworkError(response.status_code, response.content)
        return None

    @classmethod
    def _json_result(
        cls,
        call: Call,
        response: Optional[requests.Response],
        error: Optional[Exception],
    ) -> Result:
        failure = cls._raises_error(response, error)
        if failure is not None:
            return Result.failure(failure)
        if not response.content:
            return Result.ok()
        try:
            decoded = json.loads(response.content)
        except ValueError:
            return Result.failure(InvalidResponseDataError(response.content))
        node = call.root_node_from(decoded)
        if node.kind is NodeKind.NOT_FOUND:
            logger.debug("Root node %r not found in response of %r", call.root_node, call)
            return Result.not_found(node.value)
        return Result.json(node)

    @staticmethod
    def _model_result(node: JsonNode, parse: Callable[[dict], Any]) -> Result:
        try:
            if node.kind is NodeKind.ARRAY:
                models: List[Any] = [parse(item) for item in node.value]
                return Result.model(models)
            return Result.model(parse(node.value))
        except RestMapError as exc:
            return Result.failure(exc)
        except Exception as exc:
            # pydantic.ValidationError, KeyError from hand-written parsers, sqlite3.Error from mappings
            logger.error("Could not decode %s: %r", type(node.value).__name__, exc)
            return Result.failure(DecodeError(f"{type(exc).__name__}: {exc}", node.value))
