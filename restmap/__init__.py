"""
restmap: declarative REST calls mapped onto JSON results and local records.

Describe a request with :class:`Call`, perform it with :class:`Service`
(or batch several with :class:`ServiceQueue`) and receive a
:class:`Result` in the completion handler.  :class:`EntityMapping`
persists JSON objects through a :class:`Repository`, keyed by a unique
field.

Example::

    service = Service(Configuration("http://jsonplaceholder.typicode.com"))
    service.perform_json_result(Call("posts"), print)
"""

from .call import BODYLESS_METHODS, Call, HTTPMethod, JsonNode, NodeKind, ParameterType, Parameters
from .core.config import Configuration
from .core.errors import (
    CancelledError,
    DecodeError,
    InvalidResponseDataError,
    InvalidSessionError,
    InvalidUrlError,
    MalformedError,
    NetworkError,
    RestMapError,
)
from .persistence import EntityMapping, Repository, SqliteRepository
from .result import Result, ResultKind, WriteResult
from .services import QueueState, Service, ServiceQueue
from .session import Task, TaskState, TransportSession

__all__ = [
    "BODYLESS_METHODS",
    "Call",
    "CancelledError",
    "Configuration",
    "DecodeError",
    "EntityMapping",
    "HTTPMethod",
    "InvalidResponseDataError",
    "InvalidSessionError",
    "InvalidUrlError",
    "JsonNode",
    "MalformedError",
    "NetworkError",
    "NodeKind",
    "ParameterType",
    "Parameters",
    "QueueState",
    "Repository",
    "RestMapError",
    "Result",
    "ResultKind",
    "Service",
    "ServiceQueue",
    "SqliteRepository",
    "Task",
    "TaskState",
    "TransportSession",
    "WriteResult",
]
