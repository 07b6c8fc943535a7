"""Outcomes delivered to completion handlers.

A read call completes with a :class:`Result`, a write call with a
:class:`WriteResult`.  Each instance populates exactly one variant; use
the class methods to construct them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from restmap.call import JsonNode
from restmap.core.errors import RestMapError


class ResultKind(str, Enum):
    MODEL = "model"
    JSON = "json"
    OK = "ok"
    FAILURE = "failure"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Result:
    """Outcome of a read call.

    Attributes:
        kind: Which variant is populated.
        value: Decoded model(s) for ``MODEL``, a :class:`JsonNode` for
            ``JSON``, the unmatched JSON value for ``NOT_FOUND``.
        error: The error for ``FAILURE``.
    """

    kind: ResultKind
    value: Any = None
    error: Optional[RestMapError] = None

    @classmethod
    def model(cls, value: Any) -> "Result":
        return cls(ResultKind.MODEL, value=value)

    @classmethod
    def json(cls, node: JsonNode) -> "Result":
        return cls(ResultKind.JSON, value=node)

    @classmethod
    def ok(cls) -> "Result":
        return cls(ResultKind.OK)

    @classmethod
    def failure(cls, error: RestMapError) -> "Result":
        return cls(ResultKind.FAILURE, error=error)

    @classmethod
    def not_found(cls, value: Any) -> "Result":
        return cls(ResultKind.NOT_FOUND, value=value)

    @property
    def is_failure(self) -> bool:
        return self.kind is ResultKind.FAILURE


@dataclass(frozen=True)
class WriteResult:
    """Outcome of a write call: acknowledged or failed."""

    kind: ResultKind
    error: Optional[RestMapError] = None

    @classmethod
    def ok(cls) -> "WriteResult":
        return cls(ResultKind.OK)

    @classmethod
    def failure(cls, error: RestMapError) -> "WriteResult":
        return cls(ResultKind.FAILURE, error=error)

    @property
    def is_failure(self) -> bool:
        return self.kind is ResultKind.FAILURE
