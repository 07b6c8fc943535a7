"""Declarative description of one REST request.

A :class:`Call` carries a path relative to the service's base URL, the
HTTP verb, optional :class:`Parameters` and an optional root node used
to locate the interesting part of a JSON response.  The service layer
turns it into a ``requests.Request`` with :meth:`Call.request` and
classifies decoded responses with :meth:`Call.root_node_from`.

Parameter insertion is lenient: a payload with the wrong shape is
logged and the request is sent without it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests
from pydantic import BaseModel

from restmap.core.config import Configuration
from restmap.core.errors import MalformedError


logger = logging.getLogger(__name__)


class HTTPMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


# Verbs whose requests may not carry a body.
BODYLESS_METHODS = frozenset({HTTPMethod.GET, HTTPMethod.DELETE})


class ParameterType(str, Enum):
    """Where a :class:`Parameters` payload is placed in the request."""

    HTTP_HEADER = "httpHeader"
    URL_COMPONENTS = "urlComponents"
    JSON_BODY = "jsonBody"


@dataclass
class Parameters:
    """A payload tagged with its placement.

    Attributes:
        type: Header fields, URL query components or JSON body.
        parameters: The payload.  Header and query payloads must map
            strings to strings; a JSON body must be a mapping.
    """

    type: ParameterType
    parameters: Dict[str, Any]

    def __post_init__(self) -> None:
        # Accept the raw placement names, e.g. ``"jsonBody"``.
        self.type = ParameterType(self.type)


class NodeKind(str, Enum):
    ARRAY = "array"
    OBJECT = "object"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class JsonNode:
    """Classification of a (possibly rooted) JSON value."""

    kind: NodeKind
    value: Any

    @classmethod
    def array(cls, value: list) -> "JsonNode":
        return cls(NodeKind.ARRAY, value)

    @classmethod
    def object(cls, value: dict) -> "JsonNode":
        return cls(NodeKind.OBJECT, value)

    @classmethod
    def not_found(cls, value: Any) -> "JsonNode":
        return cls(NodeKind.NOT_FOUND, value)

    @property
    def found(self) -> bool:
        return self.kind is not NodeKind.NOT_FOUND


class Call:
    """One logical request: path, verb, parameters and response root node.

    ``path`` and ``method`` are fixed at construction; ``root_node`` and
    ``parameters`` may be adjusted until the call is submitted.
    """

    def __init__(
        self,
        path: str,
        method: HTTPMethod | str = HTTPMethod.GET,
        root_node: Optional[str] = None,
        parameters: Optional[Parameters] = None,
    ) -> None:
        self._path = path
        self._method = HTTPMethod(method)
        self.root_node = root_node
        self.parameters = parameters

    @classmethod
    def with_model(
        cls,
        path: str,
        model: BaseModel,
        method: HTTPMethod | str = HTTPMethod.POST,
        root_node: Optional[str] = None,
    ) -> "Call":
        """Build a call whose JSON body is ``model`` dumped by alias."""
        body = model.model_dump(by_alias=True, mode="json")
        return cls(path, method, root_node, Parameters(ParameterType.JSON_BODY, body))

    @property
    def path(self) -> str:
        return self._path

    @property
    def method(self) -> HTTPMethod:
        return self._method

    def __repr__(self) -> str:
        return f"Call({self.method.value} {self.path!r}, root_node={self.root_node!r})"

    # ------------------------------------------------------------------
    # Request building
    # ------------------------------------------------------------------
    def request(self, configuration: Configuration) -> requests.Request:
        """Build the transport request against ``configuration``."""
        request = requests.Request(
            method=self.method.value,
            url=f"{configuration.base_url}/{self.path}",
        )
        return self._insert_parameters(request)

    def _insert_parameters(self, request: requests.Request) -> requests.Request:
        if self.parameters is None:
            return request

        try:
            kind = self.parameters.type
            payload = self.parameters.parameters
            if kind is ParameterType.HTTP_HEADER:
                headers = self._string_mapping(payload, "HTTP headers must be in a {str: str} format")
                request.headers.update(headers)
            elif kind is ParameterType.URL_COMPONENTS:
                components = self._string_mapping(payload, "URL components must first be cast to strings")
                request.params.update(components)
            elif kind is ParameterType.JSON_BODY:
                self._insert_body(payload, request)
            else:
                raise MalformedError(f"Unknown parameter placement {kind!r}")
        except MalformedError as exc:
            logger.error("Parameters of %r not inserted: %s", self, exc)
        return request

    def _insert_body(self, payload: Any, request: requests.Request) -> None:
        if self.method in BODYLESS_METHODS:
            raise MalformedError(f"HTTP {self.method.value} request can't have a body")
        if not isinstance(payload, dict):
            raise MalformedError("JSON body must be a mapping")
        try:
            body = json.dumps(payload, indent=2).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise MalformedError(f"JSON body is not serializable: {exc}") from exc
        request.data = body
        request.headers["Content-Type"] = "application/json"

    @staticmethod
    def _string_mapping(payload: Any, info: str) -> Dict[str, str]:
        if not isinstance(payload, dict):
            raise MalformedError(info)
        for key, value in payload.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise MalformedError(info)
        return payload

    # ------------------------------------------------------------------
    # Response rooting
    # ------------------------------------------------------------------
    def root_node_from(self, json: Any) -> JsonNode:
        """Classify ``json`` after extracting ``root_node`` when it is set.

        Override to root responses differently.  With ``root_node`` set,
        ``{"<root_node>": <node>}`` yields ``<node>``.
        """
        node = self._extract_node_if_needed(json)
        if isinstance(node, list):
            return JsonNode.array(node)
        if isinstance(node, dict):
            return JsonNode.object(node)
        return JsonNode.not_found(node)

    def _extract_node_if_needed(self, json: Any) -> Any:
        if self.root_node is None or not isinstance(json, dict):
            return json
        return json.get(self.root_node)
