"""
Error kinds raised or reported by restmap.

None of these cross a completion boundary as an exception: the
service layer wraps them into ``Result.failure`` / ``WriteResult.failure``
and the request builder logs and swallows them.
"""

from __future__ import annotations

from typing import Any, Optional


class RestMapError(Exception):
    """Base class for all restmap errors."""


class MalformedError(RestMapError):
    """Parameters have the wrong shape for their placement, or a body was
    attached to a verb that cannot carry one."""

    def __init__(self, info: str) -> None:
        super().__init__(info)
        self.info = info


class InvalidUrlError(RestMapError):
    """The request URL could not be built."""

    def __init__(self, url: str) -> None:
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class InvalidSessionError(RestMapError):
    """A transport handle could not be created."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(RestMapError):
    """The server answered with a non-2xx status, or the transport failed.

    ``status_code`` is ``None`` when no HTTP response was received.
    """

    def __init__(self, status_code: Optional[int], data: Optional[bytes] = None, message: str = "") -> None:
        if not message:
            message = f"HTTP {status_code}" if status_code is not None else "Network failure"
        super().__init__(message)
        self.status_code = status_code
        self.data = data

    @classmethod
    def from_exception(cls, exc: Exception) -> "NetworkError":
        return cls(None, None, str(exc))


class InvalidResponseDataError(RestMapError):
    """The response body is not valid JSON."""

    def __init__(self, data: Optional[bytes]) -> None:
        super().__init__("Response body could not be decoded as JSON")
        self.data = data


class DecodeError(RestMapError):
    """Decoded JSON could not be turned into a model."""

    def __init__(self, info: str, json: Any = None) -> None:
        super().__init__(info)
        self.info = info
        self.json = json


class CancelledError(RestMapError):
    """The request was cancelled because its session was invalidated."""

    def __init__(self) -> None:
        super().__init__("Request cancelled")
