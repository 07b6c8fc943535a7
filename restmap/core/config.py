"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
library can be imported without any environment set up; applications
override them via environment variables before importing this module.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Library and example application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "restmap example")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # Level of the ``restmap`` loggers; empty means same as ``log_level``.
    library_log_level: str = os.getenv("RESTMAP_LOG_LEVEL", "")

    # Base URL every ``Call`` path is appended to.  A trailing slash is
    # stripped by ``Configuration``.
    base_url: str = os.getenv("RESTMAP_BASE_URL", "http://jsonplaceholder.typicode.com")

    # Per-request timeout in seconds handed to the transport.  There is
    # no retry or backoff on top of it.
    timeout: float = float(os.getenv("RESTMAP_TIMEOUT", "10.0"))

    # Worker threads used by a ``TransportSession`` to run requests.
    max_workers: int = int(os.getenv("RESTMAP_MAX_WORKERS", "4"))

    # Path of the SQLite database used by the persistence adapter.  A
    # relative path is resolved against the current working directory
    # by ``core.db``.
    database_url: str = os.getenv("DATABASE_URL", "restmap.db")

    # Path fetched by the example application's ``/sync`` endpoint.
    sync_path: str = os.getenv("RESTMAP_SYNC_PATH", "CoreDataEntity")


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.
settings = Settings()


@dataclass(frozen=True)
class Configuration:
    """Base configuration a ``Call`` is built against.

    Attributes:
        base_url: Scheme and host (optionally a path prefix) of the API.
        timeout: Per-request timeout in seconds.
    """

    base_url: str
    timeout: float = 10.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "Configuration":
        return cls(base_url=source.base_url, timeout=source.timeout)
