"""
Example application.

A FastAPI app exposing the locally persisted entities and an endpoint
that synchronises them from the remote API in one ``ServiceQueue``
batch.  Serve it with uvicorn, e.g.::

    uvicorn --factory restmap_example.app:create_app --reload

The repository is created once here and handed to everything that
needs persistence.
"""

from typing import Callable, List, Optional

from fastapi import FastAPI, HTTPException, status

from restmap import Configuration, Repository, TransportSession
from restmap.core.config import settings
from restmap.core.logging_config import setup_logging

from .entity import ExampleEntity, SyncReport, example_entity_mapping, example_repository
from .sync import synchronize


def create_app(
    repository: Optional[Repository] = None,
    session_factory: Callable[[], TransportSession] = TransportSession,
    configuration: Optional[Configuration] = None,
) -> FastAPI:
    """Create and configure the example application.

    Parameters
    ----------
    repository : Optional[Repository]
        Store for the entities.  Defaults to SQLite at
        ``settings.database_url``.
    session_factory : Callable[[], TransportSession]
        Builds the transport session of each sync batch; a queue
        invalidates its session when the batch ends.
    configuration : Optional[Configuration]
        Base URL and timeout of the remote API.
    """
    setup_logging(settings.log_level, library_level=settings.library_log_level or None)

    repository = repository or example_repository(settings.database_url)
    configuration = configuration or Configuration.from_settings()
    mapping = example_entity_mapping(repository)

    app = FastAPI(title=settings.project_name, version=settings.api_version)
    app.state.repository = repository
    app.state.mapping = mapping

    @app.get("/entities", response_model=List[ExampleEntity])
    def list_entities() -> List[ExampleEntity]:
        """Return every stored entity in insertion order."""
        return mapping.all()

    @app.get("/entities/{unique_value}", response_model=ExampleEntity)
    def get_entity(unique_value: str) -> ExampleEntity:
        entity = mapping.lookup_existing({mapping.unique_key: unique_value})
        if entity is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entity not found")
        return entity

    @app.delete("/entities/{unique_value}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_entity(unique_value: str) -> None:
        if not repository.delete(unique_value):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Entity not found")
        return None

    @app.post("/sync", response_model=SyncReport)
    def sync() -> SyncReport:
        """Fetch ``settings.sync_path`` and store every entity it returns.

        Responds with HTTP 504 when the batch does not finish in time.
        """
        try:
            return synchronize(mapping, configuration, session_factory())
        except TimeoutError as exc:
            raise HTTPException(status_code=status.HTTP_504_GATEWAY_TIMEOUT, detail=str(exc))

    return app
