"""
Synchronise remote entities into the local repository.

One call to :func:`synchronize` is one ``ServiceQueue`` batch: every
path is fetched, each returned object is looked up or created through
the entity mapping, and the function returns once the queue's final
callback has fired.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Iterable, List, Optional

from restmap import Call, Configuration, EntityMapping, ResultKind, ServiceQueue, TransportSession
from restmap.core.config import settings

from .entity import ExampleEntity, SyncReport


logger = logging.getLogger(__name__)


def synchronize(
    mapping: EntityMapping[ExampleEntity],
    configuration: Configuration,
    session: TransportSession,
    paths: Iterable[str] = (settings.sync_path,),
    wait: Optional[float] = None,
) -> SyncReport:
    """Fetch ``paths`` as one batch and persist every returned entity.

    Raises:
        TimeoutError: the batch did not finish within ``wait`` seconds
            (default: twice the request timeout).  The batch is cancelled.
    """
    done = threading.Event()
    outcome: Dict[str, Any] = {}
    synced: List[ExampleEntity] = []
    lock = threading.Lock()

    def final(failed_tasks, errors) -> None:
        outcome["failed"] = len(failed_tasks) if failed_tasks else 0
        outcome["errors"] = [str(error) for error in errors] if errors else []
        done.set()

    def completion(result) -> None:
        if result.kind is ResultKind.MODEL:
            models = result.value if isinstance(result.value, list) else [result.value]
            with lock:
                synced.extend(models)
        elif result.kind is ResultKind.NOT_FOUND:
            logger.warning("Response has no %r node", mapping.root_key)

    queue = ServiceQueue(configuration, final, session=session)
    for path in paths:
        queue.perform(Call(path, root_node=mapping.root_key), mapping.from_json, completion)

    if not queue.has_outstanding_tasks:
        logger.warning("Nothing to synchronise")
        queue.finish_tasks_and_invalidate()
        return SyncReport()

    queue.resume_all()
    if not done.wait(wait if wait is not None else configuration.timeout * 2):
        queue.invalidate_and_cancel()
        raise TimeoutError("Synchronisation did not finish in time")

    logger.info("Synchronised %d entities, %d requests failed", len(synced), outcome["failed"])
    return SyncReport(synced=len(synced), failed=outcome["failed"], errors=outcome["errors"])
