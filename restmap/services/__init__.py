"""
Service layer.

``Service`` dispatches single calls; ``ServiceQueue`` batches calls
over one session and reports once the whole batch has completed.
"""

from .service import Service
from .service_queue import QueueState, ServiceQueue

__all__ = ["Service", "ServiceQueue", "QueueState"]
