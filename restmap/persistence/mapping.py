"""
Mapping between JSON objects and persisted records.

An ``EntityMapping`` ties a pydantic model (whose field aliases are the
JSON names) to a :class:`~restmap.persistence.repository.Repository`.
Incoming JSON is looked up by its unique key; an existing record is
updated with the fields present in the JSON, otherwise a new one is
created.  Either way the record is persisted under the same key, so a
key value never produces two records.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Generic, List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel

from restmap.call import JsonNode, NodeKind
from restmap.core.errors import DecodeError
from restmap.persistence.repository import Repository


logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class EntityMapping(Generic[M]):
    """Lookup-or-create adapter for one model type.

    Attributes:
        model: Pydantic model class; its field aliases are the JSON keys.
        repository: Where records are stored.
        unique_key: JSON name of the business key, e.g. ``"uniqueValue"``.
        root_key: Root node of collection responses.
    """

    def __init__(
        self,
        model: Type[M],
        repository: Repository,
        unique_key: str,
        root_key: Optional[str] = "results",
    ) -> None:
        self.model = model
        self.repository = repository
        self.unique_key = unique_key
        self.root_key = root_key
        self._lock = threading.Lock()
        if unique_key not in self.fields:
            raise ValueError(f"{model.__name__} has no field named {unique_key!r}")

    @property
    def fields(self) -> Tuple[str, ...]:
        """JSON names of the mapped fields."""
        return tuple(info.alias or name for name, info in self.model.model_fields.items())

    def key_of(self, json: Any) -> str:
        if not isinstance(json, dict) or json.get(self.unique_key) is None:
            raise DecodeError(f"JSON has no {self.unique_key!r} to look up a {self.model.__name__}", json)
        return str(json[self.unique_key])

    def lookup_existing(self, json: Any) -> Optional[M]:
        stored = self.repository.find_by_key(self.key_of(json))
        if stored is None:
            return None
        return self.model.model_validate(stored)

    def map(self, record: M, json: Dict[str, Any]) -> M:
        """Return ``record`` with the mapped fields present in ``json`` applied."""
        merged = self.to_json(record)
        merged.update(self._present(json))
        return self.model.model_validate(merged)

    def from_json(self, json: Any) -> M:
        """Look up or create the record for ``json``, update and persist it."""
        with self._lock:
            key = self.key_of(json)
            existing = self.lookup_existing(json)
            if existing is None:
                record = self.model.model_validate(self._present(json))
                logger.debug("Creating %s %s", self.model.__name__, key)
            else:
                record = self.map(existing, json)
            self.repository.upsert(key, self.to_json(record))
        return record

    def from_node(self, node: JsonNode) -> List[M]:
        if node.kind is NodeKind.ARRAY:
            return [self.from_json(item) for item in node.value]
        if node.kind is NodeKind.OBJECT:
            return [self.from_json(node.value)]
        return []

    def to_json(self, record: M) -> Dict[str, Any]:
        return record.model_dump(by_alias=True, mode="json")

    def all(self) -> List[M]:
        return [self.model.model_validate(fields) for fields in self.repository.all()]

    def _present(self, json: Dict[str, Any]) -> Dict[str, Any]:
        return {name: json[name] for name in self.fields if name in json}
