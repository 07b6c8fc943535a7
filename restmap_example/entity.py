"""
Example persisted entity.

Records come from a Parse style endpoint that wraps collections in a
``"results"`` node and identifies objects by ``uniqueValue``.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from restmap.persistence import EntityMapping, Repository, SqliteRepository


ENTITY_NAME = "CoreDataEntity"


class ExampleEntity(BaseModel):
    """A user record identified by ``uniqueValue``."""

    model_config = ConfigDict(populate_by_name=True)

    unique_value: str = Field(..., alias="uniqueValue", examples=["u1"])
    username: Optional[str] = Field(None, examples=["bob"])


class SyncReport(BaseModel):
    """Summary of one synchronisation batch."""

    synced: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)


def example_repository(database_path: Optional[str] = None) -> SqliteRepository:
    return SqliteRepository(ENTITY_NAME, database_path)


def example_entity_mapping(repository: Repository) -> EntityMapping[ExampleEntity]:
    return EntityMapping(ExampleEntity, repository, unique_key="uniqueValue", root_key="results")
