import pytest

from restmap import Call, DecodeError, EntityMapping, JsonNode, ResultKind, Service, SqliteRepository
from restmap.core.db import MIGRATIONS, get_connection, init_db
from restmap_example.entity import ExampleEntity


def test_creates_missing_record(mapping, repository):
    entity = mapping.from_json({"uniqueValue": "u1", "username": "bob"})

    assert entity == ExampleEntity(uniqueValue="u1", username="bob")
    assert repository.find_by_key("u1") == {"uniqueValue": "u1", "username": "bob"}
    assert repository.count() == 1


def test_updates_existing_record_in_place(mapping, repository):
    repository.upsert("u1", {"uniqueValue": "u1", "username": "alice"})

    entity = mapping.from_json({"uniqueValue": "u1", "username": "bob"})

    assert entity.username == "bob"
    assert repository.count() == 1
    assert repository.find_by_key("u1")["username"] == "bob"


def test_absent_fields_are_left_untouched(mapping, repository):
    repository.upsert("u1", {"uniqueValue": "u1", "username": "alice"})

    entity = mapping.from_json({"uniqueValue": "u1", "unmapped": "ignored"})

    assert entity.username == "alice"
    assert "unmapped" not in repository.find_by_key("u1")


def test_lookup_existing(mapping):
    assert mapping.lookup_existing({"uniqueValue": "u9"}) is None
    mapping.from_json({"uniqueValue": "u9", "username": "eve"})
    assert mapping.lookup_existing({"uniqueValue": "u9"}).username == "eve"


def test_to_json_emits_mapped_fields(mapping):
    entity = ExampleEntity(uniqueValue="u1", username="bob")
    assert mapping.to_json(entity) == {"uniqueValue": "u1", "username": "bob"}
    assert mapping.fields == ("uniqueValue", "username")


def test_missing_unique_key_is_decode_error(mapping):
    with pytest.raises(DecodeError):
        mapping.from_json({"username": "bob"})
    with pytest.raises(DecodeError):
        mapping.from_json(["not", "an", "object"])


def test_unknown_unique_key_is_rejected(repository):
    with pytest.raises(ValueError):
        EntityMapping(ExampleEntity, repository, unique_key="id")


def test_from_node(mapping):
    node = JsonNode.array([{"uniqueValue": "a"}, {"uniqueValue": "b", "username": "bee"}])
    assert [entity.unique_value for entity in mapping.from_node(node)] == ["a", "b"]
    assert mapping.from_node(JsonNode.not_found(None)) == []
    assert [entity.unique_value for entity in mapping.all()] == ["a", "b"]


def test_service_perform_persists_entities(configuration, mock_session, mapping, repository):
    mock_session.stub("GET", "CoreDataEntity", json={"results": [
        {"uniqueValue": "u1", "username": "bob"},
        {"uniqueValue": "u2", "username": "carol"},
    ]})
    repository.upsert("u1", {"uniqueValue": "u1", "username": "alice"})
    results = []

    Service(configuration, mock_session).perform(
        Call("CoreDataEntity", root_node=mapping.root_key), mapping.from_json, results.append
    )

    assert results[0].kind is ResultKind.MODEL
    assert repository.count() == 2
    assert repository.find_by_key("u1")["username"] == "bob"


def test_service_perform_reports_missing_key(configuration, mock_session, mapping):
    mock_session.stub("GET", "CoreDataEntity", json={"results": [{"username": "nobody"}]})
    results = []

    Service(configuration, mock_session).perform(
        Call("CoreDataEntity", root_node="results"), mapping.from_json, results.append
    )

    assert isinstance(results[0].error, DecodeError)


def test_repository_delete_and_all(repository):
    repository.upsert("a", {"uniqueValue": "a"})
    repository.upsert("b", {"uniqueValue": "b"})

    assert repository.delete("a") is True
    assert repository.delete("a") is False
    assert repository.all() == [{"uniqueValue": "b"}]


def test_repositories_are_scoped_by_entity(tmp_path):
    path = str(tmp_path / "shared.db")
    users = SqliteRepository("User", path)
    posts = SqliteRepository("Post", path)
    users.upsert("1", {"name": "user"})

    assert posts.find_by_key("1") is None
    assert users.find_by_key("1") == {"name": "user"}


def test_in_memory_repository():
    repository = SqliteRepository("Thing", ":memory:")
    repository.upsert("k", {"v": 1})
    assert repository.find_by_key("k") == {"v": 1}


def test_migrations_apply_once(tmp_path):
    conn = get_connection(str(tmp_path / "migrate.db"))
    try:
        assert init_db(conn) == MIGRATIONS[-1][0]
        assert init_db(conn) == MIGRATIONS[-1][0]
        versions = [row["version"] for row in conn.execute("SELECT version FROM migrations")]
        assert versions == [version for version, _ in MIGRATIONS]
    finally:
        conn.close()
