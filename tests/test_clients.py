import logging
from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine

from fishermans.clients import (
    delete_client,
    get_all_clients,
    get_client_by_id,
    submit_client,
    update_client,
)
from fishermans.context import db_provider, logger_provider
from fishermans.errors import InvalidForeignKeyError, RpcError, StatusCode, UniqueViolationError
from fishermans.models import Application, ApplicationStatus, Location
from fishermans.storage import MasterQ, create_schema


@pytest.fixture
def master(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'db.sqlite'}")
    create_schema(engine)
    yield MasterQ(engine)
    engine.dispose()


def _ctx(db):
    ctx = logger_provider(logging.getLogger("tests.clients"))({})
    return db_provider(db)(ctx)


@pytest.fixture
def ctx(master):
    return _ctx(master)


def _client(**overrides):
    fields = {"name": "Ivan", "surname": "Petrenko", "contact": "ivan@example.com", "photo": "ivan.png"}
    fields.update(overrides)
    return fields


class _FailingQuery:
    def __init__(self, exc):
        self.exc = exc

    def insert(self, data):
        raise self.exc


class _FailingMaster:
    def __init__(self, exc):
        self.exc = exc

    def new(self):
        return self

    def client_q(self):
        return _FailingQuery(self.exc)

    def transaction(self, fn, data):
        fn(data)


def test_submit_then_get_round_trip(ctx):
    created = submit_client(ctx, {"client": _client()})
    fetched = get_client_by_id(ctx, {"client_id": created["client_id"]})
    assert fetched["client"] == {
        "id": created["client_id"],
        "name": "Ivan",
        "surname": "Petrenko",
        "photo": "ivan.png",
        "contact": "ivan@example.com",
    }


def test_submit_assigns_distinct_ids(ctx):
    first = submit_client(ctx, {"client": _client()})["client_id"]
    second = submit_client(ctx, {"client": _client(name="Olena")})["client_id"]
    assert first > 0 and second > 0
    assert first != second


def test_submit_missing_fields_rejected(ctx):
    with pytest.raises(RpcError) as info:
        submit_client(ctx, {"client": _client(name="", photo="")})
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert "name: cannot be blank" in info.value.message
    assert "photo: cannot be blank" in info.value.message


def test_submit_unique_violation_maps_to_already_exists():
    ctx = _ctx(_FailingMaster(UniqueViolationError("client_pkey")))
    with pytest.raises(RpcError) as info:
        submit_client(ctx, {"client": _client()})
    assert info.value == RpcError(StatusCode.ALREADY_EXISTS, "client already exists")


def test_submit_foreign_key_maps_to_invalid_argument():
    exc = InvalidForeignKeyError("fk")
    ctx = _ctx(_FailingMaster(exc))
    with pytest.raises(RpcError) as info:
        submit_client(ctx, {"client": _client()})
    assert info.value == RpcError(StatusCode.INVALID_ARGUMENT, str(exc))


def test_submit_unexpected_error_is_internal():
    ctx = _ctx(_FailingMaster(RuntimeError("boom")))
    with pytest.raises(RpcError) as info:
        submit_client(ctx, {"client": _client()})
    assert info.value.code is StatusCode.INTERNAL


def test_update_overwrites_fields(ctx):
    client_id = submit_client(ctx, {"client": _client()})["client_id"]
    update_client(ctx, {"client": _client(id=client_id, name="Taras", contact="taras@example.com")})
    fetched = get_client_by_id(ctx, {"client_id": client_id})["client"]
    assert fetched["name"] == "Taras"
    assert fetched["contact"] == "taras@example.com"
    assert fetched["surname"] == "Petrenko"


def test_update_missing_client_not_found(ctx):
    with pytest.raises(RpcError) as info:
        update_client(ctx, {"client": _client(id=42)})
    assert info.value == RpcError(StatusCode.NOT_FOUND, "client not found")


def test_update_requires_id(ctx):
    with pytest.raises(RpcError) as info:
        update_client(ctx, {"client": _client()})
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert "id: cannot be blank" in info.value.message


def test_delete_removes_client(ctx):
    client_id = submit_client(ctx, {"client": _client()})["client_id"]
    assert delete_client(ctx, {"client_id": client_id}) == {}
    with pytest.raises(RpcError) as info:
        get_client_by_id(ctx, {"client_id": client_id})
    assert info.value.code is StatusCode.NOT_FOUND


def test_delete_missing_client_not_found(ctx):
    with pytest.raises(RpcError) as info:
        delete_client(ctx, {"client_id": 7})
    assert info.value == RpcError(StatusCode.NOT_FOUND, "client not found")


def test_delete_referenced_client_is_internal_error(ctx, master):
    client_id = submit_client(ctx, {"client": _client()})["client_id"]
    location_id = master.location_q().insert(Location(name="Lake", description="Calm", photo=""))
    status_id = master.application_status_q().insert(ApplicationStatus(name="new"))
    master.application_q().insert(
        Application(
            fishing_date=datetime(2024, 5, 1, tzinfo=timezone.utc),
            client_id=client_id,
            location_id=location_id,
            status_id=status_id,
        )
    )
    with pytest.raises(RpcError) as info:
        delete_client(ctx, {"client_id": client_id})
    assert info.value.code is StatusCode.INTERNAL


def test_get_all_lists_every_client(ctx):
    assert get_all_clients(ctx, {}) == {"clients": []}
    ids = [submit_client(ctx, {"client": _client(name=name)})["client_id"] for name in ("Ivan", "Olena")]
    clients = get_all_clients(ctx, {})["clients"]
    assert [c["id"] for c in clients] == ids
    assert [c["name"] for c in clients] == ["Ivan", "Olena"]


@pytest.mark.parametrize(
    "client_id, message",
    [(0, "clientId: cannot be blank"), (-1, "clientId: value is not int64")],
)
def test_get_by_id_rejects_bad_ids(ctx, client_id, message):
    with pytest.raises(RpcError) as info:
        get_client_by_id(ctx, {"client_id": client_id})
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert message in info.value.message