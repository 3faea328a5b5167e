import logging
from datetime import datetime

import pytest
from sqlalchemy import create_engine

from fishermans.applications import (
    delete_application,
    get_all_applications,
    get_application_by_id,
    submit_application,
    update_application,
)
from fishermans.context import db_provider, logger_provider
from fishermans.errors import RpcError, StatusCode
from fishermans.models import ApplicationStatus, Client, Location
from fishermans.storage import MasterQ, create_schema

FISHING_DATE = datetime(2024, 6, 1, 5, 30)


@pytest.fixture
def master(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'fish.db'}")
    create_schema(engine)
    yield MasterQ(engine)
    engine.dispose()


@pytest.fixture
def ctx(master):
    return db_provider(master)(logger_provider(logging.getLogger("tests"))({}))


@pytest.fixture
def refs(master):
    client_id = master.client_q().insert(
        Client(first_name="Ivan", last_name="Petrenko", photo="ivan.png", contact="ivan@example.com")
    )
    location_id = master.location_q().insert(Location(name="Lake", description="Quiet lake", photo="lake.png"))
    status_id = master.application_status_q().insert(ApplicationStatus(name="pending"))
    return {"client_id": client_id, "location_id": location_id, "status_id": status_id}


def _submit(ctx, refs, **overrides):
    fields = {**refs, "fishing_date": FISHING_DATE, **overrides}
    return submit_application(ctx, {"application": fields})["application_id"]


def test_submit_and_get(ctx, refs):
    app_id = _submit(ctx, refs)
    got = get_application_by_id(ctx, {"application_id": app_id})["application"]
    assert got["id"] == app_id
    assert got["client_id"] == refs["client_id"]
    assert got["location"] == "Lake"
    assert got["status"] == "pending"
    assert got["fishing_date"] == FISHING_DATE
    assert isinstance(got["created_at"], datetime)


def test_submit_without_application_is_invalid(ctx):
    with pytest.raises(RpcError) as info:
        submit_application(ctx, {})
    assert info.value.code is StatusCode.INVALID_ARGUMENT


def test_submit_with_zero_client_is_invalid(ctx, refs):
    with pytest.raises(RpcError) as info:
        _submit(ctx, refs, client_id=0)
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert "client_id" in info.value.message


def test_submit_with_unknown_location_is_invalid(ctx, refs):
    with pytest.raises(RpcError) as info:
        _submit(ctx, refs, location_id=refs["location_id"] + 100)
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert get_all_applications(ctx, {})["applications"] == []


def test_update_changes_status(ctx, refs, master):
    app_id = _submit(ctx, refs)
    approved = master.application_status_q().insert(ApplicationStatus(name="approved"))
    fields = {**refs, "id": app_id, "status_id": approved, "fishing_date": FISHING_DATE}
    assert update_application(ctx, {"application": fields}) == {}
    got = get_application_by_id(ctx, {"application_id": app_id})["application"]
    assert got["status"] == "approved"


def test_update_missing_application(ctx, refs):
    fields = {**refs, "id": 42, "fishing_date": FISHING_DATE}
    with pytest.raises(RpcError) as info:
        update_application(ctx, {"application": fields})
    assert info.value == RpcError(StatusCode.NOT_FOUND, "application not found")


def test_update_requires_id(ctx, refs):
    with pytest.raises(RpcError) as info:
        update_application(ctx, {"application": {**refs, "fishing_date": FISHING_DATE}})
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert "id" in info.value.message


def test_update_with_unknown_location_is_invalid(ctx, refs):
    app_id = _submit(ctx, refs)
    fields = {**refs, "id": app_id, "location_id": refs["location_id"] + 100, "fishing_date": FISHING_DATE}
    with pytest.raises(RpcError) as info:
        update_application(ctx, {"application": fields})
    assert info.value.code is StatusCode.INVALID_ARGUMENT


def test_delete_then_get_is_not_found(ctx, refs):
    app_id = _submit(ctx, refs)
    assert delete_application(ctx, {"application_id": app_id}) == {}
    with pytest.raises(RpcError) as info:
        get_application_by_id(ctx, {"application_id": app_id})
    assert info.value.code is StatusCode.NOT_FOUND


def test_delete_missing(ctx):
    with pytest.raises(RpcError) as info:
        delete_application(ctx, {"application_id": 9})
    assert info.value.code is StatusCode.NOT_FOUND


def test_get_all_lists_every_application(ctx, refs):
    ids = [_submit(ctx, refs), _submit(ctx, refs)]
    listed = get_all_applications(ctx, {})["applications"]
    assert sorted(app["id"] for app in listed) == sorted(ids)


def test_get_by_zero_id_is_invalid(ctx):
    with pytest.raises(RpcError) as info:
        get_application_by_id(ctx, {"application_id": 0})
    assert info.value.code is StatusCode.INVALID_ARGUMENT
    assert info.value.message.startswith("applicationId:")