from types import SimpleNamespace

import pytest
from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, create_engine, event, insert, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.pool import StaticPool

from fishermans.errors import (
    InvalidForeignKeyError,
    RpcError,
    ServiceStopped,
    StatusCode,
    UniqueViolationError,
    internal_error,
    parse_db_error,
)


class _FakePgError(Exception):
    def __init__(self, pgcode, constraint):
        super().__init__("pg failure")
        self.pgcode = pgcode
        self.diag = SimpleNamespace(constraint_name=constraint)


def _wrapped(pgcode, constraint="client_contact_key"):
    return IntegrityError("INSERT", {}, _FakePgError(pgcode, constraint))


@pytest.fixture
def sqlite_tables():
    engine = create_engine("sqlite://", poolclass=StaticPool)

    @event.listens_for(engine, "connect")
    def _fk_on(dbapi_conn, _record):
        dbapi_conn.execute("PRAGMA foreign_keys=ON")

    metadata = MetaData()
    parent = Table("parent", metadata, Column("id", Integer, primary_key=True), Column("name", String, unique=True))
    child = Table("child", metadata, Column("id", Integer, primary_key=True),
                  Column("parent_id", Integer, ForeignKey("parent.id")))
    metadata.create_all(engine)
    yield engine, parent, child
    engine.dispose()


def test_internal_error_code_and_message():
    err = internal_error()
    assert err.code is StatusCode.INTERNAL
    assert err.message == "internal server error"


def test_rpc_error_string_form():
    assert str(internal_error()) == "rpc error: code = Internal desc = internal server error"


def test_rpc_errors_compare_by_code_and_message():
    assert internal_error() == internal_error()
    assert RpcError(StatusCode.NOT_FOUND, "x") != RpcError(StatusCode.INTERNAL, "x")


def test_status_code_labels_in_rpc_error():
    err = RpcError(StatusCode.INVALID_ARGUMENT, "bad")
    assert str(err) == "rpc error: code = InvalidArgument desc = bad"
    assert err.code.label == "InvalidArgument"


def test_service_stopped_message():
    assert str(ServiceStopped()) == "service stopped"


def test_constraint_errors_include_constraint_name():
    err = UniqueViolationError("client_contact_key")
    assert str(err) == "client_contact_key: unique constraint violation"
    assert err.constraint == "client_contact_key"
    assert str(InvalidForeignKeyError()) == "invalid foreign key"


def test_non_database_error_becomes_internal():
    parsed = parse_db_error(ValueError("boom"))
    assert isinstance(parsed, RpcError)
    assert parsed.code is StatusCode.INTERNAL
    assert parsed.message == "DB error: boom"


def test_postgres_unique_violation():
    parsed = parse_db_error(_wrapped("23505"))
    assert isinstance(parsed, UniqueViolationError)
    assert parsed.constraint == "client_contact_key"


def test_postgres_foreign_key_violation():
    parsed = parse_db_error(_wrapped("23503", "application_client_id_fkey"))
    assert isinstance(parsed, InvalidForeignKeyError)
    assert parsed.constraint == "application_client_id_fkey"


def test_other_postgres_error_returned_unchanged():
    err = _wrapped("40001")
    assert parse_db_error(err) is err


def test_sqlite_unique_violation(sqlite_tables):
    engine, parent, _ = sqlite_tables
    with engine.begin() as conn:
        conn.execute(insert(parent).values(name="a"))
    with pytest.raises(IntegrityError) as info:
        with engine.begin() as conn:
            conn.execute(insert(parent).values(name="a"))
    parsed = parse_db_error(info.value)
    assert isinstance(parsed, UniqueViolationError)
    assert parsed.constraint == "parent.name"


def test_sqlite_foreign_key_violation(sqlite_tables):
    engine, _, child = sqlite_tables
    with pytest.raises(IntegrityError) as info:
        with engine.begin() as conn:
            conn.execute(insert(child).values(parent_id=99))
    parsed = parse_db_error(info.value)
    assert isinstance(parsed, InvalidForeignKeyError)
    assert str(parsed).endswith("invalid foreign key")


def test_operational_error_returned_unchanged(sqlite_tables):
    engine, _, _ = sqlite_tables
    missing = Table("missing", MetaData(), Column("id", Integer))
    with pytest.raises(OperationalError) as info:
        with engine.connect() as conn:
            conn.execute(select(missing))
    assert parse_db_error(info.value) is info.value