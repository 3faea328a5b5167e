"""Database tables and the query objects that read and write them."""

from __future__ import annotations

import copy
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Callable, ClassVar, Iterator

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Table,
    Text,
    delete,
    event,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Connection, Engine

from fishermans.errors import parse_db_error
from fishermans.models import Application, ApplicationStatus, Client, Location

_ID = BigInteger().with_variant(Integer, "sqlite")

metadata = MetaData()

client_table = Table(
    "client",
    metadata,
    Column("id", _ID, primary_key=True, autoincrement=True),
    Column("first_name", Text, nullable=False),
    Column("last_name", Text, nullable=False),
    Column("photo", Text, nullable=False),
    Column("contact", Text, nullable=False),
)

location_table = Table(
    "location",
    metadata,
    Column("id", _ID, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=False),
    Column("photo", Text, nullable=False),
)

application_status_table = Table(
    "applicationstatus",
    metadata,
    Column("id", _ID, primary_key=True, autoincrement=True),
    Column("status_name", Text, nullable=False),
)

application_table = Table(
    "application",
    metadata,
    Column("id", _ID, primary_key=True, autoincrement=True),
    Column("fishing_date", DateTime(timezone=True), nullable=False),
    Column("client_id", BigInteger, ForeignKey("client.id"), nullable=False),
    Column("location_id", BigInteger, ForeignKey("location.id"), nullable=False),
    Column("status_id", BigInteger, ForeignKey("applicationstatus.id"), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)


def _sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _prepare(engine: Engine) -> None:
    if engine.dialect.name == "sqlite" and not event.contains(engine, "connect", _sqlite_foreign_keys):
        event.listen(engine, "connect", _sqlite_foreign_keys)


def create_schema(engine: Engine) -> None:
    """Create every table the service uses."""
    _prepare(engine)
    metadata.create_all(engine)


def drop_schema(engine: Engine) -> None:
    """Drop every table the service uses."""
    metadata.drop_all(engine)


@contextmanager
def _translated_errors() -> Iterator[None]:
    try:
        yield
    except Exception as exc:
        parsed = parse_db_error(exc)
        if parsed is exc:
            raise
        raise parsed from exc


class _Database:
    """An engine plus the transaction, if any, open in the current thread."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._local = threading.local()

    def clone(self) -> _Database:
        return _Database(self.engine)

    @property
    def _active(self) -> Connection | None:
        return getattr(self._local, "connection", None)

    @contextmanager
    def connection(self) -> Iterator[Connection]:
        if self._active is not None:
            yield self._active
            return
        with self.engine.begin() as conn:
            yield conn

    def transaction(self, fn: Callable[[], Any]) -> None:
        if self._active is not None:
            fn()
            return
        with self.engine.connect() as conn:
            conn.execution_options(isolation_level="SERIALIZABLE")
            with conn.begin():
                self._local.connection = conn
                try:
                    fn()
                finally:
                    self._local.connection = None


class _Query:
    table: ClassVar[Table]
    model: ClassVar[type]
    # model field -> column label in the select
    read_fields: ClassVar[dict[str, str]]
    # model field -> column written on insert and update
    write_fields: ClassVar[dict[str, str]]
    parse_get_errors: ClassVar[bool] = False
    parse_update_errors: ClassVar[bool] = True

    def __init__(self, db: _Database) -> None:
        self._db = db
        self._ids: list[int] = []

    def _select(self) -> Any:
        return select(self.table)

    def _filtered(self, stmt: Any) -> Any:
        for id_ in self._ids:
            stmt = stmt.where(self.table.c.id == id_)
        return stmt

    def _from_row(self, row: Any) -> Any:
        mapping = row._mapping
        return self.model(**{field: mapping[column] for field, column in self.read_fields.items()})

    def _values(self, data: Any) -> dict[str, Any]:
        return {column: getattr(data, field) for field, column in self.write_fields.items()}

    def _new(self) -> Any:
        return type(self)(self._db.clone())

    def _filter_by_id(self, id_: int) -> Any:
        self._ids.append(id_)
        return self

    def _get(self) -> Any:
        try:
            with self._db.connection() as conn:
                row = conn.execute(self._filtered(self._select())).first()
        except Exception as exc:
            if not self.parse_get_errors:
                raise
            parsed = parse_db_error(exc)
            if parsed is exc:
                raise
            raise parsed from exc
        return None if row is None else self._from_row(row)

    def _get_all(self) -> list[Any]:
        with self._db.connection() as conn:
            rows = conn.execute(self._filtered(self._select())).all()
        return [self._from_row(row) for row in rows]

    def _insert(self, data: Any) -> int:
        with _translated_errors(), self._db.connection() as conn:
            result = conn.execute(insert(self.table).values(self._values(data)))
            return int(result.inserted_primary_key[0])

    def _update(self, data: Any) -> None:
        stmt = self._filtered(update(self.table).values(self._values(data)))
        if not self.parse_update_errors:
            with self._db.connection() as conn:
                conn.execute(stmt)
            return
        with _translated_errors(), self._db.connection() as conn:
            conn.execute(stmt)

    def _delete(self, id_: int) -> None:
        with self._db.connection() as conn:
            conn.execute(delete(self.table).where(self.table.c.id == id_))


class ClientQ(_Query):
    """Queries on clients."""

    table = client_table
    model = Client
    read_fields = {
        "id": "id",
        "first_name": "first_name",
        "last_name": "last_name",
        "photo": "photo",
        "contact": "contact",
    }
    write_fields = {
        "first_name": "first_name",
        "last_name": "last_name",
        "photo": "photo",
        "contact": "contact",
    }

    def new(self):
        """A fresh query, outside any open transaction and without filters."""
        return self._new()

    def get(self):
        """The first matching client, or None when there is none."""
        return self._get()

    def get_all(self):
        """Every matching client."""
        return self._get_all()

    def insert(self, data):
        """Store a new client and return its id."""
        return self._insert(data)

    def update(self, data):
        """Overwrite the writable fields of every matching client."""
        self._update(data)

    def delete(self, id):
        """Remove the client with this id."""
        self._delete(id)

    def filter_by_id(self, id):
        """Restrict later reads and updates to the client with this id."""
        return self._filter_by_id(id)


class LocationQ(_Query):
    """Queries on locations."""

    table = location_table
    model = Location
    read_fields = {"id": "id", "name": "name", "description": "description", "photo": "photo"}
    write_fields = {"name": "name", "description": "description", "photo": "photo"}
    parse_get_errors = True
    parse_update_errors = False

    def new(self):
        """A fresh query, outside any open transaction and without filters."""
        return self._new()

    def get(self):
        """The first matching location, or None when there is none."""
        return self._get()

    def get_all(self):
        """Every matching location."""
        return self._get_all()

    def insert(self, data):
        """Store a new location and return its id."""
        return self._insert(data)

    def update(self, data):
        """Overwrite the writable fields of every matching location."""
        self._update(data)

    def delete(self, id):
        """Remove the location with this id."""
        self._delete(id)

    def filter_by_id(self, id):
        """Restrict later reads and updates to the location with this id."""
        return self._filter_by_id(id)


class ApplicationStatusQ(_Query):
    """Queries on application statuses."""

    table = application_status_table
    model = ApplicationStatus
    read_fields = {"id": "id", "name": "status_name"}
    write_fields = {"name": "status_name"}

    def new(self):
        """A fresh query, outside any open transaction and without filters."""
        return self._new()

    def get(self):
        """The first matching status, or None when there is none."""
        return self._get()

    def get_all(self):
        """Every matching status."""
        return self._get_all()

    def insert(self, data):
        """Store a new status and return its id."""
        return self._insert(data)

    def update(self, data):
        """Overwrite the name of every matching status."""
        self._update(data)

    def delete(self, id):
        """Remove the status with this id."""
        self._delete(id)

    def filter_by_id(self, id):
        """Restrict later reads and updates to the status with this id."""
        return self._filter_by_id(id)


class ApplicationQ(_Query):
    """Queries on applications, joined with their location and status names."""

    table = application_table
    model = Application
    read_fields = {
        "id": "id",
        "fishing_date": "fishing_date",
        "client_id": "client_id",
        "location_id": "location_id",
        "location": "location",
        "status_id": "status_id",
        "status": "status",
        "created_at": "created_at",
    }
    write_fields = {
        "fishing_date": "fishing_date",
        "client_id": "client_id",
        "location_id": "location_id",
        "status_id": "status_id",
        "created_at": "created_at",
    }

    def _select(self) -> Any:
        a, loc, st = application_table, location_table, application_status_table
        joined = a.outerjoin(loc, loc.c.id == a.c.location_id).outerjoin(st, st.c.id == a.c.status_id)
        return select(
            a.c.id,
            a.c.fishing_date,
            a.c.client_id,
            a.c.location_id,
            loc.c.name.label("location"),
            a.c.status_id,
            st.c.status_name.label("status"),
            a.c.created_at,
        ).select_from(joined)

    def new(self):
        """A fresh query, outside any open transaction and without filters."""
        return self._new()

    def get(self):
        """The first matching application, or None when there is none."""
        return self._get()

    def get_all(self):
        """Every matching application."""
        return self._get_all()

    def insert(self, data):
        """Store a new application stamped with the current time and return its id."""
        data.created_at = datetime.now(timezone.utc)
        return self._insert(data)

    def update(self, data):
        """Overwrite the writable fields of every matching application."""
        self._update(data)

    def delete(self, id):
        """Remove the application with this id."""
        self._delete(id)

    def filter_by_id(self, id):
        """Restrict later reads and updates to the application with this id."""
        return self._filter_by_id(id)


class MasterQ:
    """Entry point to every query, sharing one database handle."""

    def __init__(self, engine: Engine) -> None:
        _prepare(engine)
        self._db = _Database(engine)

    def new(self):
        """A master query sharing this one's database handle."""
        return copy.copy(self)

    def client_q(self):
        return ClientQ(self._db)

    def application_q(self):
        return ApplicationQ(self._db)

    def location_q(self):
        return LocationQ(self._db)

    def application_status_q(self):
        return ApplicationStatusQ(self._db)

    def transaction(self, fn, data):
        """Run ``fn(data)`` in a serializable transaction, rolling back if it raises."""
        self._db.transaction(lambda: fn(data))