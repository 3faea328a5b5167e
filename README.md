# fishermans

A small service that keeps a register of fishing clients, fishing locations,
application statuses and the fishing applications that tie them together. It
stores everything in a SQL database through SQLAlchemy and answers requests
over HTTP with JSON.

## What it manages

- **Clients**: first name, last name, photo and contact.
- **Locations**: name, description and photo.
- **Application statuses**: a named status such as "pending" or "approved".
- **Applications**: a client's request to fish at a location on a given date,
  carrying a status and the time it was created. When read back, an
  application also carries the names of its location and status.

Every kind of record can be submitted, updated, deleted, fetched by id and
listed. Requests are validated before they reach the database: required fields
must be present and ids must be positive integers. Unknown ids give a "not
found" error, references to missing rows give an "invalid argument" error,
duplicate rows give an "already exists" error, and anything unexpected is
logged and reported as an internal server error.

## Installation

```
pip install .
```

Only SQLite works out of the box. For another database, install the
SQLAlchemy driver it needs yourself.

To run the test suite as well:

```
pip install ".[test]"
pytest
```

## Configuration

The service reads a YAML file, `config.yaml` by default. It names the
database, the logging level and the two addresses the service listens on:

```yaml
log:
  level: info

db:
  url: sqlite:///fishermans.db

listeners:
  api_grpc_addr: localhost:9000
  api_http_addr: localhost:8000
```

`db.url` is any SQLAlchemy database URL and is required. `log.level` is a
standard logging level name and defaults to `info`. Both listener addresses
are required and are bound when the service starts.

## Command line

Create the database tables:

```
fishermans service migrate up
```

Drop them again:

```
fishermans service migrate down
```

Run the service:

```
fishermans service run all
```

Each command accepts `-c` / `--config` to point at a different configuration
file:

```
fishermans service run all -c /etc/fishermans/config.yaml
```

`service run` also accepts `-s` / `--sync`, which has no effect.

The service runs until it receives SIGINT or SIGTERM, then closes its
listeners and exits with status 0. On failure the command prints
`Error occured: ...` and exits with status 1.

## HTTP API

Every method is reached at `/rpc/<Method>`. With `POST`, `PATCH` or `DELETE`
the request is a JSON object in the body; with `GET` it is taken from the
query string, where all-digit values become integers. A successful call
answers `200` with the response as JSON. A failed call answers with a
matching HTTP status (400, 404, 409, 500, ...) and a body of the form
`{"code": <status code>, "message": "..."}`. Dates are read and written in ISO
8601; a trailing `Z` is accepted. Cross-origin requests are allowed from
`http://localhost:5173`.

| Method | Request | Response |
| --- | --- | --- |
| `SubmitClient` | `{"client": {"name", "surname", "contact", "photo"}}` | `{"client_id"}` |
| `UpdateClient` | `{"client": {"id", "name", "surname", "contact", "photo"}}` | `{}` |
| `DeleteClient` | `{"client_id"}` | `{}` |
| `GetClientById` | `{"client_id"}` | `{"client"}` |
| `GetAllClients` | `{}` | `{"clients"}` |
| `SubmitLocation` | `{"location": {"name", "description", "photo"}}` | `{"location_id"}` |
| `UpdateLocation` | `{"location": {"id", "name", "description", "photo"}}` | `{}` |
| `DeleteLocation` | `{"location_id"}` | `{}` |
| `GetLocationById` | `{"location_id"}` | `{"location"}` |
| `GetAllLocations` | `{}` | `{"locations"}` |
| `SubmitApplicationStatus` | `{"name"}` | `{"id"}` |
| `UpdateApplicationStatus` | `{"application_status": {"id", "name"}}` | `{}` |
| `DeleteApplicationStatus` | `{"id"}` | `{}` |
| `GetApplicationStatus` | `{"id"}` | `{"application_status"}` |
| `GetAllApplicationStatuses` | `{}` | `{"application_statuses"}` |
| `SubmitApplication` | `{"application": {"client_id", "fishing_date", "location_id", "status_id"}}` | `{"application_id"}` |
| `UpdateApplication` | `{"application": {"id", "client_id", "fishing_date", "location_id", "status_id"}}` | `{}` |
| `DeleteApplication` | `{"application_id"}` | `{}` |
| `GetApplicationById` | `{"application_id"}` | `{"application"}` |
| `GetAllApplications` | `{}` | `{"applications"}` |

A location's photo is optional; every other field shown is required.

## Using it as a library

- `fishermans.storage`: `create_schema(engine)` and `drop_schema(engine)` set
  up and tear down the tables on a SQLAlchemy engine. `MasterQ(engine)` gives
  per-table queries (`client_q()`, `location_q()`, `application_status_q()`,
  `application_q()`), each with `get`, `get_all`, `insert`, `update`,
  `delete` and `filter_by_id`, and runs serializable transactions through
  `transaction(fn, data)`.
- `fishermans.models`: the `Client`, `Location`, `ApplicationStatus` and
  `Application` dataclasses and the `to_*` functions that turn them into API
  messages.
- `fishermans.clients`, `fishermans.locations`, `fishermans.statuses`,
  `fishermans.applications`: the request handlers. Each takes a context,
  built with `fishermans.context.logger_provider` and
  `fishermans.context.db_provider`, and a request dict, and returns the
  response dict or raises `fishermans.errors.RpcError` with a `StatusCode`.
- `fishermans.server`: `Service.handle(method, request)` runs one method
  through the logging and recovery interceptors; `run_server(config,
  stop_event)` serves HTTP until the event is set.
- `fishermans.config`: `load_config(path)` reads the YAML file into a `Config`.
- `fishermans.cli`: `main(argv=None)` and `migrate(config, direction)`.

## What it does not do

- Nothing is served on `api_grpc_addr`. The address is bound while the
  service runs, but the API is offered over HTTP only.
- There are no API documentation pages or OpenAPI description.
- There are no versioned migrations: `migrate up` creates any missing tables
  and `migrate down` drops them all.