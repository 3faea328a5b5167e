"""Stored records and their API representations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass
class Application:
    """A request to fish at a location on a given date."""

    id: int = 0
    fishing_date: datetime | None = None
    client_id: int = 0
    location_id: int = 0
    location: str | None = None
    status: str | None = None
    status_id: int = 0
    created_at: datetime | None = None


@dataclass
class ApplicationStatus:
    """A named state an application can be in."""

    id: int = 0
    name: str = ""


@dataclass
class Client:
    """A fisherman."""

    id: int = 0
    first_name: str = ""
    last_name: str = ""
    photo: str = ""
    contact: str = ""


@dataclass
class Location:
    """A fishing location."""

    id: int = 0
    name: str = ""
    description: str = ""
    photo: str = ""


def to_application(application: Application) -> dict[str, Any]:
    """The API message for an application."""
    return {
        "id": application.id,
        "client_id": application.client_id,
        "fishing_date": application.fishing_date,
        "location": application.location,
        "status": application.status,
        "created_at": application.created_at,
    }


def to_application_status(status: ApplicationStatus) -> dict[str, Any]:
    """The API message for an application status."""
    return {"id": status.id, "name": status.name}


def to_client(client: Client) -> dict[str, Any]:
    """The API message for a client."""
    return {
        "id": client.id,
        "name": client.first_name,
        "surname": client.last_name,
        "photo": client.photo,
        "contact": client.contact,
    }


def to_location(location: Location) -> dict[str, Any]:
    """The API message for a location."""
    return {
        "id": location.id,
        "name": location.name,
        "description": location.description,
        "photo": location.photo,
    }