"""Service configuration read from a YAML file."""

from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url

_LISTENERS_KEY = "listeners"
_GRPC_KEY = "api_grpc_addr"
_HTTP_KEY = "api_http_addr"


def _listen(addr: Any) -> socket.socket:
    if not isinstance(addr, str):
        raise ValueError(f"unsupported conversion from {type(addr).__name__}")
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"failed to listen on {addr}: missing port")
    try:
        return socket.create_server((host.strip("[]"), int(port)))
    except (OSError, ValueError) as exc:
        raise ValueError(f"failed to listen on {addr}: {exc}") from exc


class Config:
    """Lazily built service dependencies described by a configuration mapping."""

    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values = dict(values)
        self._lock = threading.Lock()
        self._logger: logging.Logger | None = None
        self._engine: Engine | None = None
        self._listeners: dict[str, socket.socket] | None = None

    def _section(self, key: str) -> Mapping[str, Any]:
        section = self._values.get(key) or {}
        if not isinstance(section, Mapping):
            raise ValueError(f"config section {key!r} must be a mapping")
        return section

    def log(self):
        """The service logger, with the configured level."""
        with self._lock:
            if self._logger is None:
                level_name = str(self._section("log").get("level", "info")).upper()
                level = logging.getLevelName(level_name)
                if not isinstance(level, int):
                    raise ValueError(f"failed to load logger config: unknown level {level_name}")
                logger = logging.getLogger("fishermans")
                logger.setLevel(level)
                self._logger = logger
            return self._logger

    def db(self):
        """The database engine."""
        with self._lock:
            if self._engine is None:
                url = self._section("db").get("url")
                if not url:
                    raise ValueError("failed to load database config: url is required")
                connect_args = {}
                if make_url(url).get_backend_name() == "sqlite":
                    connect_args["check_same_thread"] = False
                self._engine = create_engine(url, connect_args=connect_args)
            return self._engine

    def _open_listeners(self) -> dict[str, socket.socket]:
        with self._lock:
            if self._listeners is None:
                if _LISTENERS_KEY not in self._values:
                    raise ValueError(f"failed to load listener config: {_LISTENERS_KEY} is required")
                section = self._section(_LISTENERS_KEY)
                missing = [key for key in (_GRPC_KEY, _HTTP_KEY) if key not in section]
                if missing:
                    raise ValueError(f"failed to load listener config: {', '.join(missing)} is required")
                opened = {_GRPC_KEY: _listen(section[_GRPC_KEY])}
                try:
                    opened[_HTTP_KEY] = _listen(section[_HTTP_KEY])
                except ValueError:
                    opened[_GRPC_KEY].close()
                    raise
                self._listeners = opened
            return self._listeners

    def grpc_listener(self):
        """The listening socket for the RPC API."""
        return self._open_listeners()[_GRPC_KEY]

    def http_listener(self):
        """The listening socket for the HTTP API."""
        return self._open_listeners()[_HTTP_KEY]


def load_config(path):
    """Read a YAML configuration file."""
    text = Path(path).read_text(encoding="utf-8")
    values = yaml.safe_load(text) or {}
    if not isinstance(values, Mapping):
        raise ValueError(f"config file {path} must hold a mapping")
    return Config(values)