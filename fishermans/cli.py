"""Command line entry point."""

from __future__ import annotations

import argparse
import enum
import signal
import sys
import threading

from fishermans.config import load_config
from fishermans.errors import ServiceStopped
from fishermans.server import run_server
from fishermans.storage import create_schema, drop_schema

_DEFAULT_CONFIG = "config.yaml"


class MigrationDirection(enum.Enum):
    """Which way to migrate the database."""

    UP = "up"
    DOWN = "down"


def migrate(config, direction):
    """Create or drop the service's tables."""
    engine = config.db()
    direction = MigrationDirection(direction)
    try:
        if direction is MigrationDirection.UP:
            create_schema(engine)
        else:
            drop_schema(engine)
    except Exception as exc:
        raise RuntimeError(f"failed to apply migrations: {exc}") from exc
    config.log().info("migrations applied: direction=%s", direction.value)


def _config_from_args(args: argparse.Namespace):
    try:
        return load_config(args.config)
    except Exception as exc:
        raise RuntimeError(f"failed to get config from flags: {exc}") from exc


def _run_migrate(direction: MigrationDirection):
    def run(args: argparse.Namespace) -> int:
        migrate(_config_from_args(args), direction)
        return 0

    return run


def _run_all(args: argparse.Namespace) -> int:
    cfg = _config_from_args(args)
    stop = threading.Event()
    previous = {}
    if threading.current_thread() is threading.main_thread():
        for sig in (signal.SIGTERM, signal.SIGINT):
            previous[sig] = signal.signal(sig, lambda *_: stop.set())
    try:
        run_server(cfg, stop)
    except ServiceStopped:
        cfg.log().info("service stopped")
        return 0
    except Exception as exc:
        raise RuntimeError(f"failed to start server: {exc}") from exc
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    config_flag = argparse.ArgumentParser(add_help=False)
    config_flag.add_argument(
        "-c", "--config", default=argparse.SUPPRESS, help="Path to the config file"
    )

    root = argparse.ArgumentParser(
        prog="relayer-svc", description="Fishermen applications service"
    )
    commands = root.add_subparsers()

    service = commands.add_parser("service", help="Command for running service operations")
    service.add_argument("-c", "--config", default=_DEFAULT_CONFIG, help="Path to the config file")
    service_commands = service.add_subparsers()

    migrate_parser = service_commands.add_parser("migrate", parents=[config_flag], help="Command for database migrations")
    migrate_commands = migrate_parser.add_subparsers()
    up = migrate_commands.add_parser("up", parents=[config_flag], help="Migrate the database up")
    up.set_defaults(run=_run_migrate(MigrationDirection.UP))
    down = migrate_commands.add_parser("down", parents=[config_flag], help="Downgrades the database migrations")
    down.set_defaults(run=_run_migrate(MigrationDirection.DOWN))

    run = service_commands.add_parser("run", parents=[config_flag], help="Command for running service")
    run.add_argument("-s", "--sync", action="store_true", help="Sync enabled/disabled (disabled default)")
    run_commands = run.add_subparsers()
    run_all = run_commands.add_parser("all", parents=[config_flag], help="Run the service with all listeners")
    run_all.set_defaults(run=_run_all)

    return root


def main(argv=None):
    """Parse arguments and run the chosen command; return the exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "run"):
        parser.print_help()
        return 0
    try:
        return args.run(args)
    except Exception as exc:
        print(f"Error occured: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())