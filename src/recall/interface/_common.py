"""Shared helpers for CLI commands."""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, NoReturn

import typer

from recall.application.config import AppConfig, resolve_config
from recall.application.factory import build_service
from recall.application.service import SchedulingService
from recall.domain.errors import RecallError


def _resolve_with_overrides(**overrides: Any) -> AppConfig:
    """Resolve config with CLI overrides; None values fall through to lower layers."""
    return resolve_config({k: v for k, v in overrides.items() if v is not None})


@contextmanager
def open_service(config: AppConfig) -> Iterator[SchedulingService]:
    """Yield a service over the configured database and close it afterwards."""
    service, store = build_service(config)
    try:
        yield service
    finally:
        store.close()


def fail(error: RecallError) -> NoReturn:
    """Report an engine error and exit with status 1."""
    typer.secho(f"Error: {error}", fg="red", err=True)
    raise typer.Exit(1)
