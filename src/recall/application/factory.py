"""
Service Factory
Centralizes wiring of adapters into a SchedulingService.
"""

import logging

from recall.application.config import AppConfig
from recall.application.quota_tracker import DailyQuotaTracker
from recall.application.service import SchedulingService
from recall.domain.ports import Clock, SettingsProvider
from recall.infrastructure.adapters.sqlite_store import SqliteStore
from recall.infrastructure.adapters.yaml_settings import StaticSettingsProvider, YamlSettingsProvider
from recall.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)


def get_settings_provider(config: AppConfig) -> SettingsProvider:
    """
    Returns the settings provider named by config.
    """
    if config.settings_file is not None:
        return YamlSettingsProvider(config.settings_file)
    return StaticSettingsProvider()


def build_service(
    config: AppConfig,
    store: SqliteStore | None = None,
    clock: Clock | None = None,
) -> tuple[SchedulingService, SqliteStore]:
    """
    Build a SchedulingService over the configured SQLite database.

    Returns the service together with the store so callers can close it.
    """
    settings_provider = get_settings_provider(config)
    store = store or SqliteStore(config.database_path)
    logger.debug(f"Using database {config.database_path} (timezone {config.timezone})")
    service = SchedulingService(
        catalog=store,
        states=store,
        quota=DailyQuotaTracker(store, timezone=config.timezone),
        settings_provider=settings_provider,
        clock=clock or SystemClock(),
        new_card_seed=config.new_card_seed,
    )
    return service, store
