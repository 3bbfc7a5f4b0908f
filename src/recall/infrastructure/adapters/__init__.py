# Storage and settings adapters
from .memory_store import InMemoryStore
from .sqlite_store import SqliteStore
from .yaml_settings import StaticSettingsProvider, YamlSettingsProvider

__all__ = ["InMemoryStore", "SqliteStore", "StaticSettingsProvider", "YamlSettingsProvider"]
