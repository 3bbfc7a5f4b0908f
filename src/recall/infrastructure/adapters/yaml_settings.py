"""
Settings providers.

YamlSettingsProvider reads a document mapping project ids to settings:

    default:
      NEW_CARDS_PER_DAY: 15
    spanish-verbs:
      LEARNING_STEPS: [1, 10, 60]
      NEW_CARD_ORDER: fifo

Projects without an entry use ``default`` (itself optional). Each project's
settings are ``default`` overlaid with the project's own keys. Every entry is
validated when the file is loaded, so a bad file fails before any card is
scheduled.
"""

import logging
from pathlib import Path
from typing import Any

import yaml
import yaml.error

from recall.domain.errors import InvalidSettings
from recall.domain.ports import SettingsProvider
from recall.domain.settings import SRSSettings

logger = logging.getLogger(__name__)

DEFAULT_KEY = "default"


class StaticSettingsProvider(SettingsProvider):
    """Same settings for every project, or a fixed per-project mapping."""

    def __init__(
        self,
        settings: SRSSettings | None = None,
        per_project: dict[str, SRSSettings] | None = None,
    ):
        self._default = settings or SRSSettings()
        self._per_project = dict(per_project or {})

    def get_settings(self, project_id: str) -> SRSSettings:
        return self._per_project.get(project_id, self._default)


class YamlSettingsProvider(StaticSettingsProvider):
    def __init__(self, path: Path):
        self.path = path
        default, per_project = load_settings_file(path)
        super().__init__(default, per_project)


def load_settings_file(path: Path) -> tuple[SRSSettings, dict[str, SRSSettings]]:
    """
    Parse and validate a settings file.

    Raises:
        InvalidSettings: Missing or unreadable file, bad YAML, wrong shape, or invalid values
            (the message names the offending project).
    """
    try:
        doc = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except OSError as e:
        raise InvalidSettings(f"Could not read settings file {path}: {e}") from e
    except yaml.error.YAMLError as e:
        raise InvalidSettings(f"Could not parse settings file {path}: {e}") from e

    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise InvalidSettings(
            f"Settings file {path} must map project ids to settings, got {type(doc).__name__}"
        )

    base: dict[str, Any] = _section(doc.get(DEFAULT_KEY), DEFAULT_KEY, path)
    default = _validate(base, DEFAULT_KEY, path)

    per_project: dict[str, SRSSettings] = {}
    for project_id, section in doc.items():
        if project_id == DEFAULT_KEY:
            continue
        merged = {**base, **_section(section, str(project_id), path)}
        per_project[str(project_id)] = _validate(merged, str(project_id), path)

    logger.debug(f"Loaded settings for {len(per_project)} project(s) from {path}")
    return default, per_project


def _section(value: Any, name: str, path: Path) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidSettings(f"Settings for {name!r} in {path} must be a mapping")
    return value


def _validate(values: dict[str, Any], name: str, path: Path) -> SRSSettings:
    try:
        return SRSSettings.from_mapping(values)
    except InvalidSettings as e:
        raise InvalidSettings(f"[{name}] in {path}: {e}", e.errors) from e
