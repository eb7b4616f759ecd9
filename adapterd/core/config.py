"""
Core configuration settings for adapterd.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

# Base paths
ADAPTERD_ROOT = Path(__file__).parent.parent
DATA_DIR = Path(os.getenv("XDG_DATA_HOME", Path.home() / ".local/share")) / "adapterd"
CONFIG_DIR = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "adapterd"

# Ensure directories exist
for directory in [DATA_DIR, CONFIG_DIR]:
    directory.mkdir(parents=True, exist_ok=True)

# Logging configuration
LOG_DIR = Path(os.getenv("ADAPTERD_LOG_DIR", DATA_DIR / "logs"))
LOG_DIR.mkdir(parents=True, exist_ok=True)

# Log types
LOG__GENERAL = "GENERAL"
LOG__DEBUG = "DEBUG"
LOG__DISPATCH = "DISPATCH"
LOG__HCI = "HCI"

# Attribute store root (one directory per local adapter address)
STORAGE_DIR = Path(os.getenv("ADAPTERD_STORAGE_DIR", "/var/lib/bluetooth"))

# Vendor (OUI) database candidates, first existing file wins
OUI_PATHS: List[Path] = [
    Path(p)
    for p in (
        os.getenv("ADAPTERD_OUI_PATH"),
        "/usr/share/misc/oui.txt",
        "/usr/share/hwdata/oui.txt",
        "/var/lib/misc/oui.txt",
    )
    if p
]

DEFAULT_CONFIG_FILE = CONFIG_DIR / "adapterd.yaml"

# Default adapter
DEFAULT_ADAPTER = "hci0"

# Seconds; not enforced by the daemon
DEFAULT_DISCOVERABLE_TIMEOUT = 180

# Fixed HCI command timeouts (milliseconds)
HCI_REQ_TIMEOUT = 100
HCI_READ_TIMEOUT = 1000
HCI_WRITE_TIMEOUT = 2000


class ConfigError(Exception):
    """Raised when the configuration file cannot be used."""


@dataclass
class DaemonSettings:
    """Runtime settings merged from defaults, the YAML file and the CLI."""

    adapters: List[str] = field(default_factory=lambda: [DEFAULT_ADAPTER])
    storage_dir: Path = STORAGE_DIR
    discoverable_timeout: int = DEFAULT_DISCOVERABLE_TIMEOUT
    bus: str = "system"
    debug: bool = False

    def adapter_ids(self) -> List[int]:
        """Return the numeric controller indices of :attr:`adapters`."""
        return [parse_adapter_id(a) for a in self.adapters]


def parse_adapter_id(adapter: Union[str, int]) -> int:
    """Translate ``hciN`` / ``N`` into the controller index ``N``."""
    if isinstance(adapter, int):
        return adapter
    text = str(adapter).strip()
    if text.startswith("hci"):
        text = text[3:]
    try:
        return int(text)
    except ValueError:
        raise ConfigError(f"Invalid adapter name: {adapter!r}") from None


_KNOWN_KEYS = {"adapters", "storage_dir", "discoverable_timeout", "bus", "debug"}


def load_settings(path: Optional[Union[str, Path]] = None) -> DaemonSettings:
    """Load :class:`DaemonSettings` from a YAML file.

    A missing default file yields the defaults; a missing explicit *path* or a
    malformed document raises :class:`ConfigError`.
    """
    from adapterd.core.log import get_logger

    logger = get_logger(__name__)
    settings = DaemonSettings()

    explicit = path is not None
    cfg_path = Path(path) if explicit else DEFAULT_CONFIG_FILE
    if not cfg_path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {cfg_path}")
        return settings

    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            data: Any = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed configuration file {cfg_path}: {e}") from e

    if data is None:
        return settings
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {cfg_path}")

    for key in sorted(set(data) - _KNOWN_KEYS):
        logger.warning(f"Ignoring unknown configuration key '{key}' in {cfg_path}")

    return _apply(settings, data)


def _apply(settings: DaemonSettings, data: Dict[str, Any]) -> DaemonSettings:
    if "adapters" in data:
        adapters = data["adapters"]
        if isinstance(adapters, (str, int)):
            adapters = [adapters]
        if not isinstance(adapters, list):
            raise ConfigError("'adapters' must be a list")
        for adapter in adapters:
            parse_adapter_id(adapter)
        settings.adapters = [str(a) for a in adapters]
    if "storage_dir" in data:
        settings.storage_dir = Path(data["storage_dir"])
    if "discoverable_timeout" in data:
        try:
            timeout = int(data["discoverable_timeout"])
        except (TypeError, ValueError):
            raise ConfigError("'discoverable_timeout' must be an integer") from None
        if timeout < 0:
            raise ConfigError("'discoverable_timeout' must not be negative")
        settings.discoverable_timeout = timeout
    if "bus" in data:
        if data["bus"] not in ("system", "session"):
            raise ConfigError("'bus' must be 'system' or 'session'")
        settings.bus = data["bus"]
    if "debug" in data:
        settings.debug = bool(data["debug"])
    return settings
