"""
zabbix_client Configuration Manager

Handles loading, saving, and validating configuration.
Default: only GetExtensionList is exposed, no API key until one is set.
"""

import json
from dataclasses import dataclass, field, asdict, fields
from typing import Optional
from pathlib import Path


# Default config location: ~/.zabbix_client/config.json
CONFIG_DIR = Path.home() / ".zabbix_client"
CONFIG_FILE = CONFIG_DIR / "config.json"


def _check_types(section):
    """
    Raise TypeError unless every field of a config dataclass has the type of
    its default: str, int (not bool), or list of str. Nested sections pass.
    """
    defaults = type(section)()
    for f in fields(section):
        value = getattr(section, f.name)
        default = getattr(defaults, f.name)
        if isinstance(default, list):
            ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
        elif isinstance(default, int):
            ok = isinstance(value, int) and not isinstance(value, bool)
        elif isinstance(default, str):
            ok = isinstance(value, str)
        else:
            ok = isinstance(value, type(default))
        if not ok:
            raise TypeError(f"Config field '{f.name}' has wrong type {type(value).__name__}")
    return section


@dataclass
class AccessConfig:
    """Who may call which operation, and how often."""

    # Shared secret the monitoring client sends as the "key" argument.
    # Empty string: no key required.
    api_key: str = ""

    # Operations the client may call. "*" allows every registered operation.
    allowed_operations: list[str] = field(default_factory=lambda: [
        "GetExtensionList",
    ])

    # Max approved requests per minute (rate limiter)
    max_requests_per_minute: int = 60


@dataclass
class HostConfig:
    """Where the TYPO3 installation lives and how it is laid out."""

    # Web root of the installation. Empty: TYPO3_PATH_WEB, then cwd.
    public_path: str = ""

    # composer's vendor/composer/installed.json. Empty: auto-detect,
    # falling back to typo3conf/PackageStates.php (classic mode).
    composer_installed_file: str = ""

    # Package type that marks a package as a TYPO3 extension
    extension_package_type: str = "typo3-cms-extension"

    # Extension directories, relative to the public path
    system_extension_dir: str = "typo3/sysext"
    local_extension_dir: str = "typo3conf/ext"

    # Legacy per-extension metadata file
    metadata_file: str = "ext_emconf.php"


@dataclass
class ZabbixClientConfig:
    """Root configuration for zabbix_client."""

    access: AccessConfig = field(default_factory=AccessConfig)
    host: HostConfig = field(default_factory=HostConfig)

    # Logging level name: "DEBUG" | "INFO" | "WARNING" | "ERROR"
    log_level: str = "INFO"

    def save(self, path: Optional[Path] = None):
        """Save configuration to JSON file."""
        config_path = path or CONFIG_FILE
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w", encoding="utf-8") as f:
            json.dump(asdict(self), f, indent=2, ensure_ascii=False)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ZabbixClientConfig":
        """Load configuration from JSON file. Creates default if not found."""
        config_path = path or CONFIG_FILE

        if not config_path.exists():
            config = cls()
            config.save(config_path)
            return config

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            access = _check_types(AccessConfig(**data.get("access", {})))
            host = _check_types(HostConfig(**data.get("host", {})))

            return _check_types(cls(
                access=access,
                host=host,
                log_level=data.get("log_level", "INFO"),
            ))
        except (json.JSONDecodeError, TypeError, KeyError, AttributeError):
            # Corrupted or mistyped config — use defaults
            config = cls()
            config.save(config_path)
            return config


def ensure_dirs():
    """Create necessary directories."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)
