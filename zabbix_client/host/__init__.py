"""
zabbix_client Host Access

What the operations need from the TYPO3 installation, behind small
interfaces so operations get them injected instead of looking them up:

- PackageRegistry: active packages with key, type and version
- LoadCheck: whether an extension key is loaded
- DirectoryLister: immediate subdirectories of a path
- HostEnvironment: the public (web root) path

build_host() wires the filesystem-backed implementations from config.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from zabbix_client.core.config import HostConfig

logger = logging.getLogger("zabbix_client.host")


@dataclass(frozen=True)
class PackageInfo:
    """Metadata of one active package, as the host package manager reports it."""
    package_key: str
    package_type: str
    version: str


class PackageRegistry(Protocol):
    def get_active_packages(self) -> list[PackageInfo]: ...


class LoadCheck(Protocol):
    def is_loaded(self, ext_key: str) -> bool: ...


class DirectoryLister(Protocol):
    def list_dirs(self, path: Path) -> list[str]: ...


class HostEnvironment:
    """Resolves the public path: config, then TYPO3_PATH_WEB, then cwd."""

    def __init__(self, public_path: Optional[str] = None):
        self._configured = public_path or ""

    @property
    def public_path(self) -> Path:
        if self._configured:
            return Path(self._configured)
        from_env = os.environ.get("TYPO3_PATH_WEB", "")
        if from_env:
            return Path(from_env)
        return Path.cwd()


@dataclass
class Host:
    """The collaborators of one TYPO3 installation."""
    registry: PackageRegistry
    load_check: LoadCheck
    lister: DirectoryLister
    environment: HostEnvironment


def find_composer_installed_file(public_path: Path) -> Optional[Path]:
    """Look for vendor/composer/installed.json beside or inside the public path."""
    for base in (public_path.parent, public_path):
        candidate = base / "vendor" / "composer" / "installed.json"
        if candidate.is_file():
            return candidate
    return None


def build_host(config: HostConfig) -> Host:
    """Build the host collaborators, choosing composer or classic mode."""
    from zabbix_client.host.filesystem import FilesystemDirectoryLister
    from zabbix_client.host.packages import (
        ActivePackageLoadCheck,
        ComposerPackageRegistry,
        PackageStatesRegistry,
    )

    environment = HostEnvironment(config.public_path)

    if config.composer_installed_file:
        installed_file = Path(config.composer_installed_file)
    else:
        installed_file = find_composer_installed_file(environment.public_path)

    if installed_file is not None:
        logger.info(f"Composer mode: reading packages from {installed_file}")
        registry = ComposerPackageRegistry(installed_file)
    else:
        logger.info(f"Classic mode: reading packages from {environment.public_path}")
        registry = PackageStatesRegistry(environment.public_path, metadata_file=config.metadata_file)

    return Host(
        registry=registry,
        load_check=ActivePackageLoadCheck(registry),
        lister=FilesystemDirectoryLister(),
        environment=environment,
    )
