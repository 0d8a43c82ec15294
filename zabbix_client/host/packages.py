"""
TYPO3 package registries

Reads which packages are active in a TYPO3 installation, without booting
TYPO3:

- ComposerPackageRegistry: vendor/composer/installed.json (composer mode)
- PackageStatesRegistry: typo3conf/PackageStates.php (classic mode)

Source files are read and parsed on every call; nothing is kept between calls.
"""

import json
import logging
from pathlib import Path
from typing import Any

from zabbix_client.host import PackageInfo
from zabbix_client.host.filesystem import read_extension_version
from zabbix_client.host.php_literal import PhpParseError, read_return_array

logger = logging.getLogger("zabbix_client.host.packages")

EXTENSION_TYPE = "typo3-cms-extension"
FRAMEWORK_TYPE = "typo3-cms-framework"


def _normalise_version(version: Any) -> str:
    if not isinstance(version, str):
        return ""
    version = version.strip()
    if len(version) > 1 and version[0] in "vV" and version[1].isdigit():
        return version[1:]
    return version


def _extension_key(package: dict) -> str:
    """Extension key from extra.typo3/cms.extension-key, else derived from the composer name."""
    extra = package.get("extra")
    if isinstance(extra, dict):
        typo3 = extra.get("typo3/cms")
        if isinstance(typo3, dict):
            key = typo3.get("extension-key")
            if isinstance(key, str) and key:
                return key

    name = package.get("name", "")
    if not isinstance(name, str):
        return ""
    return name.split("/")[-1].replace("-", "_")


class ComposerPackageRegistry:
    """
    Active packages from composer's installed.json.

    In composer mode every installed TYPO3 package is active.
    """

    def __init__(self, installed_file: Path):
        self.installed_file = Path(installed_file)

    def _load_packages(self) -> list[dict]:
        """TYPO3 packages (extension and framework type) from installed.json."""
        try:
            data = json.loads(self.installed_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {self.installed_file}: {e}")
            return []

        # composer 2: {"packages": [...]}, composer 1: [...]
        if isinstance(data, dict):
            data = data.get("packages", [])
        if not isinstance(data, list):
            logger.warning(f"Unexpected structure in {self.installed_file}")
            return []
        return [
            p for p in data
            if isinstance(p, dict) and p.get("type") in (EXTENSION_TYPE, FRAMEWORK_TYPE)
        ]

    def get_active_packages(self) -> list[PackageInfo]:
        packages = []
        for package in self._load_packages():
            key = _extension_key(package)
            if not key:
                continue
            packages.append(PackageInfo(
                package_key=key,
                package_type=package["type"],
                version=_normalise_version(package.get("version")),
            ))
        return packages

    def get_active_package_keys(self) -> set[str]:
        keys = {_extension_key(p) for p in self._load_packages()}
        keys.discard("")
        return keys


class PackageStatesRegistry:
    """
    Active packages from typo3conf/PackageStates.php (classic mode).

    Type and version come from the package's composer.json; the version
    falls back to ext_emconf.php.
    """

    def __init__(self, public_path: Path, metadata_file: str = "ext_emconf.php"):
        self.public_path = Path(public_path)
        self.metadata_file = metadata_file
        self.states_file = self.public_path / "typo3conf" / "PackageStates.php"

    def _load_states(self) -> dict[str, dict]:
        try:
            states = read_return_array(self.states_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.warning(f"No package states file at {self.states_file}")
            return {}
        except (PhpParseError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Failed to read {self.states_file}: {e}")
            return {}

        packages = states.get("packages")
        if not isinstance(packages, dict):
            return {}

        active = {}
        for key, entry in packages.items():
            if not isinstance(entry, dict):
                continue
            # PackageStates format 4 and older still carry a state per package
            if entry.get("state", "active") != "active":
                continue
            active[str(key)] = entry
        return active

    def _read_composer_manifest(self, package_dir: Path) -> dict:
        manifest = package_dir / "composer.json"
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as e:
            logger.debug(f"Ignoring unreadable {manifest}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get_active_packages(self) -> list[PackageInfo]:
        packages = []
        for key, entry in self._load_states().items():
            relative = entry.get("packagePath", "")
            package_dir = self.public_path / relative if isinstance(relative, str) else self.public_path
            manifest = self._read_composer_manifest(package_dir)

            package_type = manifest.get("type")
            if not isinstance(package_type, str) or not package_type:
                package_type = FRAMEWORK_TYPE if str(relative).startswith("typo3/sysext/") else EXTENSION_TYPE

            version = _normalise_version(manifest.get("version"))
            if not version:
                version = read_extension_version(package_dir / self.metadata_file, key) or ""

            packages.append(PackageInfo(
                package_key=key,
                package_type=package_type,
                version=version,
            ))
        return packages

    def get_active_package_keys(self) -> set[str]:
        return set(self._load_states())


class ActivePackageLoadCheck:
    """An extension is loaded when its key is among the registry's active packages."""

    def __init__(self, registry):
        self.registry = registry

    def loaded_keys(self) -> set[str]:
        """All loaded keys from one registry read."""
        keys_of = getattr(self.registry, "get_active_package_keys", None)
        if keys_of is not None:
            return set(keys_of())
        return {p.package_key for p in self.registry.get_active_packages()}

    def is_loaded(self, ext_key: str) -> bool:
        return ext_key in self.loaded_keys()
