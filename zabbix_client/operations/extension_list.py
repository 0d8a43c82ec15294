"""
GetExtensionList operation

Lists installed TYPO3 extensions per scope ("system", "local") with key,
load state and version, for the monitoring client.

/ Lista las extensiones TYPO3 instaladas por alcance (system, local).
"""

import logging
from pathlib import Path
from typing import Callable, Optional

from zabbix_client.core.operations import IOperation
from zabbix_client.core.result import OperationResult
from zabbix_client.host import DirectoryLister, HostEnvironment, LoadCheck, PackageRegistry
from zabbix_client.host.filesystem import read_extension_version

logger = logging.getLogger("zabbix_client.operations.extension_list")

SCOPES = ("system", "local")

NO_LOCATIONS_MESSAGE = "No extension locations given"


def parse_scopes(value) -> list[str]:
    """Split a comma-separated scope string; blanks and empty tokens are dropped."""
    if not isinstance(value, str):
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def merge_extension_info(target: dict, source: dict) -> dict:
    """
    Merge one pass's listing into target, per extension key.

    Fields a later pass populates overwrite earlier ones; "scope" entries
    accumulate instead.
    """
    for ext_key, info in source.items():
        record = target.setdefault(ext_key, {})
        for field, value in info.items():
            if field == "scope":
                record.setdefault("scope", {}).update(value)
            else:
                record[field] = value
    return target


class GetExtensionList(IOperation):
    """
    An operation that returns the list of installed extensions.

    Collaborators are injected:
        registry: active packages of the host package manager
        load_check: whether an extension key is loaded
        lister: immediate subdirectories of a path
        environment: the installation's public path
    """

    def __init__(
        self,
        registry: PackageRegistry,
        load_check: LoadCheck,
        lister: DirectoryLister,
        environment: HostEnvironment,
        extension_type: str = "typo3-cms-extension",
        system_dir: str = "typo3/sysext",
        local_dir: str = "typo3conf/ext",
        metadata_file: str = "ext_emconf.php",
    ):
        self.registry = registry
        self.load_check = load_check
        self.lister = lister
        self.environment = environment
        self.extension_type = extension_type
        self.system_dir = system_dir
        self.local_dir = local_dir
        self.metadata_file = metadata_file

    def execute(self, parameter: Optional[dict] = None) -> OperationResult:
        """
        Args:
            parameter: {"scopes": "system,local"}, extension scopes as a
                comma-separated string.

        Returns:
            OperationResult with a mapping ext_key → {ext_key, installed,
            version, scope}, or a failure when no scope is given.
        """
        locations = parse_scopes((parameter or {}).get("scopes"))
        if not locations:
            return OperationResult(False, NO_LOCATIONS_MESSAGE)

        is_loaded = self._load_state()
        extension_list: dict = {}
        for scope in locations:
            if scope not in SCOPES:
                logger.debug(f"Ignoring unknown extension scope '{scope}'")
                continue
            if scope == "local":
                merge_extension_info(extension_list, self.get_local_extension_list(scope, is_loaded))
            merge_extension_info(extension_list, self.get_extension_list_for_scope(scope, is_loaded))

        return OperationResult(True, extension_list)

    def _load_state(self) -> Callable[[str], bool]:
        """Load-state lookup for one call: a single key-set read when the check offers one."""
        loaded_keys = getattr(self.load_check, "loaded_keys", None)
        if loaded_keys is None:
            return self.load_check.is_loaded
        keys = loaded_keys()
        return lambda ext_key: ext_key in keys

    def get_local_extension_list(self, scope: str, is_loaded: Optional[Callable[[str], bool]] = None) -> dict:
        """
        Locally installed extensions, from the host package manager.

        Composer-installed extensions no longer live in typo3conf/ext/, so the
        directory scan alone would miss them.
        """
        is_loaded = is_loaded or self.load_check.is_loaded
        extension_info = {}
        for package in self.registry.get_active_packages():
            if package.package_type != self.extension_type:
                continue
            key = package.package_key
            extension_info[key] = {
                "ext_key": key,
                "installed": bool(is_loaded(key)),
                "version": package.version,
                "scope": {scope: package.version},
            }
        return extension_info

    def get_path_for_scope(self, scope: str) -> Path:
        public_path = self.environment.public_path
        if scope == "system":
            return public_path / self.system_dir
        return public_path / self.local_dir

    def get_extension_list_for_scope(self, scope: str, is_loaded: Optional[Callable[[str], bool]] = None) -> dict:
        """Extensions found as directories under the scope's path."""
        is_loaded = is_loaded or self.load_check.is_loaded
        path = self.get_path_for_scope(scope)
        extension_info = {}
        for ext_key in self.lister.list_dirs(path):
            info = {
                "ext_key": ext_key,
                "installed": bool(is_loaded(ext_key)),
            }
            version = read_extension_version(path / ext_key / self.metadata_file, ext_key)
            if version:
                info["version"] = version
                info["scope"] = {scope: version}
            extension_info[ext_key] = info
        return extension_info
