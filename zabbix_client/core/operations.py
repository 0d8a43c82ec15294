"""
zabbix_client Operation Manager

Explicit lookup table from operation name to handler instance.
Handlers are registered by name when the manager is built; nothing is
discovered implicitly.
"""

import logging
from typing import Optional

from zabbix_client.core.config import ZabbixClientConfig
from zabbix_client.core.result import OperationResult

logger = logging.getLogger("zabbix_client.operations")


class IOperation:
    """Base class for monitoring operations."""

    def execute(self, parameter: Optional[dict] = None) -> OperationResult:
        raise NotImplementedError


class OperationManager:
    """Routes an operation name to the handler registered for it."""

    def __init__(self):
        self._operations: dict[str, IOperation] = {}

    def register(self, name: str, operation: IOperation):
        if name in self._operations:
            logger.warning(f"Operation '{name}' registered twice, replacing handler")
        self._operations[name] = operation

    def has(self, name: str) -> bool:
        return name in self._operations

    def names(self) -> list[str]:
        return sorted(self._operations)

    def execute(self, name: str, parameter: Optional[dict] = None) -> OperationResult:
        """
        Run the operation registered under name.

        Unknown names produce a failure result. Exceptions raised by the
        handler propagate to the caller.
        """
        operation = self._operations.get(name)
        if operation is None:
            return OperationResult(False, f"Unknown operation: {name}")
        return operation.execute(parameter or {})


def build_operation_manager(config: ZabbixClientConfig) -> OperationManager:
    """Build the manager with every operation wired to the local TYPO3 host."""
    from zabbix_client.host import build_host
    from zabbix_client.operations.extension_list import GetExtensionList

    host = build_host(config.host)

    manager = OperationManager()
    manager.register("GetExtensionList", GetExtensionList(
        registry=host.registry,
        load_check=host.load_check,
        lister=host.lister,
        environment=host.environment,
        extension_type=config.host.extension_package_type,
        system_dir=config.host.system_extension_dir,
        local_dir=config.host.local_extension_dir,
        metadata_file=config.host.metadata_file,
    ))
    return manager
