"""
Tests for the MCP entry points: list_tools and call_tool.

call_tool is exercised directly; the stdio transport is not started.
"""

import json

import pytest

from zabbix_client import server
from zabbix_client.core.config import ZabbixClientConfig
from zabbix_client.core.operations import IOperation, OperationManager
from zabbix_client.core.result import OperationResult
from zabbix_client.operations.extension_list import GetExtensionList
from zabbix_client.host import HostEnvironment
from zabbix_client.host.filesystem import FilesystemDirectoryLister


class ExplodingOperation(IOperation):
    def execute(self, parameter=None):
        raise OSError("disk on fire")


@pytest.fixture
def configured(public_path, registry, load_check):
    """Server wired to the fake install, restored afterwards."""
    saved = (server.config, server.access, server.operations)

    config = ZabbixClientConfig()
    config.access.allowed_operations = ["GetExtensionList", "Explode"]
    manager = OperationManager()
    manager.register("GetExtensionList", GetExtensionList(
        registry=registry,
        load_check=load_check,
        lister=FilesystemDirectoryLister(),
        environment=HostEnvironment(str(public_path)),
    ))
    manager.register("Explode", ExplodingOperation())
    server.configure(config, manager)

    yield config

    server.config, server.access, server.operations = saved


async def _call(name, arguments):
    contents = await server.call_tool(name, arguments)
    assert len(contents) == 1
    assert contents[0].type == "text"
    return json.loads(contents[0].text)


class TestListTools:

    @pytest.mark.asyncio
    async def test_registered_operations_advertised(self, configured):
        tools = await server.list_tools()
        assert [t.name for t in tools] == ["Explode", "GetExtensionList"]

    @pytest.mark.asyncio
    async def test_extension_list_schema(self, configured):
        tools = {t.name: t for t in await server.list_tools()}
        schema = tools["GetExtensionList"].inputSchema
        assert schema["required"] == ["scopes"]
        assert "key" in schema["properties"]


class TestCallTool:

    @pytest.mark.asyncio
    async def test_extension_list(self, configured):
        payload = await _call("GetExtensionList", {"scopes": "system"})
        assert payload["success"] is True
        assert payload["data"]["core"]["scope"] == {"system": "12.4.10"}

    @pytest.mark.asyncio
    async def test_validation_failure_reported(self, configured):
        payload = await _call("GetExtensionList", {"scopes": ""})
        assert payload == {"success": False, "data": "No extension locations given"}

    @pytest.mark.asyncio
    async def test_missing_arguments(self, configured):
        payload = await _call("GetExtensionList", None)
        assert payload == {"success": False, "data": "No extension locations given"}

    @pytest.mark.asyncio
    async def test_operation_error_reported(self, configured):
        payload = await _call("Explode", {})
        assert payload == {"success": False, "data": "disk on fire"}

    @pytest.mark.asyncio
    async def test_disallowed_operation(self, configured):
        payload = await _call("GetDatabaseVersion", {})
        assert payload["success"] is False
        assert "not allowed" in payload["data"]

    @pytest.mark.asyncio
    async def test_unknown_but_allowed_operation(self, configured):
        configured.access.allowed_operations.append("Ghost")
        payload = await _call("Ghost", {})
        assert payload == {"success": False, "data": "Unknown operation: Ghost"}

    @pytest.mark.asyncio
    async def test_api_key_required(self, configured):
        configured.access.api_key = "s3cret"

        denied = await _call("GetExtensionList", {"scopes": "system"})
        assert denied["success"] is False

        allowed = await _call("GetExtensionList", {"scopes": "system", "key": "s3cret"})
        assert allowed["success"] is True

    @pytest.mark.asyncio
    async def test_key_not_passed_to_operation(self, configured):
        seen = {}

        class Recorder(IOperation):
            def execute(self, parameter=None):
                seen.update(parameter)
                return OperationResult(True, None)

        server.operations.register("Record", Recorder())
        configured.access.allowed_operations.append("Record")
        configured.access.api_key = "s3cret"

        await _call("Record", {"key": "s3cret", "x": 1})
        assert seen == {"x": 1}


class TestAccessStatus:

    @pytest.mark.asyncio
    async def test_not_advertised_unless_allowed(self, configured):
        names = [t.name for t in await server.list_tools()]
        assert server.ACCESS_STATUS_TOOL not in names

    @pytest.mark.asyncio
    async def test_advertised_when_allowed(self, configured):
        configured.access.allowed_operations.append(server.ACCESS_STATUS_TOOL)
        names = [t.name for t in await server.list_tools()]
        assert names[-1] == "GetAccessStatus"

    @pytest.mark.asyncio
    async def test_blocked_by_default(self, configured):
        payload = await _call("GetAccessStatus", {})
        assert payload["success"] is False
        assert "not allowed" in payload["data"]

    @pytest.mark.asyncio
    async def test_status_and_recent_requests(self, configured):
        configured.access.allowed_operations.append("GetAccessStatus")
        configured.access.api_key = "s3cret"

        await _call("GetExtensionList", {"scopes": "system", "key": "s3cret"})
        await _call("GetExtensionList", {"scopes": "system", "key": "wrong"})
        payload = await _call("GetAccessStatus", {"key": "s3cret", "last_n": 5})

        assert payload["success"] is True
        status = payload["data"]["status"]
        assert status["api_key_required"] is True
        assert status["total_requests_logged"] == 3

        recent = payload["data"]["recent_requests"]
        assert [r["result"] for r in recent] == ["success", "denied", "success"]
        assert recent[-1]["operation"] == "GetAccessStatus"
        assert all("key" not in r["params"] for r in recent)

    @pytest.mark.asyncio
    async def test_needs_api_key(self, configured):
        configured.access.allowed_operations.append("GetAccessStatus")
        configured.access.api_key = "s3cret"
        payload = await _call("GetAccessStatus", {})
        assert payload["success"] is False
        assert "API key" in payload["data"]

    @pytest.mark.asyncio
    async def test_last_n_limits_requests(self, configured):
        configured.access.allowed_operations.append("GetAccessStatus")
        for _ in range(4):
            await _call("GetExtensionList", {"scopes": "system"})
        payload = await _call("GetAccessStatus", {"last_n": 2})
        assert len(payload["data"]["recent_requests"]) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("last_n", [-1, "10", True])
    async def test_invalid_last_n(self, configured, last_n):
        configured.access.allowed_operations.append("GetAccessStatus")
        payload = await _call("GetAccessStatus", {"last_n": last_n})
        assert payload == {"success": False, "data": "last_n must be a non-negative integer"}
