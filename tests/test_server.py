"""Tests for swarm_cluster_mcp.server module."""

import json
import pytest

from conftest import FakeExecutor, NODE_INSPECT, NODE_LS, lines


def get_fn(tool):
    """Extract the underlying function from a FastMCP tool."""
    if hasattr(tool, 'fn'):
        return tool.fn
    if hasattr(tool, '__wrapped__'):
        return tool.__wrapped__
    return tool


@pytest.fixture
def server_executor():
    return FakeExecutor({
        "docker node ls": NODE_LS,
        "docker node inspect": NODE_INSPECT,
        "docker service ls": lines({"ID": "s1", "Name": "web", "Replicas": "2/2"}),
    })


@pytest.fixture
def installed_server(server_executor):
    """Install a SwarmClusterServer with a fake executor as the global server."""
    import swarm_cluster_mcp.server as server_module
    from swarm_cluster_mcp.config import load_clusters

    server = server_module.SwarmClusterServer(
        clusters=load_clusters('{"prod": "mgr-1.internal"}'),
        executor=server_executor,
    )
    server_module._server = server
    yield server
    server_module._server = None


class TestSwarmClusterServer:
    """Tests for SwarmClusterServer class."""

    def test_lazy_cluster_registry(self, monkeypatch):
        from swarm_cluster_mcp.server import SwarmClusterServer

        monkeypatch.setenv("SWARM_CLUSTERS", '{"prod": "mgr-1"}')
        server = SwarmClusterServer(executor=FakeExecutor())
        assert server._clusters is None
        assert list(server.clusters) == ["prod"]

    def test_driver_reused_per_cluster(self, installed_server):
        assert installed_server.driver("prod") is installed_server.driver("prod")

    def test_unknown_cluster(self, installed_server):
        from swarm_cluster_mcp.errors import UnknownClusterError
        with pytest.raises(UnknownClusterError):
            installed_server.driver("staging")

    @pytest.mark.parametrize("action,expected", [
        ("drain", "docker node update --availability drain n2"),
        ("activate", "docker node update --availability active n2"),
        ("pause", "docker node update --availability pause n2"),
        ("promote", "docker node promote n2"),
    ])
    def test_node_actions(self, installed_server, server_executor, action, expected):
        assert installed_server.node_action("prod", "n2", action)
        assert server_executor.writes() == [expected]

    def test_label_actions(self, installed_server, server_executor):
        installed_server.node_action("prod", "n2", "add-label", "zone", "b")
        installed_server.node_action("prod", "n2", "remove-label", "zone")
        assert server_executor.writes() == [
            "docker node update --label-add zone=b n2",
            "docker node update --label-rm zone n2",
        ]

    def test_label_action_requires_key(self, installed_server):
        from swarm_cluster_mcp.errors import ValidationError
        with pytest.raises(ValidationError):
            installed_server.node_action("prod", "n2", "add-label")

    def test_unknown_action(self, installed_server):
        from swarm_cluster_mcp.errors import ValidationError
        with pytest.raises(ValidationError):
            installed_server.node_action("prod", "n2", "reboot")

    def test_scale_bounds(self, installed_server, server_executor):
        from swarm_cluster_mcp.errors import ValidationError
        with pytest.raises(ValidationError):
            installed_server.scale_service("prod", "web", 101)
        with pytest.raises(ValidationError):
            installed_server.scale_service("prod", "web", -1)
        assert server_executor.writes() == []

        assert installed_server.scale_service("prod", "web", 100)


class TestMCPTools:
    """Tests for MCP tool functions."""

    @pytest.mark.asyncio
    async def test_list_clusters(self, installed_server):
        from swarm_cluster_mcp.server import list_clusters

        result = json.loads(await get_fn(list_clusters)())
        assert result == [{"cluster_id": "prod", "manager_host": "mgr-1.internal", "cache_ttl": 30}]

    @pytest.mark.asyncio
    async def test_get_cluster_nodes(self, installed_server):
        from swarm_cluster_mcp.server import get_cluster_nodes

        nodes = json.loads(await get_fn(get_cluster_nodes)(cluster_id="prod"))
        assert len(nodes) == 3
        assert nodes[0]["role"] == "manager"
        assert nodes[0]["is_leader"] is True

    @pytest.mark.asyncio
    async def test_cluster_health(self, installed_server):
        from swarm_cluster_mcp.server import cluster_health

        result = json.loads(await get_fn(cluster_health)(cluster_id="prod"))
        assert result == {"cluster_id": "prod", "health": "degraded"}

    @pytest.mark.asyncio
    async def test_unknown_cluster_tool(self, installed_server):
        from swarm_cluster_mcp.server import get_cluster_services

        result = json.loads(await get_fn(get_cluster_services)(cluster_id="staging"))
        assert result["success"] is False
        assert "Unknown cluster" in result["error"]

    @pytest.mark.asyncio
    async def test_demote_last_manager_tool(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import node_action

        result = json.loads(await get_fn(node_action)(cluster_id="prod", node_id="n1", action="demote"))
        assert result["success"] is False
        assert result["outcome"] == "rejected"
        assert server_executor.writes() == []

    @pytest.mark.asyncio
    async def test_write_failure_tool(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import rollback_service

        server_executor.failures["docker service rollback"] = "service web does not have a previous spec"
        result = json.loads(await get_fn(rollback_service)(cluster_id="prod", service_id="web"))
        assert result["success"] is False
        assert result["outcome"] == "failed"
        assert "previous spec" in result["error"]

    @pytest.mark.asyncio
    async def test_scale_service_tool(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import scale_service

        result = json.loads(await get_fn(scale_service)(cluster_id="prod", service_id="web", replicas=4))
        assert result == {"success": True, "outcome": "ok"}
        assert server_executor.writes() == ["docker service scale web=4"]

    @pytest.mark.asyncio
    async def test_create_secret_tool(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import create_secret

        server_executor.responses["docker secret create"] = "abc123\n"
        result = json.loads(await get_fn(create_secret)(cluster_id="prod", name="db", data="pw"))
        assert result["success"] is True
        assert result["result"] == "abc123"
        assert "pw" not in server_executor.writes()[0].split()

    @pytest.mark.asyncio
    async def test_get_node_not_found(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import get_node

        del server_executor.responses["docker node inspect"]
        result = json.loads(await get_fn(get_node)(cluster_id="prod", node_id="ghost"))
        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_sync_cluster_tool(self, installed_server):
        from swarm_cluster_mcp.server import sync_cluster

        summary = json.loads(await get_fn(sync_cluster)(cluster_id="prod"))
        assert summary["node_count"] == 3
        assert summary["service_count"] == 1

    @pytest.mark.asyncio
    async def test_events_tool(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import get_cluster_events

        events = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", since_seconds=60,
                                                            filter_type="node"))
        assert events == []
        assert "--filter type=node" in server_executor.commands()[-1]

    @pytest.mark.asyncio
    async def test_events_limit_keeps_newest(self, installed_server, server_executor):
        import time
        from swarm_cluster_mcp.server import get_cluster_events

        now = int(time.time())
        server_executor.responses["docker system events"] = lines(
            *({"Type": "service", "Action": f"a{i}", "time": now - 10 + i} for i in range(5))
        )
        events = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", since_seconds=60, limit=2))
        assert [e["action"] for e in events] == ["a3", "a4"]

    @pytest.mark.asyncio
    async def test_events_limit_capped(self, installed_server, server_executor):
        import time
        from swarm_cluster_mcp.server import get_cluster_events

        now = int(time.time())
        server_executor.responses["docker system events"] = lines(
            *({"Type": "node", "Action": "update", "time": now - 1} for _ in range(1005))
        )
        events = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", since_seconds=60, limit=5000))
        assert len(events) == 1000

        default = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", since_seconds=60))
        assert len(default) == 100

    @pytest.mark.asyncio
    async def test_events_invalid_limit(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import get_cluster_events

        result = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", limit=0))
        assert result["success"] is False
        assert server_executor.calls == []

    @pytest.mark.asyncio
    async def test_events_explicit_until(self, installed_server, server_executor):
        import time
        from swarm_cluster_mcp.server import get_cluster_events

        until = int(time.time()) - 100
        server_executor.responses["docker system events"] = lines(
            {"Type": "service", "Action": "inside", "time": until - 10},
            {"Type": "service", "Action": "after", "time": until + 10},
        )
        events = json.loads(await get_fn(get_cluster_events)(cluster_id="prod", since_seconds=50, until=until))

        assert [e["action"] for e in events] == ["inside"]
        command = server_executor.commands()[-1]
        assert f"--since {until - 50}" in command
        assert f"--until {until}" in command

    @pytest.mark.asyncio
    async def test_cluster_visualizer(self, installed_server, server_executor):
        from swarm_cluster_mcp.server import get_cluster_visualizer

        server_executor.responses["docker node ps"] = lines(
            {"ID": "t1", "Name": "web.1", "Node": "host-1", "CurrentState": "Running 2 minutes ago",
             "DesiredState": "Running"},
        )
        data = json.loads(await get_fn(get_cluster_visualizer)(cluster_id="prod"))

        assert [n["id"] for n in data["nodes"]] == ["n1", "n2", "n3"]
        assert data["tasks"][0]["id"] == "t1"
        assert data["tasks"][0]["bucket"] == "running"
        assert "$(docker node ls -q)" in server_executor.commands()[-1]

    @pytest.mark.asyncio
    async def test_cluster_visualizer_unknown_cluster(self, installed_server):
        from swarm_cluster_mcp.server import get_cluster_visualizer

        result = json.loads(await get_fn(get_cluster_visualizer)(cluster_id="staging"))
        assert result["success"] is False
