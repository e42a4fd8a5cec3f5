"""Tests for swarm_cluster_mcp.detection module."""

import json

from conftest import FakeExecutor, lines


def swarm_info(state="active", control=True, swarm_id="sw-1"):
    return json.dumps({
        "LocalNodeState": state,
        "ControlAvailable": control,
        "Nodes": 3,
        "Managers": 1,
        "Cluster": {"ID": swarm_id, "CreatedAt": "2024-01-01T00:00:00Z"},
    })


class TestDetectSwarmManager:
    """Tests for manager detection."""

    def test_active_manager(self):
        from swarm_cluster_mcp.detection import detect_swarm_manager
        executor = FakeExecutor({"docker info": swarm_info()})
        assert detect_swarm_manager(executor, "mgr-1") == "sw-1"
        assert executor.calls[0]["target"] == "mgr-1"

    def test_worker_is_not_manager(self):
        from swarm_cluster_mcp.detection import detect_swarm_manager
        executor = FakeExecutor({"docker info": swarm_info(control=False)})
        assert detect_swarm_manager(executor, "wrk-1") is None

    def test_inactive_swarm(self):
        from swarm_cluster_mcp.detection import detect_swarm_manager
        executor = FakeExecutor({"docker info": swarm_info(state="inactive")})
        assert detect_swarm_manager(executor, "mgr-1") is None

    def test_unreachable_host(self):
        from swarm_cluster_mcp.detection import detect_swarm_manager
        assert detect_swarm_manager(FakeExecutor(), "mgr-1") is None


class TestSummarizeCluster:
    """Tests for cluster metadata snapshots."""

    def test_summary(self, driver, fake_executor):
        from swarm_cluster_mcp.detection import summarize_cluster

        fake_executor.responses["docker info"] = swarm_info()
        fake_executor.responses["docker service ls"] = lines(
            {"ID": "s1", "Name": "web", "Replicas": "1/1"},
            {"ID": "s2", "Name": "db", "Replicas": "1/1"},
        )

        summary = summarize_cluster(driver)
        assert summary.cluster_id == "prod"
        assert summary.health == "degraded"
        assert summary.swarm_id == "sw-1"
        assert summary.node_count == 3
        assert summary.manager_count == 1
        assert summary.worker_count == 2
        assert summary.service_count == 2
        assert summary.total_cpu == 12
        assert summary.total_memory_bytes == 3 * 8589934592
        assert summary.docker_version == "24.0.7"
        assert summary.last_sync_at

    def test_summary_unreachable(self):
        from swarm_cluster_mcp.cache import TTLCache
        from swarm_cluster_mcp.config import ClusterTarget
        from swarm_cluster_mcp.detection import summarize_cluster
        from swarm_cluster_mcp.driver import SwarmClusterDriver

        driver = SwarmClusterDriver(ClusterTarget("lab", "10.0.4.2"), executor=FakeExecutor(), cache=TTLCache())
        summary = summarize_cluster(driver)
        assert summary.health == "unreachable"
        assert summary.node_count == 0
        assert summary.docker_version is None
