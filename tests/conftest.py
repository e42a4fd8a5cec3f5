"""Pytest configuration and fixtures for swarm-cluster-mcp tests."""

import json
import os
import pytest
from unittest.mock import patch, MagicMock

# Set test environment variables before importing modules
os.environ.setdefault("SWARM_SSH_USER", "testuser")
os.environ.setdefault("SWARM_CMD_TIMEOUT", "10")
os.environ.setdefault("SWARM_CACHE_TTL", "30")


def lines(*objects):
    """Render objects as docker's newline-delimited JSON output."""
    return "\n".join(json.dumps(o) for o in objects) + "\n"


NODE_LS = lines(
    {"ID": "n1", "Hostname": "mgr-1", "Status": "Ready", "Availability": "Active",
     "ManagerStatus": "Leader", "EngineVersion": "24.0.7"},
    {"ID": "n2", "Hostname": "wrk-1", "Status": "Ready", "Availability": "Active",
     "ManagerStatus": "", "EngineVersion": "24.0.7"},
    {"ID": "n3", "Hostname": "wrk-2", "Status": "Down", "Availability": "Drain",
     "ManagerStatus": "", "EngineVersion": "24.0.5"},
)


def node_inspect_doc(node_id, hostname, manager=False, leader=False):
    doc = {
        "ID": node_id,
        "Spec": {"Labels": {"zone": "a"}, "Availability": "active", "Role": "manager" if manager else "worker"},
        "Description": {
            "Hostname": hostname,
            "Platform": {"Architecture": "x86_64", "OS": "linux"},
            "Resources": {"NanoCPUs": 4000000000, "MemoryBytes": 8589934592},
            "Engine": {"EngineVersion": "24.0.7"},
        },
        "Status": {"State": "ready", "Addr": f"10.1.0.{node_id[-1]}"},
    }
    if manager:
        doc["ManagerStatus"] = {"Leader": leader, "Reachability": "reachable", "Addr": "10.1.0.1:2377"}
    return doc


NODE_INSPECT = lines(
    node_inspect_doc("n1", "mgr-1", manager=True, leader=True),
    node_inspect_doc("n2", "wrk-1"),
    node_inspect_doc("n3", "wrk-2"),
)


class FakeExecutor:
    """
    RemoteExecutor double.

    Responses are keyed by command prefix; the longest matching prefix wins.
    Commands whose prefix is in ``failures`` raise in must-succeed mode.
    """

    def __init__(self, responses=None, failures=None):
        self.responses = dict(responses or {})
        self.failures = dict(failures or {})
        self.calls = []

    def execute(self, commands, target, mode=None, stdin=None):
        from swarm_cluster_mcp.config import ExecutionMode
        from swarm_cluster_mcp.errors import RemoteCommandError

        command = " && ".join(commands)
        self.calls.append({"command": command, "target": target, "mode": mode, "stdin": stdin})

        for prefix, message in self.failures.items():
            if command.startswith(prefix):
                if mode is ExecutionMode.MUST_SUCCEED:
                    raise RemoteCommandError(message, command=command, returncode=1)
                return ""

        matches = [p for p in self.responses if command.startswith(p)]
        if not matches:
            return ""
        return self.responses[max(matches, key=len)]

    def commands(self):
        return [call["command"] for call in self.calls]

    def writes(self):
        from swarm_cluster_mcp.config import ExecutionMode
        return [c["command"] for c in self.calls if c["mode"] is ExecutionMode.MUST_SUCCEED]


class FakeClock:
    def __init__(self, now=1700000000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def fake_executor():
    return FakeExecutor({
        "docker node ls": NODE_LS,
        "docker node inspect": NODE_INSPECT,
    })


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cluster():
    from swarm_cluster_mcp.config import ClusterTarget
    return ClusterTarget(cluster_id="prod", manager_host="mgr-1.internal", cache_ttl=30)


@pytest.fixture
def driver(cluster, fake_executor, clock):
    from swarm_cluster_mcp.cache import TTLCache
    from swarm_cluster_mcp.driver import SwarmClusterDriver
    return SwarmClusterDriver(cluster, executor=fake_executor, cache=TTLCache(clock=clock), clock=clock)


@pytest.fixture
def mock_subprocess():
    """Mock subprocess.run for testing without actual SSH calls."""
    with patch("subprocess.run") as mock_run:
        mock_result = MagicMock()
        mock_result.returncode = 0
        mock_result.stdout = "test output"
        mock_result.stderr = ""
        mock_run.return_value = mock_result
        yield mock_run
