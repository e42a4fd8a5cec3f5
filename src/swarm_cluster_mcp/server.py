#!/usr/bin/env python3
"""
Swarm Cluster MCP Server

Exposes Docker Swarm clusters, reached over SSH through a manager node, as
MCP tools.

Tools:
- list_clusters / detect_cluster / sync_cluster: registry and metadata
- cluster_info / cluster_health: swarm metadata and derived health
- get_cluster_nodes / get_node / get_node_resources / node_action / remove_node
- get_cluster_services / get_service / get_service_tasks / scale_service /
  rollback_service / force_update_service
- get_node_tasks / get_all_tasks / get_cluster_events / get_cluster_visualizer
- get_join_tokens
- list_secrets / create_secret / remove_secret
- list_configs / create_config / remove_config / list_stacks
"""

import json
import time
from typing import Any, Dict, List, Optional

from mcp.server.fastmcp import FastMCP

from .cache import TTLCache
from .config import (
    config,
    logger,
    ClusterTarget,
    load_clusters,
    validate_cluster_id,
)
from .detection import detect_swarm_manager, summarize_cluster
from .driver import SwarmClusterDriver
from .errors import DriverError, UnknownClusterError, ValidationError
from .executor import RemoteExecutor, SSHExecutor
from .results import OperationResult


# =============================================================================
# MCP Server Setup
# =============================================================================

mcp = FastMCP("swarm-cluster")

NODE_ACTIONS = ["drain", "activate", "pause", "promote", "demote", "add-label", "remove-label"]

EVENT_LIMIT_DEFAULT = 100
EVENT_LIMIT_MAX = 1000


# =============================================================================
# Server Class
# =============================================================================

class SwarmClusterServer:
    """Holds one driver per registered cluster, sharing a cache and executor."""

    def __init__(
        self,
        clusters: Optional[Dict[str, ClusterTarget]] = None,
        executor: Optional[RemoteExecutor] = None,
        cache: Optional[TTLCache] = None,
    ):
        self._clusters = clusters
        self.executor = executor or SSHExecutor()
        self.cache = cache or TTLCache()
        self._drivers: Dict[str, SwarmClusterDriver] = {}

    @property
    def clusters(self) -> Dict[str, ClusterTarget]:
        """Lazy load of the cluster registry."""
        if self._clusters is None:
            self._clusters = load_clusters()
        return self._clusters

    def driver(self, cluster_id: str) -> SwarmClusterDriver:
        valid, error = validate_cluster_id(cluster_id, self.clusters)
        if not valid:
            raise UnknownClusterError(error)

        if cluster_id not in self._drivers:
            self._drivers[cluster_id] = SwarmClusterDriver(
                self.clusters[cluster_id],
                executor=self.executor,
                cache=self.cache,
            )
        return self._drivers[cluster_id]

    def list_clusters(self) -> List[Dict[str, Any]]:
        return [
            {
                "cluster_id": target.cluster_id,
                "manager_host": target.manager_host,
                "cache_ttl": target.cache_ttl,
            }
            for target in self.clusters.values()
        ]

    def detect_cluster(self, cluster_id: str) -> Dict[str, Any]:
        target = self.driver(cluster_id).cluster
        swarm_id = detect_swarm_manager(self.executor, target.manager_host)
        return {
            "cluster_id": cluster_id,
            "manager_host": target.manager_host,
            "is_manager": swarm_id is not None,
            "swarm_id": swarm_id,
        }

    def sync_cluster(self, cluster_id: str) -> Dict[str, Any]:
        return summarize_cluster(self.driver(cluster_id)).to_dict()

    def node_action(
        self,
        cluster_id: str,
        node_id: str,
        action: str,
        label_key: Optional[str] = None,
        label_value: Optional[str] = None,
    ) -> OperationResult:
        driver = self.driver(cluster_id)

        if action == "drain":
            return driver.update_node_availability(node_id, "drain")
        if action == "activate":
            return driver.update_node_availability(node_id, "active")
        if action == "pause":
            return driver.update_node_availability(node_id, "pause")
        if action == "promote":
            return driver.promote_node(node_id)
        if action == "demote":
            return driver.demote_node(node_id)
        if action in ("add-label", "remove-label"):
            if not label_key:
                raise ValidationError(f"label_key is required for {action}")
            if action == "add-label":
                return driver.update_node_labels(node_id, add={label_key: label_value or ""})
            return driver.update_node_labels(node_id, remove=[label_key])

        raise ValidationError(f"Unknown node action: {action}. Available: {', '.join(NODE_ACTIONS)}")

    def scale_service(self, cluster_id: str, service_id: str, replicas: int) -> OperationResult:
        if isinstance(replicas, bool) or not isinstance(replicas, int):
            raise ValidationError(f"Invalid replica count: {replicas!r}")
        if not 0 <= replicas <= config.max_replicas:
            raise ValidationError(f"Replicas must be between 0 and {config.max_replicas}")
        return self.driver(cluster_id).scale_service(service_id, replicas)

    def get_events(
        self,
        cluster_id: str,
        since_seconds: Optional[int] = None,
        filter_type: Optional[str] = None,
        until: Optional[int] = None,
        limit: int = EVENT_LIMIT_DEFAULT,
    ) -> List[Dict[str, Any]]:
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            raise ValidationError(f"Invalid event limit: {limit!r} (must be at least 1)")
        limit = min(limit, EVENT_LIMIT_MAX)

        window = config.event_window if since_seconds is None else max(0, int(since_seconds))
        end = int(time.time()) if until is None else int(until)
        events = self.driver(cluster_id).get_events(end - window, filter_type, until)
        # newest last, as docker emits them
        return [event.to_dict() for event in events[-limit:]]

    def get_visualizer(self, cluster_id: str) -> Dict[str, Any]:
        driver = self.driver(cluster_id)
        return {
            "nodes": [node.to_dict() for node in driver.get_nodes()],
            "tasks": [task.to_dict() for task in driver.get_all_tasks()],
        }


# Global server instance
_server: Optional[SwarmClusterServer] = None


def get_server() -> SwarmClusterServer:
    """Get or create server instance."""
    global _server
    if _server is None:
        _server = SwarmClusterServer()
    return _server


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2)


def _error(e: Exception) -> str:
    return _dump({"success": False, "error": str(e)})


def _records(items: List[Any]) -> str:
    return _dump([item.to_dict() for item in items])


def _write_result(result: OperationResult) -> str:
    return _dump(result.to_dict())


# =============================================================================
# MCP Tools - cluster
# =============================================================================

@mcp.tool()
async def list_clusters() -> str:
    """
    List the swarm clusters this server is configured to reach.

    Clusters come from the SWARM_CLUSTERS environment variable.
    """
    try:
        return _dump(get_server().list_clusters())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def detect_cluster(cluster_id: str) -> str:
    """
    Check whether the cluster's manager host is an active swarm manager.

    Returns the swarm id when it is.
    """
    try:
        return _dump(get_server().detect_cluster(cluster_id))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def sync_cluster(cluster_id: str) -> str:
    """
    Compute a metadata snapshot: health, node/manager/worker/service counts,
    total CPU cores and memory, docker version and sync time.
    """
    try:
        return _dump(get_server().sync_cluster(cluster_id))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def cluster_info(cluster_id: str) -> str:
    """Get swarm id, creation time, raft version and node counts."""
    try:
        return _dump(get_server().driver(cluster_id).get_cluster_info().to_dict())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def cluster_health(cluster_id: str) -> str:
    """
    Get derived cluster health: healthy (all nodes ready), degraded (some
    nodes not ready) or unreachable (no nodes visible or all down).
    """
    try:
        health = get_server().driver(cluster_id).get_cluster_health()
        return _dump({"cluster_id": cluster_id, "health": health.value})
    except DriverError as e:
        return _error(e)


# =============================================================================
# MCP Tools - nodes
# =============================================================================

@mcp.tool()
async def get_cluster_nodes(cluster_id: str) -> str:
    """List nodes with hostname, role, status, availability, resources and labels."""
    try:
        return _records(get_server().driver(cluster_id).get_nodes())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_node(cluster_id: str, node_id: str) -> str:
    """Get detailed information for one node."""
    try:
        node = get_server().driver(cluster_id).get_node(node_id)
        if node is None:
            return _dump({"success": False, "error": f"Node not found: {node_id}"})
        return _dump(node.to_dict())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_node_resources(cluster_id: str, node_id: str) -> str:
    """
    Get a node's static capacity.

    Live CPU, memory and disk utilization are always null; only total
    memory is reported.
    """
    try:
        return _dump(get_server().driver(cluster_id).get_node_resources(node_id).to_dict())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def node_action(
    cluster_id: str,
    node_id: str,
    action: str,
    label_key: Optional[str] = None,
    label_value: Optional[str] = None
) -> str:
    """
    Perform an action on a node.

    Parameters:
    - action (required): drain, activate, pause, promote, demote, add-label, remove-label
    - label_key: required for add-label / remove-label
    - label_value: value for add-label

    Demoting the last manager is refused.
    """
    try:
        result = get_server().node_action(cluster_id, node_id, action, label_key, label_value)
        return _write_result(result)
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def remove_node(cluster_id: str, node_id: str, force: bool = False) -> str:
    """
    Remove a node from the swarm. Drain it first; use force=true for a
    down or unreachable node.
    """
    try:
        return _write_result(get_server().driver(cluster_id).remove_node(node_id, force))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


# =============================================================================
# MCP Tools - services & tasks
# =============================================================================

@mcp.tool()
async def get_cluster_services(cluster_id: str) -> str:
    """List services with image, mode, replicas and ports."""
    try:
        return _records(get_server().driver(cluster_id).get_services())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_service(cluster_id: str, service_id: str) -> str:
    """Get a service's detail, with running replicas counted from its tasks."""
    try:
        service = get_server().driver(cluster_id).get_service(service_id)
        if service is None:
            return _dump({"success": False, "error": f"Service not found: {service_id}"})
        return _dump(service.to_dict())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_service_tasks(cluster_id: str, service_id: str) -> str:
    """Get all tasks of a service with status and node assignment."""
    try:
        return _records(get_server().driver(cluster_id).get_service_tasks(service_id))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_node_tasks(cluster_id: str, node_id: str) -> str:
    """Get all tasks scheduled on a node."""
    try:
        return _records(get_server().driver(cluster_id).get_node_tasks(node_id))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_all_tasks(cluster_id: str) -> str:
    """Get every task across all nodes of the cluster."""
    try:
        return _records(get_server().driver(cluster_id).get_all_tasks())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def scale_service(cluster_id: str, service_id: str, replicas: int) -> str:
    """
    Scale a replicated service.

    Parameters:
    - replicas (required): desired replica count, 0 to SWARM_MAX_REPLICAS (default 100)
    """
    try:
        return _write_result(get_server().scale_service(cluster_id, service_id, replicas))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def rollback_service(cluster_id: str, service_id: str) -> str:
    """Roll a service back to its previous spec."""
    try:
        return _write_result(get_server().driver(cluster_id).rollback_service(service_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def force_update_service(cluster_id: str, service_id: str) -> str:
    """Force a rolling restart of a service's tasks, redistributing them."""
    try:
        return _write_result(get_server().driver(cluster_id).force_update_service(service_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


# =============================================================================
# MCP Tools - events & tokens
# =============================================================================

@mcp.tool()
async def get_cluster_events(
    cluster_id: str,
    since_seconds: Optional[int] = None,
    filter_type: Optional[str] = None,
    until: Optional[int] = None,
    limit: int = EVENT_LIMIT_DEFAULT
) -> str:
    """
    Get docker events from the since_seconds before until (default
    SWARM_EVENT_WINDOW before now).

    Parameters:
    - filter_type (optional): node, service, secret, config, container, network...
    - until (optional): unix timestamp ending the window, capped at now
    - limit: max events returned, newest kept (default 100, max 1000)
    """
    try:
        return _dump(get_server().get_events(cluster_id, since_seconds, filter_type, until, limit))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_cluster_visualizer(cluster_id: str) -> str:
    """Get all nodes and all tasks of the cluster for a topology view."""
    try:
        return _dump(get_server().get_visualizer(cluster_id))
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def get_join_tokens(cluster_id: str) -> str:
    """Get the worker and manager join tokens."""
    try:
        return _dump(get_server().driver(cluster_id).get_join_tokens().to_dict())
    except DriverError as e:
        return _error(e)


# =============================================================================
# MCP Tools - secrets, configs, stacks
# =============================================================================

@mcp.tool()
async def list_secrets(cluster_id: str) -> str:
    """List secrets (metadata only; secret values cannot be read back)."""
    try:
        return _records(get_server().driver(cluster_id).get_secrets())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def create_secret(
    cluster_id: str,
    name: str,
    data: str,
    labels: Optional[Dict[str, str]] = None
) -> str:
    """
    Create a secret. The value is sent over stdin and never appears on the
    remote command line.
    """
    try:
        secret_id = get_server().driver(cluster_id).create_secret(name, data, labels)
        return _write_result(OperationResult.ok(secret_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def remove_secret(cluster_id: str, secret_id: str) -> str:
    """Remove a secret. Fails if a service still uses it."""
    try:
        return _write_result(get_server().driver(cluster_id).remove_secret(secret_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def list_configs(cluster_id: str) -> str:
    """List configs with their decoded content."""
    try:
        return _records(get_server().driver(cluster_id).get_configs())
    except DriverError as e:
        return _error(e)


@mcp.tool()
async def create_config(
    cluster_id: str,
    name: str,
    data: str,
    labels: Optional[Dict[str, str]] = None
) -> str:
    """Create a config. The content is sent over stdin."""
    try:
        config_id = get_server().driver(cluster_id).create_config(name, data, labels)
        return _write_result(OperationResult.ok(config_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def remove_config(cluster_id: str, config_id: str) -> str:
    """Remove a config. Fails if a service still uses it."""
    try:
        return _write_result(get_server().driver(cluster_id).remove_config(config_id))
    except DriverError as e:
        return _write_result(OperationResult.failed(e))


@mcp.tool()
async def list_stacks(cluster_id: str) -> str:
    """List deployed stacks with their service counts."""
    try:
        return _records(get_server().driver(cluster_id).get_stacks())
    except DriverError as e:
        return _error(e)


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Run the MCP server."""
    logger.info("Starting Swarm Cluster MCP Server")
    mcp.run()


if __name__ == "__main__":
    main()
