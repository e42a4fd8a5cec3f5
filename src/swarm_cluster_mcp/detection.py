"""Swarm manager detection and cluster metadata snapshots."""

from datetime import datetime, timezone
from typing import Optional

from . import commands
from .config import logger, ExecutionMode
from .driver import SwarmClusterDriver
from .executor import RemoteExecutor
from .models import ClusterSummary
from .parsers import dig, parse_json_object


def detect_swarm_manager(executor: RemoteExecutor, host: str) -> Optional[str]:
    """
    Return the swarm id if host is an active manager, else None.

    Workers report LocalNodeState "active" too, so ControlAvailable must also
    be set.
    """
    output = executor.execute([commands.swarm_info().render()], host, ExecutionMode.BEST_EFFORT)
    swarm = parse_json_object(output or "")
    if not swarm:
        logger.debug(f"No swarm info from {host}")
        return None

    if dig(swarm, "LocalNodeState") != "active":
        logger.info(f"{host} is not part of an active swarm")
        return None

    swarm_id = dig(swarm, "Cluster.ID")
    if not swarm_id:
        return None

    if not dig(swarm, "ControlAvailable", False):
        logger.info(f"{host} is a swarm worker, not a manager")
        return None

    return swarm_id


def summarize_cluster(driver: SwarmClusterDriver) -> ClusterSummary:
    """Snapshot counts, capacity and health for a cluster."""
    info = driver.get_cluster_info()
    health = driver.get_cluster_health()
    nodes = driver.get_nodes()
    services = driver.get_services()

    managers = sum(1 for node in nodes if node.is_manager)
    return ClusterSummary(
        cluster_id=driver.cluster_id,
        health=health.value,
        swarm_id=info.id,
        swarm_created=info.created,
        docker_version=nodes[0].engine_version if nodes else None,
        node_count=len(nodes),
        manager_count=managers,
        worker_count=len(nodes) - managers,
        service_count=len(services),
        total_cpu=sum(node.cpu_cores for node in nodes),
        total_memory_bytes=sum(node.memory_bytes for node in nodes),
        last_sync_at=datetime.now(timezone.utc).isoformat(),
    )
