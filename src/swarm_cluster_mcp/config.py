#!/usr/bin/env python3
"""
Configuration module for Swarm Cluster MCP Server.

Centralizes logging, environment variables, the cluster registry and the
enumerations shared by the driver and the tool server.

Clusters are declared through SWARM_CLUSTERS, a JSON object mapping a cluster
id to its manager host:

    SWARM_CLUSTERS='{"prod": "swarm-mgr-1.internal",
                     "lab": {"manager_host": "10.0.4.2", "cache_ttl_seconds": 10}}'
"""
import json
import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any

from .errors import ValidationError


# =============================================================================
# Logging Setup
# =============================================================================

LOG_LEVEL = os.getenv("SWARM_LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logger = logging.getLogger("swarm-cluster-mcp")


# =============================================================================
# Environment Configuration
# =============================================================================

def _optional_env(name: str) -> Optional[str]:
    value = os.getenv(name)
    return value or None


@dataclass(frozen=True)
class DriverConfig:
    """Centralized driver configuration from environment variables."""

    # SSH Configuration
    ssh_user: str = field(default_factory=lambda: os.getenv("SWARM_SSH_USER", "root"))
    ssh_port: int = field(default_factory=lambda: int(os.getenv("SWARM_SSH_PORT", "22")))
    ssh_connect_timeout: int = field(default_factory=lambda: int(os.getenv("SWARM_SSH_CONNECT_TIMEOUT", "5")))
    ssh_identity_file: Optional[str] = field(default_factory=lambda: _optional_env("SWARM_SSH_IDENTITY_FILE"))

    # Timeouts
    command_timeout: int = field(default_factory=lambda: int(os.getenv("SWARM_CMD_TIMEOUT", "60")))

    # Cache Settings
    cache_ttl: int = field(default_factory=lambda: int(os.getenv("SWARM_CACHE_TTL", "30")))

    # Tool defaults
    event_window: int = field(default_factory=lambda: int(os.getenv("SWARM_EVENT_WINDOW", "300")))
    max_replicas: int = field(default_factory=lambda: int(os.getenv("SWARM_MAX_REPLICAS", "100")))


# Global config instance
config = DriverConfig()


# =============================================================================
# Enumerations
# =============================================================================

class ExecutionMode(Enum):
    """How the executor treats a failing remote command."""
    BEST_EFFORT = "best_effort"
    MUST_SUCCEED = "must_succeed"


class Availability(Enum):
    """Scheduling eligibility of a swarm node."""
    ACTIVE = "active"
    PAUSE = "pause"
    DRAIN = "drain"


class NodeRole(Enum):
    MANAGER = "manager"
    WORKER = "worker"


class NodeStatus(Enum):
    READY = "ready"
    DOWN = "down"
    UNKNOWN = "unknown"


class ClusterHealth(Enum):
    """Derived cluster health signal."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNREACHABLE = "unreachable"


class TaskBucket(Enum):
    """Coarse classification of a task's free-text state."""
    RUNNING = "running"
    FAILED = "failed"
    PENDING = "pending"
    COMPLETE = "complete"
    UPDATING = "updating"
    UNKNOWN = "unknown"


# =============================================================================
# Cluster Registry
# =============================================================================

@dataclass(frozen=True)
class ClusterTarget:
    """A swarm cluster reachable through one manager host."""
    cluster_id: str
    manager_host: str
    cache_ttl: int = 30

    @classmethod
    def from_settings(cls, cluster_id: str, settings: Any) -> "ClusterTarget":
        """Build a target from a registry entry (host string or settings dict)."""
        if isinstance(settings, str):
            return cls(cluster_id=cluster_id, manager_host=settings, cache_ttl=config.cache_ttl)

        if not isinstance(settings, dict) or not settings.get("manager_host"):
            raise ValidationError(f"Cluster {cluster_id} has no manager_host")

        try:
            ttl = int(settings.get("cache_ttl_seconds", config.cache_ttl))
        except (TypeError, ValueError):
            raise ValidationError(f"Cluster {cluster_id} has an invalid cache_ttl_seconds")

        return cls(
            cluster_id=cluster_id,
            manager_host=str(settings["manager_host"]),
            cache_ttl=max(0, ttl),
        )


def load_clusters(raw: Optional[str] = None) -> Dict[str, ClusterTarget]:
    """Parse the cluster registry from SWARM_CLUSTERS (or the given JSON)."""
    if raw is None:
        raw = os.getenv("SWARM_CLUSTERS", "")
    if not raw.strip():
        return {}

    try:
        entries = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValidationError(f"SWARM_CLUSTERS is not valid JSON: {e}")

    if not isinstance(entries, dict):
        raise ValidationError("SWARM_CLUSTERS must be a JSON object")

    return {
        str(cluster_id): ClusterTarget.from_settings(str(cluster_id), settings)
        for cluster_id, settings in entries.items()
    }


# =============================================================================
# Validation Functions
# =============================================================================

def validate_cluster_id(cluster_id: str, clusters: Dict[str, ClusterTarget]) -> tuple[bool, Optional[str]]:
    """Validate that cluster_id is registered."""
    if cluster_id in clusters:
        return True, None

    available = ", ".join(sorted(clusters)) or "none"
    return False, f"Unknown cluster: {cluster_id}. Available: {available}"


def validate_availability(availability: str) -> Availability:
    """Coerce an availability string, rejecting anything outside the enum."""
    try:
        return Availability(availability)
    except ValueError:
        allowed = ", ".join(a.value for a in Availability)
        raise ValidationError(f"Invalid availability: {availability} (expected one of {allowed})")


def validate_replicas(replicas: Any) -> int:
    """Coerce a replica count to int and clamp it at zero."""
    if isinstance(replicas, bool):
        raise ValidationError(f"Invalid replica count: {replicas!r}")
    try:
        count = int(replicas)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid replica count: {replicas!r}")
    return max(0, count)


# =============================================================================
# Export All
# =============================================================================

__all__ = [
    # Configuration
    "config",
    "DriverConfig",
    "logger",
    # Enums
    "ExecutionMode",
    "Availability",
    "NodeRole",
    "NodeStatus",
    "ClusterHealth",
    "TaskBucket",
    # Registry
    "ClusterTarget",
    "load_clusters",
    # Validation
    "validate_cluster_id",
    "validate_availability",
    "validate_replicas",
]
