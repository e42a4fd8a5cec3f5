"""
Swarm Cluster MCP Server

Structured, cached access to Docker Swarm clusters through an SSH-reachable
manager node.
"""

from .config import (
    config,
    DriverConfig,
    ClusterTarget,
    ExecutionMode,
    Availability,
    NodeRole,
    NodeStatus,
    ClusterHealth,
    TaskBucket,
    load_clusters,
    validate_cluster_id,
    validate_availability,
    validate_replicas,
)
from .errors import (
    DriverError,
    ValidationError,
    UnknownClusterError,
    RemoteCommandError,
)
from .executor import RemoteExecutor, SSHExecutor
from .cache import CacheStore, TTLCache, cache_key
from .results import OperationResult, Outcome
from .parsers import classify_task_status, parse_replica_string, parse_labels_string
from .driver import SwarmClusterDriver
from .detection import detect_swarm_manager, summarize_cluster

__version__ = "0.1.0"
__all__ = [
    # Config
    "config",
    "DriverConfig",
    "ClusterTarget",
    "ExecutionMode",
    "Availability",
    "NodeRole",
    "NodeStatus",
    "ClusterHealth",
    "TaskBucket",
    "load_clusters",
    "validate_cluster_id",
    "validate_availability",
    "validate_replicas",
    # Errors
    "DriverError",
    "ValidationError",
    "UnknownClusterError",
    "RemoteCommandError",
    # Collaborators
    "RemoteExecutor",
    "SSHExecutor",
    "CacheStore",
    "TTLCache",
    "cache_key",
    # Driver
    "OperationResult",
    "Outcome",
    "classify_task_status",
    "parse_replica_string",
    "parse_labels_string",
    "SwarmClusterDriver",
    "detect_swarm_manager",
    "summarize_cluster",
]
