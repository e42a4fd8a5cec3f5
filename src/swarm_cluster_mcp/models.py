"""Typed records produced by the swarm cluster driver."""

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional, Union

from .config import NodeRole, TaskBucket


class Record:
    """Mixin giving dataclass records a JSON-friendly dict form."""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass
class ClusterInfo(Record):
    id: Optional[str] = None
    created: Optional[str] = None
    version: Optional[int] = None
    nodes: int = 0
    managers: int = 0
    workers: int = 0


@dataclass
class Node(Record):
    """A swarm node as seen from the manager."""
    id: str
    hostname: str = ""
    role: str = NodeRole.WORKER.value
    status: str = "unknown"
    availability: str = "active"
    ip: str = ""
    engine_version: str = ""
    cpu_cores: int = 0
    memory_bytes: int = 0
    labels: Dict[str, str] = field(default_factory=dict)
    is_leader: bool = False
    manager_reachability: Optional[str] = None
    platform_os: str = "linux"
    platform_arch: str = "amd64"

    @property
    def is_manager(self) -> bool:
        return self.role == NodeRole.MANAGER.value


@dataclass
class NodeResources(Record):
    """Static capacity of a node. Live utilization is never populated."""
    cpu_percent: Optional[float] = None
    memory_percent: Optional[float] = None
    memory_used: int = 0
    memory_total: int = 0
    disk_percent: Optional[float] = None


@dataclass
class PortMapping(Record):
    protocol: str = "tcp"
    target: int = 0
    published: int = 0
    mode: str = "ingress"


@dataclass
class Service(Record):
    """
    A swarm service.

    ``ports`` is the raw CLI string in the list view and a list of
    PortMapping in the detail view.
    """
    id: str
    name: str = ""
    image: str = ""
    mode: str = "replicated"
    replicas_running: int = 0
    replicas_desired: int = 0
    ports: Union[str, List[PortMapping]] = ""
    labels: Dict[str, str] = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class Task(Record):
    """A scheduled unit of a service bound to one node."""
    id: str
    name: str = ""
    node_id: str = ""
    service_id: str = ""
    status: str = ""
    bucket: TaskBucket = TaskBucket.UNKNOWN
    desired_state: str = ""
    error: Optional[str] = None
    image: str = ""
    ports: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["bucket"] = self.bucket.value
        return data


@dataclass
class Event(Record):
    type: str = ""
    action: str = ""
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    scope: Optional[str] = None
    time: int = 0


@dataclass
class JoinTokens(Record):
    worker: str = ""
    manager: str = ""


@dataclass
class Secret(Record):
    """Swarm secret metadata. The secret value is write-only."""
    id: str
    name: str = ""
    created_at: str = ""
    updated_at: str = ""
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class Config(Record):
    id: str
    name: str = ""
    data: str = ""
    created_at: str = ""
    labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class Stack(Record):
    name: str
    services: int = 0
    orchestrator: str = "swarm"


@dataclass
class ClusterSummary(Record):
    """Point-in-time metadata snapshot of a cluster."""
    cluster_id: str
    health: str = "unreachable"
    swarm_id: Optional[str] = None
    swarm_created: Optional[str] = None
    docker_version: Optional[str] = None
    node_count: int = 0
    manager_count: int = 0
    worker_count: int = 0
    service_count: int = 0
    total_cpu: int = 0
    total_memory_bytes: int = 0
    last_sync_at: str = ""
