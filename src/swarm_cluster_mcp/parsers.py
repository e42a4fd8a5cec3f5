"""
Parsers for Docker CLI output.

Docker emits one JSON object per line for ``--format '{{json .}}'``. Each line
is decoded on its own; blank or malformed lines are skipped. Missing fields
fall back to the defaults of the record types in ``models``.
"""

import base64
import binascii
import json
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .config import NodeRole, TaskBucket
from .models import (
    ClusterInfo,
    Config,
    Event,
    Node,
    PortMapping,
    Secret,
    Service,
    Stack,
    Task,
)


# Ordered: first match wins.
TASK_STATUS_PATTERNS: List[Tuple[TaskBucket, Tuple[str, ...]]] = [
    (TaskBucket.RUNNING, ("running",)),
    (TaskBucket.FAILED, ("failed", "rejected", "non-zero exit")),
    (TaskBucket.PENDING, ("pending", "preparing", "starting", "assigned", "accepted")),
    (TaskBucket.COMPLETE, ("complete", "shutdown")),
    (TaskBucket.UPDATING, ("updating",)),
]


def dig(data: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path out of nested dicts, returning default when absent."""
    current = data
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return default if current is None else current


def as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError):
            return default


def as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def as_labels(value: Any) -> Dict[str, str]:
    """Labels arrive as a dict from inspect and as a string from ls."""
    if isinstance(value, dict):
        return {str(k): as_str(v) for k, v in value.items()}
    if isinstance(value, str):
        return parse_labels_string(value)
    return {}


def iter_json_lines(output: str) -> Iterator[Dict[str, Any]]:
    """Yield each decodable JSON object in newline-delimited output."""
    for line in (output or "").splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict) and obj:
            yield obj


def parse_json_object(output: str) -> Dict[str, Any]:
    """Decode the first JSON object in output, or {}."""
    return next(iter_json_lines(output), {})


def parse_labels_string(labels: str) -> Dict[str, str]:
    """Parse ``key=value,key2=value2`` into a dict. Pairs without ``=`` are dropped."""
    if not labels or not labels.strip():
        return {}

    result = {}
    for pair in labels.split(","):
        key, sep, value = pair.partition("=")
        if sep:
            result[key.strip()] = value.strip()
    return result


def parse_replica_string(replicas: str) -> Tuple[int, int]:
    """
    Parse ``"running/desired"`` from ``docker service ls``.

    Strings without ``/`` yield (0, 0). Docker may append a suffix such as
    ``"2/2 (max 1 per node)"``; only the leading integers are used.
    """
    if not isinstance(replicas, str) or "/" not in replicas:
        return 0, 0

    running, _, desired = replicas.partition("/")
    desired = desired.strip().split(" ", 1)[0]
    return as_int(running.strip()), as_int(desired)


def classify_task_status(status: Any) -> TaskBucket:
    """Map a task's free-text state onto a TaskBucket. Never raises."""
    if not isinstance(status, str):
        return TaskBucket.UNKNOWN

    lowered = status.lower()
    for bucket, needles in TASK_STATUS_PATTERNS:
        if any(needle in lowered for needle in needles):
            return bucket
    return TaskBucket.UNKNOWN


def decode_config_data(raw: str) -> str:
    """Decode the base64 Spec.Data of a config; keep the raw value if it is not base64."""
    try:
        value = json.loads(raw) if raw and raw.strip() else None
    except json.JSONDecodeError:
        return ""
    if not isinstance(value, str):
        return ""

    try:
        decoded = base64.b64decode(value, validate=True)
        return decoded.decode("utf-8") or value
    except (binascii.Error, UnicodeDecodeError):
        return value


# =============================================================================
# Record builders
# =============================================================================

def parse_swarm_info(output: str) -> ClusterInfo:
    swarm = parse_json_object(output)
    nodes = as_int(dig(swarm, "Nodes", 0))
    managers = as_int(dig(swarm, "Managers", 0))
    return ClusterInfo(
        id=dig(swarm, "Cluster.ID"),
        created=dig(swarm, "Cluster.CreatedAt"),
        version=dig(swarm, "Cluster.Version.Index"),
        nodes=nodes,
        managers=managers,
        workers=nodes - managers,
    )


def parse_node_row(row: Dict[str, Any], inspect: Dict[str, Any]) -> Node:
    """Merge a ``docker node ls`` row with its ``docker node inspect`` document."""
    manager_status = as_str(dig(row, "ManagerStatus", "")).strip()
    return Node(
        id=as_str(dig(row, "ID")),
        hostname=as_str(dig(row, "Hostname")),
        role=(NodeRole.MANAGER if manager_status else NodeRole.WORKER).value,
        status=as_str(dig(row, "Status", "unknown")).lower(),
        availability=as_str(dig(row, "Availability", "active")).lower(),
        ip=as_str(dig(inspect, "Status.Addr", "")),
        engine_version=as_str(dig(row, "EngineVersion", "")),
        cpu_cores=int(as_int(dig(inspect, "Description.Resources.NanoCPUs", 0)) / 1e9),
        memory_bytes=as_int(dig(inspect, "Description.Resources.MemoryBytes", 0)),
        labels=as_labels(dig(inspect, "Spec.Labels", {})),
        is_leader=manager_status.lower() == "leader",
        manager_reachability=dig(inspect, "ManagerStatus.Reachability"),
        platform_os=as_str(dig(inspect, "Description.Platform.OS", "linux")),
        platform_arch=as_str(dig(inspect, "Description.Platform.Architecture", "amd64")),
    )


def parse_node_list(ls_output: str, inspect_output: str) -> List[Node]:
    inspects = {
        as_str(dig(doc, "ID")): doc
        for doc in iter_json_lines(inspect_output)
    }
    return [
        parse_node_row(row, inspects.get(as_str(dig(row, "ID")), {}))
        for row in iter_json_lines(ls_output)
        if dig(row, "ID")
    ]


def parse_node_inspect(inspect: Dict[str, Any]) -> Optional[Node]:
    """Build a Node from a single inspect document."""
    if not dig(inspect, "ID"):
        return None

    reachability = dig(inspect, "ManagerStatus.Reachability")
    is_manager = reachability is not None
    return Node(
        id=as_str(dig(inspect, "ID")),
        hostname=as_str(dig(inspect, "Description.Hostname")),
        role=(NodeRole.MANAGER if is_manager else NodeRole.WORKER).value,
        status=as_str(dig(inspect, "Status.State", "unknown")).lower(),
        availability=as_str(dig(inspect, "Spec.Availability", "active")).lower(),
        ip=as_str(dig(inspect, "Status.Addr", "")),
        engine_version=as_str(dig(inspect, "Description.Engine.EngineVersion", "")),
        cpu_cores=int(as_int(dig(inspect, "Description.Resources.NanoCPUs", 0)) / 1e9),
        memory_bytes=as_int(dig(inspect, "Description.Resources.MemoryBytes", 0)),
        labels=as_labels(dig(inspect, "Spec.Labels", {})),
        is_leader=is_manager and bool(dig(inspect, "ManagerStatus.Leader", False)),
        manager_reachability=reachability,
        platform_os=as_str(dig(inspect, "Description.Platform.OS", "linux")),
        platform_arch=as_str(dig(inspect, "Description.Platform.Architecture", "amd64")),
    )


def parse_service_row(row: Dict[str, Any]) -> Service:
    running, desired = parse_replica_string(as_str(dig(row, "Replicas", "0/0")))
    return Service(
        id=as_str(dig(row, "ID")),
        name=as_str(dig(row, "Name")),
        image=as_str(dig(row, "Image")),
        mode=as_str(dig(row, "Mode", "replicated")),
        replicas_running=running,
        replicas_desired=desired,
        ports=as_str(dig(row, "Ports", "")),
        labels=as_labels(dig(row, "Labels", "")),
    )


def parse_service_list(output: str) -> List[Service]:
    return [parse_service_row(row) for row in iter_json_lines(output) if dig(row, "ID")]


def parse_port(port: Dict[str, Any]) -> PortMapping:
    return PortMapping(
        protocol=as_str(dig(port, "Protocol", "tcp")),
        target=as_int(dig(port, "TargetPort", 0)),
        published=as_int(dig(port, "PublishedPort", 0)),
        mode=as_str(dig(port, "PublishMode", "ingress")),
    )


def parse_service_inspect(inspect: Dict[str, Any], tasks: List[Task]) -> Optional[Service]:
    """Build a detailed Service; running count comes from its tasks."""
    if not dig(inspect, "ID"):
        return None

    replicated = dig(inspect, "Spec.Mode.Replicated")
    mode = "replicated" if replicated is not None else "global"
    desired = as_int(dig(inspect, "Spec.Mode.Replicated.Replicas", 0)) if mode == "replicated" else 0
    running = sum(
        1 for task in tasks
        if task.bucket is TaskBucket.RUNNING and task.desired_state == "running"
    )
    ports = [
        parse_port(port)
        for port in dig(inspect, "Endpoint.Ports", []) or []
        if isinstance(port, dict)
    ]

    return Service(
        id=as_str(dig(inspect, "ID")),
        name=as_str(dig(inspect, "Spec.Name")),
        image=as_str(dig(inspect, "Spec.TaskTemplate.ContainerSpec.Image", "")),
        mode=mode,
        replicas_running=running,
        replicas_desired=desired,
        ports=ports,
        labels=as_labels(dig(inspect, "Spec.Labels", {})),
        created_at=as_str(dig(inspect, "CreatedAt", "")),
        updated_at=as_str(dig(inspect, "UpdatedAt", "")),
    )


def parse_task_row(row: Dict[str, Any]) -> Task:
    name = as_str(dig(row, "Name"))
    status = as_str(dig(row, "CurrentState", "")).lower()
    return Task(
        id=as_str(dig(row, "ID")),
        name=name,
        node_id=as_str(dig(row, "Node", "")),
        service_id=name.split(".", 1)[0] if name else "",
        status=status,
        bucket=classify_task_status(status),
        desired_state=as_str(dig(row, "DesiredState", "")).lower(),
        error=as_str(dig(row, "Error", "")) or None,
        image=as_str(dig(row, "Image", "")),
        ports=as_str(dig(row, "Ports", "")),
    )


def parse_tasks(output: str) -> List[Task]:
    return [parse_task_row(row) for row in iter_json_lines(output)]


def parse_event(row: Dict[str, Any]) -> Event:
    attributes = dig(row, "Actor.Attributes", {})
    if not isinstance(attributes, dict):
        attributes = {}
    return Event(
        type=as_str(dig(row, "Type", "")),
        action=as_str(dig(row, "Action", "")),
        actor_id=dig(row, "Actor.ID"),
        actor_name=attributes.get("name"),
        attributes={str(k): as_str(v) for k, v in attributes.items()},
        scope=dig(row, "scope"),
        time=as_int(dig(row, "time", 0)),
    )


def parse_events(output: str) -> List[Event]:
    return [parse_event(row) for row in iter_json_lines(output)]


def parse_secrets(output: str) -> List[Secret]:
    return [
        Secret(
            id=as_str(dig(row, "ID")),
            name=as_str(dig(row, "Name")),
            created_at=as_str(dig(row, "CreatedAt", "")),
            updated_at=as_str(dig(row, "UpdatedAt", "")),
            labels=as_labels(dig(row, "Labels", "")),
        )
        for row in iter_json_lines(output)
        if dig(row, "ID")
    ]


def parse_config_row(row: Dict[str, Any], data: str = "") -> Config:
    return Config(
        id=as_str(dig(row, "ID")),
        name=as_str(dig(row, "Name")),
        data=data,
        created_at=as_str(dig(row, "CreatedAt", "")),
        labels=as_labels(dig(row, "Labels", "")),
    )


def parse_stacks(output: str) -> List[Stack]:
    return [
        Stack(
            name=as_str(dig(row, "Name")),
            services=as_int(dig(row, "Services", 0)),
            orchestrator=as_str(dig(row, "Orchestrator", "swarm")),
        )
        for row in iter_json_lines(output)
        if dig(row, "Name")
    ]
