#!/usr/bin/env python3
"""
Swarm Cluster Driver - structured access to a Docker Swarm through its manager.

Reads are cache-aside and never raise: a failed remote call degrades to an
empty or default value. Writes run in must-succeed mode, raise
RemoteCommandError on failure and invalidate exactly the cache keys they
affect. Demoting the last manager is refused with a rejected OperationResult.
"""

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, TypeVar

from . import commands
from .cache import CacheStore, TTLCache, cache_key
from .commands import DockerCommand
from .config import (
    logger as default_logger,
    ClusterHealth,
    ClusterTarget,
    ExecutionMode,
    NodeStatus,
    validate_availability,
    validate_replicas,
)
from .errors import ValidationError
from .executor import RemoteExecutor, SSHExecutor
from .models import (
    ClusterInfo,
    Config,
    Event,
    JoinTokens,
    Node,
    NodeResources,
    Secret,
    Service,
    Stack,
    Task,
)
from .parsers import (
    decode_config_data,
    iter_json_lines,
    parse_config_row,
    parse_events,
    parse_json_object,
    parse_node_inspect,
    parse_node_list,
    parse_secrets,
    parse_service_inspect,
    parse_service_list,
    parse_stacks,
    parse_swarm_info,
    parse_tasks,
)
from .results import OperationResult

T = TypeVar("T")

# Resource kinds used as cache key suffixes.
INFO = "info"
NODES = "nodes"
SERVICES = "services"
TASKS = "tasks"
SECRETS = "secrets"
CONFIGS = "configs"
STACKS = "stacks"

# A swarm with no services, secrets, configs or stacks prints nothing for them,
# so empty output there is not a sign the manager is unreachable.
MAY_BE_EMPTY = frozenset({SERVICES, TASKS, SECRETS, CONFIGS, STACKS})


class NothingLearned(Exception):
    """The remote host returned no output; the result must not be cached."""


class SwarmClusterDriver:
    """Read and control one swarm cluster through its manager host."""

    def __init__(
        self,
        cluster: ClusterTarget,
        executor: Optional[RemoteExecutor] = None,
        cache: Optional[CacheStore] = None,
        logger: Optional[logging.Logger] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.cluster = cluster
        self.executor = executor or SSHExecutor()
        self.cache = cache or TTLCache()
        self.logger = logger or default_logger
        self._clock = clock or time.time

    @property
    def cluster_id(self) -> str:
        return self.cluster.cluster_id

    # =========================================================================
    # Execution helpers
    # =========================================================================

    def _read(self, cmd: DockerCommand) -> str:
        return self.executor.execute(
            [cmd.render()],
            self.cluster.manager_host,
            ExecutionMode.BEST_EFFORT
        ) or ""

    def _read_required(self, cmd: DockerCommand) -> str:
        """Best-effort read that raises NothingLearned on empty output."""
        output = self._read(cmd)
        if not output.strip():
            raise NothingLearned(cmd.render())
        return output

    def _write(self, cmd: DockerCommand) -> str:
        self.logger.info(f"[{self.cluster_id}] {cmd.render()}")
        return self.executor.execute(
            [cmd.render()],
            self.cluster.manager_host,
            ExecutionMode.MUST_SUCCEED,
            stdin=cmd.stdin
        ) or ""

    def _cached(self, resource: str, producer: Callable[[], T], empty: Callable[[], T]) -> T:
        """
        Cache-backed read. Empty output is never cached, so an empty
        collection is refetched on every call until something appears.
        """
        try:
            return self.cache.get_or_compute(
                cache_key(self.cluster_id, resource),
                self.cluster.cache_ttl,
                producer
            )
        except NothingLearned:
            log = self.logger.debug if resource in MAY_BE_EMPTY else self.logger.warning
            log(f"[{self.cluster_id}] No {resource} data from {self.cluster.manager_host}")
            return empty()

    def invalidate(self, *resources: str) -> None:
        for resource in resources:
            self.cache.forget(cache_key(self.cluster_id, resource))

    # =========================================================================
    # Cluster
    # =========================================================================

    def get_cluster_info(self) -> ClusterInfo:
        return self._cached(
            INFO,
            lambda: parse_swarm_info(self._read_required(commands.swarm_info())),
            ClusterInfo
        )

    def get_cluster_health(self) -> ClusterHealth:
        """
        Derive health from the (cached) node list.

        unreachable: no nodes, or every node down
        degraded: some but not all nodes not ready
        healthy: every node ready
        """
        try:
            nodes = self.get_nodes()
            total = len(nodes)
            if total == 0:
                return ClusterHealth.UNREACHABLE

            down = sum(1 for node in nodes if node.status != NodeStatus.READY.value)
            if down == 0:
                return ClusterHealth.HEALTHY
            if down < total:
                return ClusterHealth.DEGRADED
            return ClusterHealth.UNREACHABLE
        except Exception as e:
            self.logger.warning(f"[{self.cluster_id}] Health check failed: {e}")
            return ClusterHealth.UNREACHABLE

    # =========================================================================
    # Nodes
    # =========================================================================

    def get_nodes(self) -> List[Node]:
        def produce() -> List[Node]:
            ls_output = self._read_required(commands.node_ls())
            node_ids = [row["ID"] for row in iter_json_lines(ls_output) if row.get("ID")]
            if not node_ids:
                raise NothingLearned("node ls")
            inspect_output = self._read(commands.node_inspect(node_ids))
            return parse_node_list(ls_output, inspect_output)

        return self._cached(NODES, produce, list)

    def get_node(self, node_id: str) -> Optional[Node]:
        output = self._read(commands.node_inspect([node_id]))
        return parse_node_inspect(parse_json_object(output))

    def get_node_resources(self, node_id: str) -> NodeResources:
        """
        Static capacity only.

        Live utilization stays None: CPU percent needs two samples taken
        apart in time, and a worker's /proc is not readable from the manager.
        """
        node = self.get_node(node_id)
        return NodeResources(memory_total=node.memory_bytes if node else 0)

    # =========================================================================
    # Services & tasks
    # =========================================================================

    def get_services(self) -> List[Service]:
        return self._cached(
            SERVICES,
            lambda: parse_service_list(self._read_required(commands.service_ls())),
            list
        )

    def get_service(self, service_id: str) -> Optional[Service]:
        inspect = parse_json_object(self._read(commands.service_inspect(service_id)))
        if not inspect:
            return None
        return parse_service_inspect(inspect, self.get_service_tasks(service_id))

    def get_service_tasks(self, service_id: str) -> List[Task]:
        return parse_tasks(self._read(commands.service_ps(service_id)))

    def get_all_tasks(self) -> List[Task]:
        return self._cached(
            TASKS,
            lambda: parse_tasks(self._read_required(commands.all_node_ps())),
            list
        )

    def get_node_tasks(self, node_id: str) -> List[Task]:
        return parse_tasks(self._read(commands.node_ps(node_id)))

    # =========================================================================
    # Events & tokens
    # =========================================================================

    def get_events(
        self,
        since: int,
        filter_type: Optional[str] = None,
        until: Optional[int] = None,
    ) -> List[Event]:
        """
        Events in [since, until], with until defaulting to the call time. A
        default until means polling with since = last seen event time can
        return that event again.
        """
        now = int(self._clock())
        until = now if until is None else min(int(until), now)
        since = int(since)
        if since > until:
            return []
        output = self._read(commands.system_events(since, until, filter_type))
        return [
            event for event in parse_events(output)
            if since <= event.time <= until
            and (not filter_type or event.type == filter_type)
        ]

    def get_join_tokens(self) -> JoinTokens:
        return JoinTokens(
            worker=self._read(commands.join_token("worker")).strip(),
            manager=self._read(commands.join_token("manager")).strip(),
        )

    # =========================================================================
    # Secrets, configs, stacks
    # =========================================================================

    def get_secrets(self) -> List[Secret]:
        return self._cached(
            SECRETS,
            lambda: parse_secrets(self._read_required(commands.secret_ls())),
            list
        )

    def get_configs(self) -> List[Config]:
        def produce() -> List[Config]:
            configs = []
            for row in iter_json_lines(self._read_required(commands.config_ls())):
                config_id = row.get("ID")
                if not config_id:
                    continue
                data = decode_config_data(self._read(commands.config_inspect_data(config_id)))
                configs.append(parse_config_row(row, data))
            return configs

        return self._cached(CONFIGS, produce, list)

    def get_stacks(self) -> List[Stack]:
        return self._cached(
            STACKS,
            lambda: parse_stacks(self._read_required(commands.stack_ls())),
            list
        )

    # =========================================================================
    # Node management
    # =========================================================================

    def update_node_availability(self, node_id: str, availability: str) -> OperationResult:
        value = validate_availability(availability)
        self._write(commands.node_update_availability(node_id, value.value))
        self.invalidate(NODES)
        return OperationResult.ok()

    def promote_node(self, node_id: str) -> OperationResult:
        self._write(commands.node_promote(node_id))
        self.invalidate(NODES)
        return OperationResult.ok()

    def demote_node(self, node_id: str) -> OperationResult:
        managers = [node for node in self.get_nodes() if node.is_manager]
        if len(managers) <= 1:
            reason = f"Cannot demote {node_id}: cluster would be left without a manager"
            self.logger.warning(f"[{self.cluster_id}] {reason}")
            return OperationResult.rejected(reason)

        self._write(commands.node_demote(node_id))
        self.invalidate(NODES)
        return OperationResult.ok()

    def remove_node(self, node_id: str, force: bool = False) -> OperationResult:
        # Drain-before-remove is the caller's policy.
        self._write(commands.node_rm(node_id, force))
        self.invalidate(NODES)
        return OperationResult.ok()

    def update_node_labels(
        self,
        node_id: str,
        add: Optional[Dict[str, str]] = None,
        remove: Optional[Iterable[str]] = None,
    ) -> OperationResult:
        add = dict(add or {})
        remove = list(remove or [])
        if not add and not remove:
            return OperationResult.ok()

        for key in list(add) + remove:
            if not str(key).strip():
                raise ValidationError("Label keys cannot be empty")

        self._write(commands.node_update_labels(node_id, add, remove))
        self.invalidate(NODES)
        return OperationResult.ok()

    # =========================================================================
    # Service management
    # =========================================================================

    def scale_service(self, service_id: str, replicas: int) -> OperationResult:
        # No upper bound here; tool layers may impose one.
        count = validate_replicas(replicas)
        self._write(commands.service_scale(service_id, count))
        self.invalidate(SERVICES, TASKS)
        return OperationResult.ok()

    def rollback_service(self, service_id: str) -> OperationResult:
        self._write(commands.service_rollback(service_id))
        self.invalidate(SERVICES, TASKS)
        return OperationResult.ok()

    def force_update_service(self, service_id: str) -> OperationResult:
        self._write(commands.service_force_update(service_id))
        self.invalidate(SERVICES, TASKS)
        return OperationResult.ok()

    # =========================================================================
    # Secret & config management
    # =========================================================================

    def _create_object(self, kind: str, name: str, data: str, labels: Optional[Dict[str, str]]) -> str:
        if not name or not name.strip():
            raise ValidationError(f"{kind.capitalize()} name cannot be empty")
        output = self._write(commands.object_create(kind, name, data, labels))
        return output.strip()

    def create_secret(self, name: str, data: str, labels: Optional[Dict[str, str]] = None) -> str:
        """Create a secret; data goes over stdin. Returns the docker id."""
        secret_id = self._create_object("secret", name, data, labels)
        self.invalidate(SECRETS)
        return secret_id

    def remove_secret(self, secret_id: str) -> OperationResult:
        self._write(commands.object_rm("secret", secret_id))
        self.invalidate(SECRETS)
        return OperationResult.ok()

    def create_config(self, name: str, data: str, labels: Optional[Dict[str, str]] = None) -> str:
        """Create a config; data goes over stdin. Returns the docker id."""
        config_id = self._create_object("config", name, data, labels)
        self.invalidate(CONFIGS)
        return config_id

    def remove_config(self, config_id: str) -> OperationResult:
        self._write(commands.object_rm("config", config_id))
        self.invalidate(CONFIGS)
        return OperationResult.ok()


__all__ = [
    "SwarmClusterDriver",
    "NothingLearned",
]
