"""
Docker CLI command construction.

Every value is escaped as a single shell argument with ``shlex.quote``.
Payloads (secret and config data) are carried in ``DockerCommand.stdin`` and
never rendered into the command text.
"""

import shlex
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

JSON_FORMAT = "{{json .}}"


@dataclass
class DockerCommand:
    """A docker invocation built one escaped argument at a time."""
    parts: List[str] = field(default_factory=lambda: ["docker"])
    stdin: Optional[str] = None

    def arg(self, *values: str) -> "DockerCommand":
        for value in values:
            self.parts.append(shlex.quote(str(value)))
        return self

    def option(self, flag: str, value: str) -> "DockerCommand":
        self.parts.append(flag)
        self.parts.append(shlex.quote(str(value)))
        return self

    def flag(self, flag: str) -> "DockerCommand":
        self.parts.append(flag)
        return self

    def raw(self, fragment: str) -> "DockerCommand":
        """Append a trusted fragment verbatim. Never pass user input here."""
        self.parts.append(fragment)
        return self

    def pipe_stdin(self, payload: str) -> "DockerCommand":
        """Deliver payload on the remote command's standard input."""
        self.stdin = payload
        return self

    def render(self) -> str:
        return " ".join(self.parts)

    def __str__(self) -> str:
        return self.render()


def docker(*subcommand: str) -> DockerCommand:
    return DockerCommand().arg(*subcommand)


def json_format(cmd: DockerCommand, template: str = JSON_FORMAT) -> DockerCommand:
    return cmd.option("--format", template)


# =============================================================================
# Read commands
# =============================================================================

def swarm_info() -> DockerCommand:
    return json_format(docker("info"), "{{json .Swarm}}")


def node_ls() -> DockerCommand:
    return json_format(docker("node", "ls"))


def node_inspect(node_ids: Iterable[str]) -> DockerCommand:
    return json_format(docker("node", "inspect").arg(*node_ids))


def node_ps(node_id: str) -> DockerCommand:
    return json_format(docker("node", "ps").arg(node_id)).flag("--no-trunc")


def all_node_ps() -> DockerCommand:
    return json_format(docker("node", "ps").raw("$(docker node ls -q)")).flag("--no-trunc")


def service_ls() -> DockerCommand:
    return json_format(docker("service", "ls"))


def service_inspect(service_id: str) -> DockerCommand:
    return json_format(docker("service", "inspect").arg(service_id))


def service_ps(service_id: str) -> DockerCommand:
    return json_format(docker("service", "ps").arg(service_id)).flag("--no-trunc")


def system_events(since: int, until: int, filter_type: Optional[str] = None) -> DockerCommand:
    cmd = docker("system", "events").option("--since", str(since)).option("--until", str(until))
    if filter_type:
        cmd.option("--filter", f"type={filter_type}")
    return json_format(cmd)


def join_token(role: str) -> DockerCommand:
    return docker("swarm", "join-token").arg(role).flag("-q")


def secret_ls() -> DockerCommand:
    return json_format(docker("secret", "ls"))


def config_ls() -> DockerCommand:
    return json_format(docker("config", "ls"))


def config_inspect_data(config_id: str) -> DockerCommand:
    return json_format(docker("config", "inspect").arg(config_id), "{{json .Spec.Data}}")


def stack_ls() -> DockerCommand:
    return json_format(docker("stack", "ls"))


# =============================================================================
# Write commands
# =============================================================================

def node_update_availability(node_id: str, availability: str) -> DockerCommand:
    return docker("node", "update").option("--availability", availability).arg(node_id)


def node_promote(node_id: str) -> DockerCommand:
    return docker("node", "promote").arg(node_id)


def node_demote(node_id: str) -> DockerCommand:
    return docker("node", "demote").arg(node_id)


def node_rm(node_id: str, force: bool = False) -> DockerCommand:
    cmd = docker("node", "rm").arg(node_id)
    if force:
        cmd.flag("--force")
    return cmd


def node_update_labels(node_id: str, add: Dict[str, str], remove: Iterable[str]) -> DockerCommand:
    cmd = docker("node", "update")
    for key, value in add.items():
        cmd.option("--label-add", f"{key}={value}")
    for key in remove:
        cmd.option("--label-rm", key)
    return cmd.arg(node_id)


def service_scale(service_id: str, replicas: int) -> DockerCommand:
    return docker("service", "scale").arg(f"{service_id}={int(replicas)}")


def service_rollback(service_id: str) -> DockerCommand:
    return docker("service", "rollback").arg(service_id)


def service_force_update(service_id: str) -> DockerCommand:
    return docker("service", "update").flag("--force").arg(service_id)


def object_create(kind: str, name: str, data: str, labels: Optional[Dict[str, str]] = None) -> DockerCommand:
    """``docker <kind> create [--label k=v]... <name> -`` with data on stdin."""
    cmd = docker(kind, "create")
    for key, value in (labels or {}).items():
        cmd.option("--label", f"{key}={value}")
    return cmd.arg(name, "-").pipe_stdin(data)


def object_rm(kind: str, object_id: str) -> DockerCommand:
    return docker(kind, "rm").arg(object_id)
