"""Data model for container launches.

Plain dataclasses describe the in-process values a worker threads through
its stages; pydantic models describe what is handed to the coordinator
for status display and serialisation.

Key Concepts:
    AllocatedContainer: The slot granted by the resource manager (id, node,
        opaque token blob). Immutable; referenced, never owned, by a worker.
    RoleSpec: Role name plus its options, supplied by the coordinator.
    LocalResource: One staged artifact (content locator + metadata), keyed
        in a LaunchContext by its node-local relative path.
    LaunchContext: Environment, staged resources, command and tokens: the
        shape the container-management start call expects.
    LaunchRecord: The "cluster node" record for status pages, built once
        the command is assembled.
    ClusterDescriptor: Cluster-wide descriptor state read by the launcher
        (optional image path, pre-installed home).

Tags:
    models, container, launch-context, resources, pydantic, dataclasses
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from launchspine.core.secrets import SecretValue

# ---------------------------------------------------------------------------
# Containers and roles
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NodeAddress:
    """Address of the node manager hosting a container."""

    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class AllocatedContainer:
    """A container granted by the cluster resource manager."""

    container_id: str
    node: NodeAddress
    token: bytes = field(repr=False)


@dataclass(frozen=True)
class RoleSpec:
    """A role name and its (read-only) options."""

    name: str
    options: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DelegationToken:
    """A node-scoped container token; ``service`` is the node address."""

    identifier: bytes
    password: SecretValue
    kind: str
    service: str


@dataclass(frozen=True)
class DelegatedIdentity:
    """Remote identity a container start call is authenticated as."""

    user: str
    tokens: tuple[DelegationToken, ...] = ()

    def token_for(self, service: str) -> DelegationToken | None:
        for token in self.tokens:
            if token.service == service:
                return token
        return None


# ---------------------------------------------------------------------------
# Staged resources
# ---------------------------------------------------------------------------


class ResourceType(str, Enum):
    """How the node treats a staged artifact."""

    FILE = "FILE"  # Copied as-is
    ARCHIVE = "ARCHIVE"  # Unpacked into a directory


class ResourceVisibility(str, Enum):
    """Who on the node may share the localized copy."""

    PUBLIC = "PUBLIC"
    PRIVATE = "PRIVATE"
    APPLICATION = "APPLICATION"


@dataclass(frozen=True)
class FileStatus:
    """Status of a file on the cluster filesystem."""

    path: str
    size: int
    modification_time: int
    is_dir: bool = False


@dataclass(frozen=True)
class LocalResource:
    """A staged artifact: where its content lives and how to localize it."""

    locator: str
    size: int
    timestamp: int
    type: ResourceType = ResourceType.FILE
    visibility: ResourceVisibility = ResourceVisibility.APPLICATION


@dataclass
class LaunchContext:
    """Everything needed to start a role's process inside a container.

    One instance is created per launch and passed from stage to stage; no
    two stages (and no two workers) ever hold the same instance.
    """

    environment: dict[str, str] = field(default_factory=dict)
    local_resources: dict[str, LocalResource] = field(default_factory=dict)
    commands: list[str] = field(default_factory=list)
    tokens: list[DelegationToken] = field(default_factory=list)

    def resource_listing(self) -> list[str]:
        """``key=locator`` strings for every staged resource, in staging order."""
        return [f"{key}={res.locator}" for key, res in self.local_resources.items()]


# ---------------------------------------------------------------------------
# Coordinator-facing records
# ---------------------------------------------------------------------------


class ClusterDescriptor(BaseModel):
    """Cluster-wide descriptor state consulted during a launch."""

    name: str = "cluster"
    image_path: str | None = Field(
        default=None,
        description="Packaged binary image to stage; None means pre-installed",
    )
    install_home: str | None = Field(
        default=None,
        description="Absolute home of the pre-installed application",
    )
    options: dict[str, Any] = Field(default_factory=dict)


class LaunchRecord(BaseModel):
    """Status record of a launched container (a "cluster node")."""

    name: str  # container id
    role: str
    command: str
    environment: list[str] = Field(default_factory=list)
    node: str | None = None
