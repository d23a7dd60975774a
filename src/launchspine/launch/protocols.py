"""
Structural contracts between a launch worker and its collaborators.

A worker depends on shapes, not implementations: anything that looks like
a :class:`Coordinator`, :class:`RoleProvider` or :class:`FilesystemHandle`
can drive it. The reference implementations live in
:mod:`launchspine.launch.coordinator`, :mod:`launchspine.launch.providers`
and :mod:`launchspine.launch.filesystem`.

Architecture:
    ::

        protocols.py
        ├── FilesystemHandle        — cluster filesystem used for staging
        ├── RoleProvider            — per-role-family launch settings
        ├── ContainerManagerClient  — node container-management service
        └── Coordinator             — owns submission and worker accounting

Tags:
    protocol, coordinator, provider, filesystem, launch-spine, contracts
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from launchspine.launch.models import (
    AllocatedContainer,
    ClusterDescriptor,
    FileStatus,
    LaunchContext,
    LaunchRecord,
)

if TYPE_CHECKING:
    from launchspine.launch.worker import LaunchWorker


@runtime_checkable
class FilesystemHandle(Protocol):
    """Cluster filesystem the launcher stages artifacts from. SYNC.

    All methods raise ``OSError`` (typically ``FileNotFoundError``) on
    failure.
    """

    def list_files(self, path: str | Path) -> list[FileStatus]:
        """Status of every regular file directly under *path*."""
        ...

    def status(self, path: str | Path) -> FileStatus:
        """Status of a single path."""
        ...

    def qualify(self, path: str | Path) -> str:
        """Fully qualified content locator (URL) for *path*."""
        ...

    def mkdirs(self, path: str | Path) -> None:
        """Create *path* and any missing parents."""
        ...

    def write_bytes(self, path: str | Path, data: bytes) -> FileStatus:
        """Write *data* to *path*, replacing any existing file."""
        ...


@runtime_checkable
class RoleProvider(Protocol):
    """Capability interface implemented once per role family.

    After :meth:`populate_launch_context` returns, the context holds every
    environment entry and local resource the provider mandates for the
    role. Errors propagate unchanged.
    """

    family: str
    executable_name: str
    log_dir_env: str

    def populate_launch_context(
        self,
        context: LaunchContext,
        filesystem: FilesystemHandle,
        staging_dir: Path,
        role_name: str,
    ) -> None:
        ...

    def server_command(self, role_name: str) -> str:
        """Server sub-command token for *role_name*."""
        ...


@runtime_checkable
class ContainerManagerClient(Protocol):
    """Client for the container-management service on a cluster node."""

    def start_container(
        self, container: AllocatedContainer, context: LaunchContext
    ) -> None:
        """Start the process described by *context*; raise on failure."""
        ...


@runtime_checkable
class Coordinator(Protocol):
    """What a launch worker needs from the coordinator that spawned it."""

    def get_cluster_filesystem(self) -> FilesystemHandle:
        ...

    def get_generated_config_dir(self) -> Path:
        ...

    def get_cluster_descriptor(self) -> ClusterDescriptor:
        ...

    def resolve_executable_path(
        self, descriptor: ClusterDescriptor, executable_name: str
    ) -> str:
        ...

    def submit(
        self,
        container: AllocatedContainer,
        context: LaunchContext,
        record: LaunchRecord,
    ) -> None:
        """Start the container; any failure is raised synchronously."""
        ...

    def on_worker_finished(self, worker: LaunchWorker) -> None:
        """Called exactly once per worker, on every exit path."""
        ...
