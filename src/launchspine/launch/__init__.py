"""
launch-spine container launching.

Turns an allocated container plus a role into a started process:
credentials bound to the target node, a launch context populated by the
role's provider, staged config (and optional image), a start command in a
fixed argument order, and a submission to the coordinator.

Architecture:
    ::

        LaunchCoordinator ──spawns──▶ LaunchWorker (one per container)
                                        │
              ┌─────────────────────────┼───────────────────────────┐
              ▼                         ▼                           ▼
        bind_credentials       RoleProvider.populate       resolve_resources
                                        │
                                        ▼
                               assemble_command ──▶ coordinator.submit

Example:
    >>> from launchspine.launch import assemble_command
    >>> assemble_command("/opt/app/bin/start-worker", "server").split()[1:3]
    ['--config', 'propagatedconf']
"""

from __future__ import annotations

from launchspine.launch.command import assemble_command, resolve_executable_path
from launchspine.launch.coordinator import CoordinatorStats, LaunchCoordinator
from launchspine.launch.credentials import bind_credentials, encode_token
from launchspine.launch.filesystem import LocalFilesystem
from launchspine.launch.models import (
    AllocatedContainer,
    ClusterDescriptor,
    DelegatedIdentity,
    DelegationToken,
    LaunchContext,
    LaunchRecord,
    LocalResource,
    NodeAddress,
    ResourceType,
    RoleSpec,
)
from launchspine.launch.providers import (
    CommandRoleProvider,
    HBaseRoleProvider,
    ProviderRegistry,
    default_registry,
)
from launchspine.launch.resources import resolve_resources
from launchspine.launch.worker import LaunchOutcome, LaunchState, LaunchWorker

__all__ = [
    "AllocatedContainer",
    "ClusterDescriptor",
    "CommandRoleProvider",
    "CoordinatorStats",
    "DelegatedIdentity",
    "DelegationToken",
    "HBaseRoleProvider",
    "LaunchContext",
    "LaunchCoordinator",
    "LaunchOutcome",
    "LaunchRecord",
    "LaunchState",
    "LaunchWorker",
    "LocalFilesystem",
    "LocalResource",
    "NodeAddress",
    "ProviderRegistry",
    "ResourceType",
    "RoleSpec",
    "assemble_command",
    "bind_credentials",
    "default_registry",
    "encode_token",
    "resolve_executable_path",
    "resolve_resources",
]
