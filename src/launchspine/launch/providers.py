"""Role providers — per-role-family launch settings.

A role provider knows what a family of roles needs on the node beyond the
common config bundle: extra environment, provider-owned staged files, the
launcher script and the server sub-command. The worker only relies on the
:class:`~launchspine.launch.protocols.RoleProvider` contract; providers are
selected by role name when a worker is constructed.

ARCHITECTURE
────────────
::

    ProviderRegistry
      ├── .register(role, provider)  ─ bind a role name to a provider
      ├── .get(role)                 ─ lookup (ProviderError if unknown)
      ├── .has(role)                 ─ existence check
      ├── .list_roles()              ─ registered role names
      └── .unregister(role)          ─ remove a binding

    Providers:
      HBaseRoleProvider    ─ region server / master roles
      CommandRoleProvider  ─ generic ``start-<role>`` launchers

Tags:
    provider, role, registry, launch-context, hbase
"""

from __future__ import annotations

import threading
from pathlib import Path

import structlog

from launchspine.core.errors import ProviderError
from launchspine.launch.keys import PROPAGATED_CONF_DIR_NAME
from launchspine.launch.models import LaunchContext, ResourceType
from launchspine.launch.protocols import FilesystemHandle, RoleProvider
from launchspine.launch.resources import create_resource

logger = structlog.get_logger(__name__)

ROLE_WORKER = "worker"
ROLE_MASTER = "master"


class HBaseRoleProvider:
    """Provider for the HBase role family.

    ``worker`` containers run region servers, ``master`` containers run the
    master. Each launch gets a generated ``hbase-role.properties`` written
    into the staging directory and shipped beside the config bundle.
    """

    family = "hbase"
    executable_name = "hbase"
    log_dir_env = "HBASE_LOG_DIR"

    SERVER_COMMANDS = {
        ROLE_WORKER: "regionserver",
        ROLE_MASTER: "master",
    }
    ROLE_PROPERTIES_FILE = "hbase-role.properties"

    def __init__(self, heap_size_mb: int | None = None, properties: dict[str, str] | None = None):
        self.heap_size_mb = heap_size_mb
        self.properties = dict(properties or {})

    def server_command(self, role_name: str) -> str:
        try:
            return self.SERVER_COMMANDS[role_name]
        except KeyError:
            raise ProviderError(
                f"HBase provider has no server command for role {role_name!r}"
            ).with_context(role=role_name) from None

    def populate_launch_context(
        self,
        context: LaunchContext,
        filesystem: FilesystemHandle,
        staging_dir: Path,
        role_name: str,
    ) -> None:
        self.server_command(role_name)

        context.environment["HBASE_CONF_DIR"] = PROPAGATED_CONF_DIR_NAME
        if self.heap_size_mb is not None:
            context.environment["HBASE_HEAPSIZE"] = str(self.heap_size_mb)

        role_dir = Path(staging_dir) / role_name
        filesystem.mkdirs(role_dir)
        target = role_dir / self.ROLE_PROPERTIES_FILE
        filesystem.write_bytes(target, self._render_properties(role_name))
        context.local_resources[f"role/{self.ROLE_PROPERTIES_FILE}"] = create_resource(
            filesystem, target, ResourceType.FILE
        )
        logger.debug("provider.populated", family=self.family, role=role_name)

    def _render_properties(self, role_name: str) -> bytes:
        lines = [f"hbase.role={role_name}"]
        lines.extend(f"{key}={value}" for key, value in sorted(self.properties.items()))
        return ("\n".join(lines) + "\n").encode("utf-8")


class CommandRoleProvider:
    """Generic provider: ``bin/start-<role> ... server start``."""

    family = "command"
    log_dir_env = "ROLE_LOG_DIR"

    def __init__(self, role_name: str, environment: dict[str, str] | None = None):
        self.role_name = role_name
        self.executable_name = f"start-{role_name}"
        self.environment = dict(environment or {})

    def server_command(self, role_name: str) -> str:
        return "server"

    def populate_launch_context(
        self,
        context: LaunchContext,
        filesystem: FilesystemHandle,
        staging_dir: Path,
        role_name: str,
    ) -> None:
        context.environment.update(self.environment)
        context.environment["ROLE_NAME"] = role_name


class ProviderRegistry:
    """Thread-safe role name → provider lookup.

    Example:
        >>> registry = ProviderRegistry()
        >>> registry.register("worker", HBaseRoleProvider())
        >>> registry.get("worker").family
        'hbase'
    """

    def __init__(self):
        self._providers: dict[str, RoleProvider] = {}
        self._lock = threading.Lock()

    def register(self, role_name: str, provider: RoleProvider) -> None:
        with self._lock:
            self._providers[role_name] = provider

    def get(self, role_name: str) -> RoleProvider:
        """Provider for *role_name*.

        Raises:
            ProviderError: No provider is registered for the role.
        """
        with self._lock:
            provider = self._providers.get(role_name)
            available = sorted(self._providers)
        if provider is None:
            raise ProviderError(
                f"No provider registered for role {role_name!r}. "
                f"Available roles: {available or 'none'}"
            ).with_context(role=role_name)
        return provider

    def has(self, role_name: str) -> bool:
        with self._lock:
            return role_name in self._providers

    def list_roles(self) -> list[str]:
        with self._lock:
            return sorted(self._providers)

    def unregister(self, role_name: str) -> bool:
        with self._lock:
            return self._providers.pop(role_name, None) is not None


def default_registry() -> ProviderRegistry:
    """Registry with the HBase family bound to its two roles."""
    registry = ProviderRegistry()
    hbase = HBaseRoleProvider()
    registry.register(ROLE_WORKER, hbase)
    registry.register(ROLE_MASTER, hbase)
    return registry
