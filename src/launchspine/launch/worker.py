"""Launch worker — one per allocated container.

A ``LaunchWorker`` takes a freshly allocated container through every step
needed to start a role's process in it, then hands the result to the
coordinator. Workers run on the coordinator's thread pool, independently
of each other; inside a worker the stages are strictly sequential.

State machine::

    CREATED → CREDENTIALED → CONTEXT_BUILT → RESOURCES_RESOLVED
            → COMMAND_READY → SUBMITTED → DONE
        (any stage) ──────── LaunchError ──────────────→ DONE

``DONE`` always triggers ``coordinator.on_worker_finished(worker)``,
exactly once, whichever way the run ends. A ``LaunchRecord`` exists only
once the command is assembled, and the coordinator only ever receives a
complete one.

Usage::

    worker = LaunchWorker(coordinator, container, RoleSpec("worker"), provider,
                          staging_dir=settings.staging_dir)
    pool.submit(worker.run)

Failures are never retried here; a coordinator that wants retries sees
``worker.outcome.succeeded is False`` in its completion callback.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from launchspine.core.errors import (
    ErrorCategory,
    LaunchError,
    ProviderError,
    SubmissionError,
)
from launchspine.core.logging import LogContext, get_logger
from launchspine.launch.command import assemble_command
from launchspine.launch.credentials import bind_credentials
from launchspine.launch.keys import LOG_DIR_EXPANSION_VAR, ROLE_ENV_PREFIX, ROLE_LOG_DIR_OPTION
from launchspine.launch.models import (
    AllocatedContainer,
    ClusterDescriptor,
    DelegatedIdentity,
    LaunchContext,
    LaunchRecord,
    RoleSpec,
)
from launchspine.launch.protocols import Coordinator, RoleProvider
from launchspine.launch.resources import resolve_resources

_logger = get_logger(__name__)


class LaunchState(str, Enum):
    CREATED = "CREATED"
    CREDENTIALED = "CREDENTIALED"
    CONTEXT_BUILT = "CONTEXT_BUILT"
    RESOURCES_RESOLVED = "RESOURCES_RESOLVED"
    COMMAND_READY = "COMMAND_READY"
    SUBMITTED = "SUBMITTED"
    DONE = "DONE"


@dataclass(frozen=True)
class LaunchOutcome:
    """How a launch attempt ended."""

    container_id: str
    role: str
    succeeded: bool
    record: LaunchRecord | None = None
    error: LaunchError | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "container_id": self.container_id,
            "role": self.role,
            "succeeded": self.succeeded,
            "record": self.record.model_dump() if self.record else None,
            "error": self.error.to_dict() if self.error else None,
        }


def build_env_map(options: Mapping[str, str]) -> dict[str, str]:
    """Environment variables declared in role options (``env.NAME=value``)."""
    return {
        key[len(ROLE_ENV_PREFIX):]: str(value)
        for key, value in options.items()
        if key.startswith(ROLE_ENV_PREFIX) and len(key) > len(ROLE_ENV_PREFIX)
    }


class LaunchWorker:
    """Launches one role process into one allocated container.

    Args:
        coordinator: Owner providing filesystem, config, descriptor,
            submission and the completion callback.
        container: The allocated container (referenced, not owned).
        role: Role name and options.
        provider: Role provider selected for ``role.name``.
        staging_dir: Root under which the provider gets a per-container
            directory for role files.
        logger: Structured logger; bound with container id and role.
    """

    def __init__(
        self,
        coordinator: Coordinator,
        container: AllocatedContainer,
        role: RoleSpec,
        provider: RoleProvider,
        *,
        staging_dir: str | Path,
        logger: Any | None = None,
    ):
        self._coordinator = coordinator
        self.container = container
        self.role = role
        self._provider = provider
        self._staging_dir = Path(staging_dir)
        self._log = (logger or _logger).bind(
            container_id=container.container_id, role=role.name
        )
        self._state = LaunchState.CREATED
        self._history: list[LaunchState] = [LaunchState.CREATED]
        self._outcome: LaunchOutcome | None = None

    @property
    def state(self) -> LaunchState:
        return self._state

    @property
    def history(self) -> list[LaunchState]:
        return list(self._history)

    @property
    def outcome(self) -> LaunchOutcome | None:
        return self._outcome

    def __repr__(self) -> str:
        return (
            f"LaunchWorker(container={self.container.container_id!r}, "
            f"role={self.role.name!r}, state={self._state.value})"
        )

    # ------------------------------------------------------------------ #
    # Run
    # ------------------------------------------------------------------ #

    def run(self) -> LaunchOutcome:
        """Run the launch to completion. Never raises for a failed launch."""
        if self._state is not LaunchState.CREATED:
            raise RuntimeError(f"{self!r} has already run")

        with self._finished_scope(), LogContext(
            container_id=self.container.container_id, role=self.role.name
        ):
            try:
                record = self._launch()
            except LaunchError as exc:
                self._fail(exc)
            except Exception as exc:
                self._log.exception("launch.crashed", stage=self._state.value)
                self._fail(
                    LaunchError(
                        f"unexpected {type(exc).__name__}: {exc}",
                        category=ErrorCategory.INTERNAL,
                        cause=exc,
                    ),
                    logged=True,
                )
            else:
                self._outcome = LaunchOutcome(
                    container_id=self.container.container_id,
                    role=self.role.name,
                    succeeded=True,
                    record=record,
                )
        return self._outcome

    __call__ = run

    @contextmanager
    def _finished_scope(self) -> Iterator[None]:
        try:
            yield
        finally:
            self._transition(LaunchState.DONE)
            self._log.debug("worker.finished", succeeded=bool(self._outcome and self._outcome.succeeded))
            try:
                self._coordinator.on_worker_finished(self)
            except Exception:
                # the pool future holding this error is never read
                self._log.exception("worker.finish_callback_failed")
                raise

    def _launch(self) -> LaunchRecord:
        self._log.debug("launch.starting", node=str(self.container.node))

        identity = self._acquire_credentials()
        self._transition(LaunchState.CREDENTIALED)

        context = self._build_context(identity)
        self._transition(LaunchState.CONTEXT_BUILT)

        # staged image and executable must come from the same descriptor
        descriptor = self._coordinator.get_cluster_descriptor()
        context = self._resolve_resources(context, descriptor)
        self._transition(LaunchState.RESOURCES_RESOLVED)

        context, record = self._assemble(context, descriptor)
        self._transition(LaunchState.COMMAND_READY)

        self._submit(context, record)
        self._transition(LaunchState.SUBMITTED)
        self._log.info("launch.submitted", command=record.command)
        return record

    # ------------------------------------------------------------------ #
    # Stages
    # ------------------------------------------------------------------ #

    def _acquire_credentials(self) -> DelegatedIdentity:
        return bind_credentials(
            self.container.container_id, self.container.node, self.container.token
        )

    def _build_context(self, identity: DelegatedIdentity) -> LaunchContext:
        context = LaunchContext(tokens=list(identity.tokens))
        filesystem = self._coordinator.get_cluster_filesystem()
        staging_dir = self._staging_dir / self.container.container_id
        try:
            self._provider.populate_launch_context(
                context, filesystem, staging_dir, self.role.name
            )
        except OSError as exc:
            raise ProviderError(
                f"{self._provider.family} provider failed for role {self.role.name}",
                cause=exc,
            ) from exc

        context.environment.update(build_env_map(self.role.options))
        context.environment[self._provider.log_dir_env] = self.role.options.get(
            ROLE_LOG_DIR_OPTION, LOG_DIR_EXPANSION_VAR
        )
        return context

    def _resolve_resources(
        self, context: LaunchContext, descriptor: ClusterDescriptor
    ) -> LaunchContext:
        resolve_resources(
            self._coordinator.get_cluster_filesystem(),
            self._coordinator.get_generated_config_dir(),
            descriptor,
            context.local_resources,
        )
        return context

    def _assemble(
        self, context: LaunchContext, descriptor: ClusterDescriptor
    ) -> tuple[LaunchContext, LaunchRecord]:
        try:
            executable = self._coordinator.resolve_executable_path(
                descriptor, self._provider.executable_name
            )
        except ValueError as exc:
            raise LaunchError(f"cannot resolve executable: {exc}", cause=exc) from exc

        command = assemble_command(executable, self._provider.server_command(self.role.name))
        context.commands = [command]
        self._log.info("launch.command", command=command)

        listing = context.resource_listing()
        for entry in listing:
            self._log.info("launch.resource", resource=entry)

        record = LaunchRecord(
            name=self.container.container_id,
            role=self.role.name,
            command=command,
            environment=listing,
            node=str(self.container.node),
        )
        return context, record

    def _submit(self, context: LaunchContext, record: LaunchRecord) -> None:
        try:
            self._coordinator.submit(self.container, context, record)
        except SubmissionError:
            raise
        except OSError as exc:
            raise SubmissionError(f"container start failed: {exc}", cause=exc) from exc

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _transition(self, state: LaunchState) -> None:
        self._state = state
        self._history.append(state)

    def _fail(self, error: LaunchError, logged: bool = False) -> None:
        error.with_context(
            container_id=self.container.container_id,
            role=self.role.name,
            stage=self._state.value,
        )
        if not logged:
            self._log.error("launch.failed", **error.to_dict())
        self._outcome = LaunchOutcome(
            container_id=self.container.container_id,
            role=self.role.name,
            succeeded=False,
            error=error,
        )
