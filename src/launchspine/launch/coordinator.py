"""Launch coordinator — spawns launch workers and keeps their bookkeeping.

The coordinator is the owner a :class:`~launchspine.launch.worker.LaunchWorker`
reports to. It runs one worker per allocated container on a bounded thread
pool, forwards successful launches to the node's container-management
service, and tracks:

- live workers (registered on launch, released by the completion callback);
- launch records of started containers, keyed by container id, until the
  container completes and is evicted;
- finished outcomes, split into succeeded and failed, so a restart policy
  can decide what to re-request.

All bookkeeping is guarded by one lock; callers never lock externally.

Usage::

    coordinator = LaunchCoordinator(
        filesystem=LocalFilesystem("/cluster"),
        container_manager=node_manager_client,
        descriptor=ClusterDescriptor(install_home="/opt/hbase"),
    )
    with coordinator:
        for container in allocated:
            coordinator.launch(container, RoleSpec("worker"))
        coordinator.wait_idle(timeout=60)
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from launchspine.core.errors import SubmissionError
from launchspine.core.logging import get_logger
from launchspine.core.settings import LaunchSettings, get_settings
from launchspine.launch.command import resolve_executable_path
from launchspine.launch.models import (
    AllocatedContainer,
    ClusterDescriptor,
    LaunchContext,
    LaunchRecord,
    RoleSpec,
)
from launchspine.launch.protocols import ContainerManagerClient, FilesystemHandle
from launchspine.launch.providers import ProviderRegistry, default_registry
from launchspine.launch.worker import LaunchOutcome, LaunchWorker

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class CoordinatorStats:
    """Snapshot of coordinator counters."""

    launched: int = 0
    succeeded: int = 0
    failed: int = 0
    live_workers: int = 0
    running_containers: int = 0
    started_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "launched": self.launched,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "live_workers": self.live_workers,
            "running_containers": self.running_containers,
            "started_at": self.started_at.isoformat() if self.started_at else None,
        }


class LaunchCoordinator:
    """Reference coordinator: worker pool, submission and bookkeeping.

    Args:
        filesystem: Cluster filesystem handle shared read-only by workers.
        container_manager: Client for the node container-management service.
        descriptor: Cluster descriptor (image path / install home).
        providers: Role name → provider registry. Defaults to the HBase roles.
        settings: Launch settings; defaults to :func:`get_settings`.
        conf_dir: Generated config directory; defaults to settings.
        staging_dir: Provider staging directory; defaults to settings.
    """

    def __init__(
        self,
        filesystem: FilesystemHandle,
        container_manager: ContainerManagerClient,
        descriptor: ClusterDescriptor,
        *,
        providers: ProviderRegistry | None = None,
        settings: LaunchSettings | None = None,
        conf_dir: str | Path | None = None,
        staging_dir: str | Path | None = None,
    ):
        self._settings = settings or get_settings()
        self._filesystem = filesystem
        self._container_manager = container_manager
        self._descriptor = descriptor
        self._providers = providers if providers is not None else default_registry()
        self._conf_dir = Path(conf_dir or self._settings.generated_conf_dir)
        self._staging_dir = Path(staging_dir or self._settings.staging_dir)

        self._pool = ThreadPoolExecutor(
            max_workers=self._settings.max_workers,
            thread_name_prefix=self._settings.thread_name_prefix,
        )

        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._live: dict[str, LaunchWorker] = {}
        self._futures: dict[str, Future] = {}
        self._records: dict[str, LaunchRecord] = {}
        self._succeeded: list[LaunchOutcome] = []
        self._failed: list[LaunchOutcome] = []
        self._stats = CoordinatorStats(started_at=_utcnow())
        self._closed = False

    # ------------------------------------------------------------------ #
    # Worker-facing contract
    # ------------------------------------------------------------------ #

    def get_cluster_filesystem(self) -> FilesystemHandle:
        return self._filesystem

    def get_generated_config_dir(self) -> Path:
        return self._conf_dir

    def get_cluster_descriptor(self) -> ClusterDescriptor:
        with self._lock:
            return self._descriptor

    def set_cluster_descriptor(self, descriptor: ClusterDescriptor) -> None:
        """Replace the descriptor used by launches started from now on."""
        with self._lock:
            self._descriptor = descriptor

    def resolve_executable_path(self, descriptor: ClusterDescriptor, executable_name: str) -> str:
        return resolve_executable_path(descriptor, executable_name)

    def submit(
        self,
        container: AllocatedContainer,
        context: LaunchContext,
        record: LaunchRecord,
    ) -> None:
        """Start *container* and register its record.

        Raises:
            SubmissionError: The container-management service failed.
        """
        try:
            self._container_manager.start_container(container, context)
        except SubmissionError:
            raise
        except Exception as exc:
            raise SubmissionError(
                f"start of {container.container_id} on {container.node} failed: {exc}",
                cause=exc,
            ) from exc

        with self._lock:
            self._records[container.container_id] = record
            self._stats.running_containers = len(self._records)

    def on_worker_finished(self, worker: LaunchWorker) -> None:
        outcome = worker.outcome
        container_id = worker.container.container_id
        with self._lock:
            self._live.pop(container_id, None)
            self._futures.pop(container_id, None)
            if outcome is not None and outcome.succeeded:
                self._succeeded.append(outcome)
                self._stats.succeeded += 1
            else:
                if outcome is not None:
                    self._failed.append(outcome)
                self._stats.failed += 1
            self._stats.live_workers = live = len(self._live)
            self._idle.notify_all()
        fields = outcome.to_dict() if outcome is not None else {"container_id": container_id}
        logger.debug("worker.finished", live=live, **fields)

    # ------------------------------------------------------------------ #
    # Launching
    # ------------------------------------------------------------------ #

    def launch(self, container: AllocatedContainer, role: RoleSpec | str) -> LaunchWorker:
        """Create a worker for *container* and schedule it on the pool.

        Raises:
            ProviderError: No provider is registered for the role.
            ValueError: The container already has a live worker.
            RuntimeError: The coordinator has been shut down.
        """
        if isinstance(role, str):
            role = RoleSpec(role)
        provider = self._providers.get(role.name)
        worker = LaunchWorker(
            self, container, role, provider, staging_dir=self._staging_dir
        )

        with self._lock:
            if self._closed:
                raise RuntimeError("coordinator is shut down")
            if container.container_id in self._live:
                raise ValueError(f"container {container.container_id} is already launching")
            self._live[container.container_id] = worker
            self._stats.launched += 1
            self._stats.live_workers = len(self._live)
            self._futures[container.container_id] = self._pool.submit(worker.run)

        logger.info("launch.scheduled", container_id=container.container_id, role=role.name)
        return worker

    def on_container_completed(self, container_id: str) -> LaunchRecord | None:
        """Evict the record of a container that has exited."""
        with self._lock:
            record = self._records.pop(container_id, None)
            self._stats.running_containers = len(self._records)
        if record is not None:
            logger.info("container.completed", container_id=container_id, role=record.role)
        return record

    # ------------------------------------------------------------------ #
    # Bookkeeping queries
    # ------------------------------------------------------------------ #

    def get_record(self, container_id: str) -> LaunchRecord | None:
        with self._lock:
            return self._records.get(container_id)

    def list_records(self, role: str | None = None) -> list[LaunchRecord]:
        with self._lock:
            records = list(self._records.values())
        if role is not None:
            records = [r for r in records if r.role == role]
        return records

    def live_workers(self) -> list[LaunchWorker]:
        with self._lock:
            return list(self._live.values())

    @property
    def succeeded(self) -> list[LaunchOutcome]:
        with self._lock:
            return list(self._succeeded)

    @property
    def failed(self) -> list[LaunchOutcome]:
        with self._lock:
            return list(self._failed)

    def stats(self) -> CoordinatorStats:
        with self._lock:
            return CoordinatorStats(**vars(self._stats))

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Block until no worker is live. Returns False on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        with self._idle:
            while self._live:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._idle.wait(remaining)
        return True

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting launches; in-flight workers always run to completion."""
        with self._lock:
            self._closed = True
        self._pool.shutdown(wait=wait, cancel_futures=False)
        logger.info("coordinator.stopped", **self.stats().to_dict())

    def __enter__(self) -> LaunchCoordinator:
        return self

    def __exit__(self, *args) -> None:
        self.shutdown(wait=True)
