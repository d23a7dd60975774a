"""
Shared pytest fixtures and configuration for launch-spine tests.

This module provides:
- A temporary cluster filesystem with a generated config bundle and image
- A recording coordinator double implementing the worker-facing contract
- A container factory with well-formed (or deliberately broken) tokens

Usage:
    Fixtures are auto-discovered by pytest:

    def test_something(cluster, coordinator, make_container):
        ...
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import pytest

from launchspine.core.errors import SubmissionError
from launchspine.launch.command import resolve_executable_path
from launchspine.launch.credentials import encode_token
from launchspine.launch.filesystem import LocalFilesystem
from launchspine.launch.models import (
    AllocatedContainer,
    ClusterDescriptor,
    LaunchContext,
    LaunchRecord,
    NodeAddress,
)

CONF_FILES = {
    "core-site.xml": b"<configuration/>\n",
    "hbase-site.xml": b"<configuration><property/></configuration>\n",
    "log4j.properties": b"log4j.rootLogger=INFO\n",
}


# =============================================================================
# Test Markers Configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Mark all tests without explicit markers as unit tests."""
    for item in items:
        markers = {mark.name for mark in item.iter_markers()}
        if not markers.intersection({"unit", "integration", "slow"}):
            item.add_marker(pytest.mark.unit)


# =============================================================================
# Cluster filesystem
# =============================================================================


@dataclass
class Cluster:
    root: Path
    filesystem: LocalFilesystem
    conf_dir: Path
    staging_dir: Path
    image_path: Path


@pytest.fixture
def cluster(tmp_path: Path) -> Cluster:
    """A cluster filesystem rooted in a temp dir with config and an image."""
    conf_dir = tmp_path / "generated" / "conf"
    conf_dir.mkdir(parents=True)
    for name, content in CONF_FILES.items():
        (conf_dir / name).write_bytes(content)
    # Sub-directories are not part of the bundle
    (conf_dir / "backup").mkdir()

    image_path = tmp_path / "images" / "hbase-0.96.tar.gz"
    image_path.parent.mkdir()
    image_path.write_bytes(b"\x1f\x8b fake tarball")

    return Cluster(
        root=tmp_path,
        filesystem=LocalFilesystem(tmp_path),
        conf_dir=conf_dir,
        staging_dir=tmp_path / "staging",
        image_path=image_path,
    )


# =============================================================================
# Containers
# =============================================================================


@pytest.fixture
def make_container() -> Callable[..., AllocatedContainer]:
    """Factory for allocated containers with a valid token by default."""

    def _make(
        container_id: str = "c-007",
        host: str = "node1.example.com",
        port: int = 45454,
        token: bytes | None = None,
    ) -> AllocatedContainer:
        if token is None:
            token = encode_token(f"id-{container_id}".encode(), b"s3cret")
        return AllocatedContainer(
            container_id=container_id,
            node=NodeAddress(host, port),
            token=token,
        )

    return _make


# =============================================================================
# Coordinator double
# =============================================================================


@dataclass
class RecordingCoordinator:
    """Coordinator double recording every call a worker makes."""

    filesystem: LocalFilesystem
    conf_dir: Path
    descriptor: ClusterDescriptor
    submit_error: Exception | None = None
    submissions: list[tuple[AllocatedContainer, LaunchContext, LaunchRecord]] = field(
        default_factory=list
    )
    finished: list[Any] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_cluster_filesystem(self) -> LocalFilesystem:
        return self.filesystem

    def get_generated_config_dir(self) -> Path:
        return self.conf_dir

    def get_cluster_descriptor(self) -> ClusterDescriptor:
        return self.descriptor

    def resolve_executable_path(self, descriptor: ClusterDescriptor, executable_name: str) -> str:
        return resolve_executable_path(descriptor, executable_name)

    def submit(self, container, context, record) -> None:
        if self.submit_error is not None:
            raise self.submit_error
        with self._lock:
            self.submissions.append((container, context, record))

    def on_worker_finished(self, worker) -> None:
        with self._lock:
            self.finished.append(worker)


@pytest.fixture
def preinstalled() -> ClusterDescriptor:
    return ClusterDescriptor(name="test", install_home="/opt/hbase")


@pytest.fixture
def coordinator(cluster: Cluster, preinstalled: ClusterDescriptor) -> RecordingCoordinator:
    return RecordingCoordinator(
        filesystem=cluster.filesystem,
        conf_dir=cluster.conf_dir,
        descriptor=preinstalled,
    )


@pytest.fixture
def rejecting_coordinator(coordinator: RecordingCoordinator) -> RecordingCoordinator:
    coordinator.submit_error = SubmissionError("node manager refused the container")
    return coordinator
