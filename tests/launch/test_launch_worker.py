"""
Tests for the launch worker state machine.

Drives single workers synchronously against a recording coordinator and a
temp-dir cluster filesystem: success paths with and without an image, each
failure stage, and the exactly-once completion callback.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from launchspine.core.errors import (
    CredentialError,
    ErrorCategory,
    LaunchError,
    ProviderError,
    ResourceStagingError,
    SubmissionError,
)
from launchspine.launch.keys import LOCAL_TARBALL_INSTALL_SUBDIR, PROPAGATED_CONF_DIR_NAME
from launchspine.launch.models import ClusterDescriptor, RoleSpec
from launchspine.launch.providers import CommandRoleProvider, HBaseRoleProvider
from launchspine.launch.worker import LaunchState, LaunchWorker, build_env_map

# ── Helpers ─────────────────────────────────────────────────────────────


def _worker(coordinator, container, role="worker", provider=None, options=None, **kwargs):
    return LaunchWorker(
        coordinator,
        container,
        RoleSpec(role, options or {}),
        provider or CommandRoleProvider(role),
        staging_dir=kwargs.pop("staging_dir", "/tmp/staging-unused"),
        **kwargs,
    )


class _ExplodingProvider(CommandRoleProvider):
    def __init__(self, role_name, exc):
        super().__init__(role_name)
        self.exc = exc

    def populate_launch_context(self, context, filesystem, staging_dir, role_name):
        raise self.exc


# ── Success ─────────────────────────────────────────────────────────────


class TestSuccessfulLaunch:
    """Happy path through every state."""

    def test_preinstalled_worker_command(self, coordinator, make_container):
        worker = _worker(coordinator, make_container("c-007"))

        outcome = worker.run()

        assert outcome.succeeded
        assert outcome.error is None
        assert len(coordinator.submissions) == 1
        _, context, record = coordinator.submissions[0]
        assert record.command == (
            "/opt/hbase/bin/start-worker --config propagatedconf server start "
            "1><LOG_DIR>/out.txt 2><LOG_DIR>/err.txt"
        )
        assert context.commands == [record.command]

    def test_visits_every_state_in_order(self, coordinator, make_container):
        worker = _worker(coordinator, make_container())
        worker.run()

        assert worker.history == [
            LaunchState.CREATED,
            LaunchState.CREDENTIALED,
            LaunchState.CONTEXT_BUILT,
            LaunchState.RESOURCES_RESOLVED,
            LaunchState.COMMAND_READY,
            LaunchState.SUBMITTED,
            LaunchState.DONE,
        ]
        assert worker.state is LaunchState.DONE

    def test_no_image_stages_config_only(self, coordinator, make_container):
        _worker(coordinator, make_container()).run()

        _, context, record = coordinator.submissions[0]
        assert list(context.local_resources) == [
            f"{PROPAGATED_CONF_DIR_NAME}/core-site.xml",
            f"{PROPAGATED_CONF_DIR_NAME}/hbase-site.xml",
            f"{PROPAGATED_CONF_DIR_NAME}/log4j.properties",
        ]
        assert record.command.startswith("/opt/hbase/bin/")

    def test_image_staged_after_config_and_path_relative(
        self, coordinator, cluster, make_container
    ):
        coordinator.descriptor = ClusterDescriptor(image_path=str(cluster.image_path))

        _worker(coordinator, make_container()).run()

        _, context, record = coordinator.submissions[0]
        keys = list(context.local_resources)
        assert keys[-1] == LOCAL_TARBALL_INSTALL_SUBDIR
        assert all(k.startswith(PROPAGATED_CONF_DIR_NAME + "/") for k in keys[:-1])
        executable = record.command.split()[0]
        assert executable == f"{LOCAL_TARBALL_INSTALL_SUBDIR}/bin/start-worker"
        assert not executable.startswith("/")
        assert record.environment[-1].startswith(f"{LOCAL_TARBALL_INSTALL_SUBDIR}=file://")

    def test_record_lists_resources_in_staging_order(self, coordinator, make_container):
        _worker(coordinator, make_container("c-042")).run()

        _, context, record = coordinator.submissions[0]
        assert record.name == "c-042"
        assert record.role == "worker"
        assert record.node == "node1.example.com:45454"
        assert record.environment == [
            f"{key}={res.locator}" for key, res in context.local_resources.items()
        ]

    def test_token_scoped_to_node(self, coordinator, make_container):
        _worker(coordinator, make_container(host="n7", port=8041)).run()

        _, context, _ = coordinator.submissions[0]
        assert [t.service for t in context.tokens] == ["n7:8041"]

    def test_descriptor_read_once_per_launch(self, coordinator, cluster, make_container):
        descriptors = iter([
            ClusterDescriptor(image_path=str(cluster.image_path)),
            ClusterDescriptor(install_home="/opt/hbase"),
        ])
        coordinator.get_cluster_descriptor = lambda: next(descriptors)

        _worker(coordinator, make_container()).run()

        _, context, record = coordinator.submissions[0]
        assert LOCAL_TARBALL_INSTALL_SUBDIR in context.local_resources
        assert record.command.split()[0] == f"{LOCAL_TARBALL_INSTALL_SUBDIR}/bin/start-worker"
        assert next(descriptors).install_home == "/opt/hbase"

    def test_outcome_to_dict(self, coordinator, make_container):
        outcome = _worker(coordinator, make_container("c-042")).run()

        data = outcome.to_dict()

        assert data["container_id"] == "c-042"
        assert data["succeeded"] is True
        assert data["error"] is None
        assert data["record"]["command"] == outcome.record.command

    def test_environment_merges_provider_role_and_log_dir(self, coordinator, make_container):
        provider = CommandRoleProvider("worker", environment={"JAVA_HOME": "/jdk", "A": "provider"})
        worker = _worker(
            coordinator,
            make_container(),
            provider=provider,
            options={"env.A": "role", "env.B": "2", "heap": "1g"},
        )
        worker.run()

        _, context, _ = coordinator.submissions[0]
        assert context.environment["JAVA_HOME"] == "/jdk"
        assert context.environment["A"] == "role"
        assert context.environment["B"] == "2"
        assert context.environment["ROLE_NAME"] == "worker"
        assert context.environment["ROLE_LOG_DIR"] == "<LOG_DIR>"
        assert "heap" not in context.environment

    def test_hbase_provider_region_server(self, coordinator, cluster, make_container):
        worker = _worker(
            coordinator,
            make_container(),
            provider=HBaseRoleProvider(heap_size_mb=512),
            staging_dir=cluster.staging_dir,
        )
        worker.run()

        _, context, record = coordinator.submissions[0]
        assert record.command.split()[:5] == [
            "/opt/hbase/bin/hbase", "--config", "propagatedconf", "regionserver", "start",
        ]
        assert context.environment["HBASE_LOG_DIR"] == "<LOG_DIR>"
        assert context.environment["HBASE_HEAPSIZE"] == "512"
        # provider entry first, then the merged config bundle
        keys = list(context.local_resources)
        assert keys[0] == "role/hbase-role.properties"
        assert keys[1].startswith(PROPAGATED_CONF_DIR_NAME + "/")
        staged = cluster.staging_dir / "c-007" / "worker" / "hbase-role.properties"
        assert staged.read_text().startswith("hbase.role=worker")


# ── Failure ─────────────────────────────────────────────────────────────


class TestFailedLaunch:
    """Every stage failure ends in DONE with no submission."""

    def test_malformed_token(self, coordinator, make_container):
        worker = _worker(coordinator, make_container(token=b"{not json"))

        outcome = worker.run()

        assert not outcome.succeeded
        assert isinstance(outcome.error, CredentialError)
        assert coordinator.submissions == []
        assert worker.history == [LaunchState.CREATED, LaunchState.DONE]

    def test_provider_io_error_wrapped(self, coordinator, make_container):
        provider = _ExplodingProvider("worker", PermissionError("staging dir read-only"))

        outcome = _worker(coordinator, make_container(), provider=provider).run()

        assert isinstance(outcome.error, ProviderError)
        assert isinstance(outcome.error.cause, PermissionError)
        assert outcome.error.context.stage == LaunchState.CREDENTIALED.value
        assert coordinator.submissions == []

    def test_provider_error_propagates_unchanged(self, coordinator, make_container):
        original = ProviderError("role not supported")
        provider = _ExplodingProvider("worker", original)

        outcome = _worker(coordinator, make_container(), provider=provider).run()

        assert outcome.error is original

    def test_missing_config_dir(self, coordinator, cluster, make_container):
        coordinator.conf_dir = cluster.root / "nope"

        outcome = _worker(coordinator, make_container()).run()

        assert isinstance(outcome.error, ResourceStagingError)
        assert outcome.record is None
        assert coordinator.submissions == []

    def test_missing_image(self, coordinator, cluster, make_container):
        coordinator.descriptor = ClusterDescriptor(image_path=str(cluster.root / "missing.tgz"))

        outcome = _worker(coordinator, make_container()).run()

        assert isinstance(outcome.error, ResourceStagingError)
        assert coordinator.submissions == []

    def test_submission_rejected(self, rejecting_coordinator, make_container):
        worker = _worker(rejecting_coordinator, make_container())

        outcome = worker.run()

        assert isinstance(outcome.error, SubmissionError)
        assert outcome.error.context.stage == LaunchState.COMMAND_READY.value
        assert LaunchState.SUBMITTED not in worker.history

    def test_submission_io_error_wrapped(self, coordinator, make_container):
        coordinator.submit_error = ConnectionRefusedError("nm down")

        outcome = _worker(coordinator, make_container()).run()

        assert isinstance(outcome.error, SubmissionError)
        assert isinstance(outcome.error.cause, ConnectionRefusedError)

    def test_unresolvable_executable(self, coordinator, make_container):
        coordinator.descriptor = ClusterDescriptor()

        outcome = _worker(coordinator, make_container()).run()

        assert type(outcome.error) is LaunchError
        assert coordinator.submissions == []

    def test_unexpected_exception_is_contained(self, coordinator, make_container):
        provider = _ExplodingProvider("worker", KeyError("bug"))

        outcome = _worker(coordinator, make_container(), provider=provider).run()

        assert not outcome.succeeded
        assert outcome.error.category is ErrorCategory.INTERNAL
        assert len(coordinator.finished) == 1

    def test_error_context_names_container_and_role(self, coordinator, make_container):
        outcome = _worker(coordinator, make_container("c-9", token=b"")).run()

        ctx = outcome.error.context.to_dict()
        assert ctx["container_id"] == "c-9"
        assert ctx["role"] == "worker"
        assert ctx["stage"] == "CREATED"


# ── Completion callback ─────────────────────────────────────────────────


class TestCompletionCallback:
    """on_worker_finished fires exactly once on every path."""

    @pytest.mark.parametrize(
        "breakage",
        ["none", "token", "provider", "config", "image", "executable", "submit"],
    )
    def test_called_exactly_once(self, coordinator, cluster, make_container, breakage):
        container = make_container(token=b"garbage" if breakage == "token" else None)
        provider = (
            _ExplodingProvider("worker", OSError("disk"))
            if breakage == "provider"
            else None
        )
        if breakage == "config":
            coordinator.conf_dir = cluster.root / "missing"
        if breakage == "image":
            coordinator.descriptor = ClusterDescriptor(image_path=str(cluster.root / "gone.tgz"))
        if breakage == "executable":
            coordinator.descriptor = ClusterDescriptor()
        if breakage == "submit":
            coordinator.submit_error = SubmissionError("no")

        worker = _worker(coordinator, container, provider=provider)
        worker.run()

        assert coordinator.finished == [worker]
        assert worker.state is LaunchState.DONE

    def test_worker_state_is_done_inside_callback(self, coordinator, make_container):
        seen = []
        coordinator.on_worker_finished = lambda w: seen.append((w.state, w.outcome.succeeded))

        _worker(coordinator, make_container()).run()

        assert seen == [(LaunchState.DONE, True)]

    def test_callback_error_logged_and_raised(self, coordinator, make_container):
        log = MagicMock()
        log.bind.return_value = log
        coordinator.on_worker_finished = MagicMock(side_effect=RuntimeError("bookkeeping"))
        worker = _worker(coordinator, make_container(), logger=log)

        with pytest.raises(RuntimeError, match="bookkeeping"):
            worker.run()

        log.exception.assert_called_once_with("worker.finish_callback_failed")
        assert worker.state is LaunchState.DONE

    def test_worker_cannot_run_twice(self, coordinator, make_container):
        worker = _worker(coordinator, make_container())
        worker.run()

        with pytest.raises(RuntimeError):
            worker.run()
        assert len(coordinator.finished) == 1


class TestInjectedLogger:
    def test_failure_logged_with_role_and_error(self, coordinator, make_container):
        log = MagicMock()
        log.bind.return_value = log

        _worker(coordinator, make_container(token=b"[]"), logger=log).run()

        log.bind.assert_called_once_with(container_id="c-007", role="worker")
        event, = log.error.call_args.args
        fields = log.error.call_args.kwargs
        assert event == "launch.failed"
        assert fields["error_type"] == "CredentialError"
        assert fields["context"]["role"] == "worker"

    def test_success_logs_command(self, coordinator, make_container):
        log = MagicMock()
        log.bind.return_value = log

        _worker(coordinator, make_container(), logger=log).run()

        events = [c.args[0] for c in log.info.call_args_list]
        assert "launch.command" in events
        assert "launch.submitted" in events
        assert events.count("launch.resource") == 3


def test_build_env_map():
    assert build_env_map({"env.X": "1", "env.": "skip", "other": "2"}) == {"X": "1"}
