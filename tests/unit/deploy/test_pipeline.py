"""Unit tests for DeploymentPipeline against an in-memory host.

Covers the properties a deployment must keep: first install, upgrade,
idempotence, fail-fast, the self-write-protected binary, dangling links.
"""
import pytest
from unittest.mock import Mock

from crawldeploy.core import Logger, TimeProvider
from crawldeploy.deploy import (
    ChannelError,
    DeploymentError,
    DeploymentPipeline,
    LinkFailure,
    ServiceRuntimeState,
    SupervisorQueryFailure,
    TransferFailure,
)

STEP_NAMES = [
    "asset-sync",
    "data-link-repair",
    "service-quiescer",
    "unit-installer",
    "binary-deployer",
    "service-activator",
]


def make_pipeline(config, host, logger=None):
    return DeploymentPipeline.from_config(config, host, host, logger or Mock(spec=Logger))


class TestFirstInstall:
    """Empty host: no unit file, no binary, no link."""

    def test_all_steps_run_in_order(self, config, fake_host):
        result = make_pipeline(config, fake_host).run()

        assert result.success is True
        assert result.host == "fake-host"
        assert result.step_names == STEP_NAMES

    def test_no_stop_issued(self, config, fake_host):
        result = make_pipeline(config, fake_host).run()

        assert "stop" not in fake_host.event_names()
        assert result.metadata["previous_install_stopped"] is False

    def test_end_state(self, config, fake_host, artifact_dir):
        make_pipeline(config, fake_host).run()

        asset = fake_host.files["/home/fedicrawler/www/index.html"]
        assert asset.content == (artifact_dir / "index.html").read_bytes()
        assert (asset.owner, asset.group, asset.mode) == ("fedicrawler", "fedicrawler", 0o644)

        unit = fake_host.files["/etc/systemd/system/minoru-fediverse-crawler.service"]
        assert unit.mode == 0o644

        binary = fake_host.files["/home/fedicrawler/minoru-fediverse-crawler"]
        assert (binary.owner, binary.group, binary.mode) == ("fedicrawler", "fedicrawler", 0o500)

        assert fake_host.query_status("minoru-fediverse-crawler") == ServiceRuntimeState.RUNNING
        assert fake_host.is_enabled("minoru-fediverse-crawler")

    def test_link_dangles_without_failing(self, config, fake_host):
        make_pipeline(config, fake_host).run()

        assert fake_host.links["/home/fedicrawler/www/instances.json"] == "/home/fedicrawler/instances.json"
        assert "/home/fedicrawler/instances.json" not in fake_host.files

    def test_reload_precedes_start_and_enable(self, config, fake_host):
        make_pipeline(config, fake_host).run()

        names = fake_host.event_names()
        assert names[-3:] == ["reload", "start", "enable"]


class TestUpgrade:
    """Host with the unit installed and the service running."""

    def test_stop_issued_once_before_binary_copy(self, config, fake_host):
        fake_host.install_previous_release(config)

        make_pipeline(config, fake_host).run()

        assert fake_host.event_names().count("stop") == 1
        stop_at = fake_host.events.index(("stop", "minoru-fediverse-crawler"))
        copy_at = fake_host.events.index(("copy", "/home/fedicrawler/minoru-fediverse-crawler"))
        assert stop_at < copy_at

    def test_service_running_afterwards_with_new_binary(self, config, fake_host, artifact_dir):
        fake_host.install_previous_release(config)

        result = make_pipeline(config, fake_host).run()

        assert result.metadata["previous_install_stopped"] is True
        assert fake_host.query_status("minoru-fediverse-crawler") == ServiceRuntimeState.RUNNING
        binary = fake_host.files["/home/fedicrawler/minoru-fediverse-crawler"]
        assert binary.content == (artifact_dir / "minoru-fediverse-crawler").read_bytes()

    def test_installed_but_stopped_unit_is_still_stopped(self, config, fake_host):
        fake_host.install_previous_release(config)
        fake_host.running.clear()

        make_pipeline(config, fake_host).run()

        assert ("stop", "minoru-fediverse-crawler") in fake_host.events

    def test_regular_file_in_link_path_is_replaced(self, config, fake_host):
        fake_host.install_previous_release(config)
        fake_host.put_file("/home/fedicrawler/www/instances.json", b"{}")

        make_pipeline(config, fake_host).run()

        assert "/home/fedicrawler/www/instances.json" not in fake_host.files
        assert fake_host.links["/home/fedicrawler/www/instances.json"] == "/home/fedicrawler/instances.json"


class TestIdempotence:
    def test_second_run_yields_same_state(self, config, fake_host):
        make_pipeline(config, fake_host).run()
        first = fake_host.snapshot()
        first_writes = [e for e in fake_host.events if e[0] in ("copy", "link")]

        fake_host.events.clear()
        make_pipeline(config, fake_host).run()

        assert fake_host.snapshot() == first
        # Same writes performed again, never skipped
        assert [e for e in fake_host.events if e[0] in ("copy", "link")] == first_writes

    def test_rerun_after_partial_failure_converges(self, config, fake_host):
        fake_host.failures[("copy", "/home/fedicrawler/minoru-fediverse-crawler")] = TransferFailure("disk full")
        with pytest.raises(TransferFailure):
            make_pipeline(config, fake_host).run()

        del fake_host.failures[("copy", "/home/fedicrawler/minoru-fediverse-crawler")]
        make_pipeline(config, fake_host).run()

        reference = type(fake_host)()
        make_pipeline(config, reference).run()
        assert fake_host.snapshot() == reference.snapshot()


class TestFailFast:
    def test_unit_install_failure_stops_pipeline(self, config, fake_host):
        fake_host.failures[("copy", "/etc/systemd/system/minoru-fediverse-crawler.service")] = \
            TransferFailure("permission denied")

        with pytest.raises(TransferFailure) as exc_info:
            make_pipeline(config, fake_host).run()

        assert exc_info.value.step == "unit-installer"
        assert exc_info.value.completed_steps == ["asset-sync", "data-link-repair", "service-quiescer"]
        assert "/home/fedicrawler/minoru-fediverse-crawler" not in fake_host.files
        assert "start" not in fake_host.event_names()
        assert "reload" not in fake_host.event_names()

    def test_query_failure_is_not_treated_as_absent(self, config, fake_host):
        fake_host.install_previous_release(config)
        fake_host.failures["unit_exists"] = SupervisorQueryFailure("sudo: a password is required")

        with pytest.raises(SupervisorQueryFailure):
            make_pipeline(config, fake_host).run()

        # The running binary was not overwritten
        assert fake_host.files["/home/fedicrawler/minoru-fediverse-crawler"].content == b"old-binary"
        assert "stop" not in fake_host.event_names()

    def test_link_failure_aborts_before_service_touched(self, config, fake_host):
        fake_host.failures[("link", "/home/fedicrawler/www/instances.json")] = LinkFailure("read-only fs")

        with pytest.raises(LinkFailure) as exc_info:
            make_pipeline(config, fake_host).run()

        assert exc_info.value.completed_steps == ["asset-sync"]
        assert "unit_exists" not in fake_host.event_names()

    def test_error_is_logged(self, config, fake_host):
        logger = Mock(spec=Logger)
        fake_host.failures["stop"] = ChannelError("connection reset")
        fake_host.install_previous_release(config)

        with pytest.raises(DeploymentError):
            make_pipeline(config, fake_host, logger).run()

        logger.error.assert_called_once()
        assert "service-quiescer" in logger.error.call_args[0][0]


class TestPlanAndLogging:
    def test_plan_touches_nothing(self, config, fake_host):
        plan = make_pipeline(config, fake_host).plan()

        assert len(plan) == 6
        assert "index.html" in plan[0]
        assert "u=rx,go=" in plan[4]
        assert fake_host.events == []

    def test_progress_logged_per_step(self, config, fake_host):
        logger = Mock(spec=Logger)
        make_pipeline(config, fake_host, logger).run()

        messages = [c[0][0] for c in logger.info.call_args_list]
        assert any(m.startswith("[1/6]") for m in messages)
        assert any(m.startswith("[6/6]") for m in messages)

    def test_step_durations_use_time_provider(self, config, fake_host):
        clock = Mock(spec=TimeProvider)
        clock.current_time.side_effect = [float(t) for t in range(12)]
        pipeline = DeploymentPipeline.from_config(
            config, fake_host, fake_host, Mock(spec=Logger), time_provider=clock
        )

        result = pipeline.run()

        assert [s.duration_seconds for s in result.steps] == [1.0] * 6


class TestCustomSteps:
    def test_non_deployment_errors_propagate_untouched(self):
        step = Mock()
        step.name = "boom"
        step.describe.return_value = "explode"
        step.apply.side_effect = RuntimeError("bug")
        pipeline = DeploymentPipeline([step], "h", Mock(spec=Logger))

        with pytest.raises(RuntimeError):
            pipeline.run()
