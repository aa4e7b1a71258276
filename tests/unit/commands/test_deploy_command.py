"""Unit tests for the deploy command.

The channel factory and supervisor are patched so that the command drives the
in-memory FakeHost from conftest.
"""
import argparse
import pytest
from unittest.mock import patch

from crawldeploy.commands import deploy
from crawldeploy.deploy import ChannelError, TransferFailure

CONFIG_YAML = """\
artifacts:
  binary: minoru-fediverse-crawler
  asset: index.html
  unit: minoru-fediverse-crawler.service
"""


@pytest.fixture
def config_file(artifact_dir):
    path = artifact_dir / "crawldeploy.yaml"
    path.write_text(CONFIG_YAML)
    return path


def make_args(config_file, **overrides):
    parser = argparse.ArgumentParser()
    deploy.setup_parser(parser)
    argv = ["deploy@crawler.example", "--config", str(config_file)]
    args = parser.parse_args(argv)
    for key, value in overrides.items():
        setattr(args, key, value)
    return args


@pytest.fixture
def patched_host(fake_host):
    with patch.object(deploy.ChannelFactory, 'from_host_string', return_value=fake_host) as factory, \
         patch.object(deploy, 'SystemdSupervisor', return_value=fake_host):
        yield fake_host, factory


class TestParser:
    def test_defaults(self, config_file):
        args = make_args(config_file)

        assert args.host == "deploy@crawler.example"
        assert args.dry_run is False
        assert args.skip_preflight is False
        assert args.binary is None


class TestExecute:
    def test_first_install(self, config_file, patched_host, capsys):
        fake_host, factory = patched_host

        assert deploy.execute(make_args(config_file)) == 0

        out = capsys.readouterr().out
        assert "DEPLOY fake-host" in out
        assert "[6/6]" in out
        assert "Installed (no previous unit found)" in out
        assert fake_host.is_enabled("minoru-fediverse-crawler")
        factory.assert_called_once_with(
            "deploy@crawler.example", become=True, connect_timeout=10, command_timeout=300
        )

    def test_upgrade_message(self, config_file, patched_host, capsys):
        fake_host, _ = patched_host
        deploy.execute(make_args(config_file))
        capsys.readouterr()

        assert deploy.execute(make_args(config_file)) == 0
        assert "Upgraded running installation" in capsys.readouterr().out

    def test_dry_run_touches_nothing(self, config_file, patched_host, capsys):
        fake_host, _ = patched_host

        assert deploy.execute(make_args(config_file, dry_run=True)) == 0

        out = capsys.readouterr().out
        assert "Deployment plan for fake-host" in out
        assert "  6. " in out
        assert fake_host.events == []

    def test_preflight_failure(self, config_file, patched_host, capsys):
        fake_host, _ = patched_host
        fake_host.failures["connect"] = ChannelError("Passwordless SSH not configured")

        assert deploy.execute(make_args(config_file)) == 1

        captured = capsys.readouterr()
        assert "Passwordless SSH not configured" in captured.err
        assert "Deployment failed" in captured.out
        assert fake_host.events == []

    def test_skip_preflight(self, config_file, patched_host):
        fake_host, _ = patched_host
        fake_host.failures["connect"] = ChannelError("unreachable")

        assert deploy.execute(make_args(config_file, skip_preflight=True)) == 0

    def test_step_failure_logged_once(self, config_file, patched_host, capsys):
        fake_host, _ = patched_host
        fake_host.failures[("copy", "/home/fedicrawler/minoru-fediverse-crawler")] = TransferFailure("disk full")

        assert deploy.execute(make_args(config_file)) == 1

        err = capsys.readouterr().err
        assert err.count("disk full") == 1
        assert "binary-deployer" in err

    def test_binary_override(self, config_file, patched_host, tmp_path):
        fake_host, _ = patched_host
        other = tmp_path / "minoru-fediverse-crawler"
        other.write_bytes(b"\x7fELF hotfix")

        assert deploy.execute(make_args(config_file, binary=str(other))) == 0
        assert fake_host.files["/home/fedicrawler/minoru-fediverse-crawler"].content == b"\x7fELF hotfix"

    def test_bad_config(self, tmp_path, patched_host, capsys):
        path = tmp_path / "bad.yaml"
        path.write_text("transport:\n  become: maybe\n")

        assert deploy.execute(make_args(path)) == 1
        assert "transport.become" in capsys.readouterr().err

    def test_bad_host_string(self, config_file, capsys):
        args = make_args(config_file, host="deploy@fe80::1")

        assert deploy.execute(args) == 1
        assert "bracketed" in capsys.readouterr().err
