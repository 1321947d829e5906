"""Tests for the labsync command-line interface."""

import csv
from io import StringIO
from unittest.mock import patch

import pytest
import yaml
from click.testing import CliRunner

from labsync.app import build_app
from labsync.cli import cli
from labsync.models import Component, SystemData
from labsync.remote import InMemoryRemoteStore
from labsync.storage import LocalStore


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({"data_dir": str(tmp_path / "data")}))
    return path


@pytest.fixture
def seeded_store(tmp_path, student, component):
    store = LocalStore(tmp_path / "data" / "data.json")
    store.add_user(student)
    store.add_component(component)
    store.create_login_session(student)
    return store


def with_remote(config_file, remote):
    """Point the config at a remote and route build_app to the given store."""
    data = yaml.safe_load(config_file.read_text())
    data["remote_url"] = "https://lab.example.com/api"
    config_file.write_text(yaml.safe_dump(data))

    async def fake_build_app(config, local=None):
        return await build_app(config, remote=remote, local=local)

    return patch("labsync.cli.build_app", new=fake_build_app)


class TestLocalCommands:
    """Test commands that only read the local store."""

    def test_stats(self, config_file, seeded_store):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "stats"])
        assert result.exit_code == 0, result.output
        assert "Total users" in result.output
        assert "Active sessions" in result.output

    def test_status_without_remote(self, config_file, seeded_store):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "status"])
        assert result.exit_code == 0, result.output
        assert "loginSessions" in result.output
        assert "not configured" in result.output

    def test_export_sessions_to_stdout(self, config_file, seeded_store, student):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "export-sessions"])
        assert result.exit_code == 0, result.output
        rows = list(csv.DictReader(StringIO(result.output)))
        assert rows[0]["User Email"] == student.email
        assert rows[0]["Status"] == "Active"

    def test_export_sessions_to_file(self, tmp_path, config_file, seeded_store):
        output = tmp_path / "sessions.csv"
        result = CliRunner().invoke(
            cli, ["--config", str(config_file), "export-sessions", "--output", str(output)]
        )
        assert result.exit_code == 0, result.output
        assert output.read_text().startswith("Session ID,User ID,User Name")

    def test_corrupt_store_reports_error(self, tmp_path, config_file):
        data_path = tmp_path / "data" / "data.json"
        data_path.parent.mkdir(parents=True)
        data_path.write_text("not json")
        result = CliRunner().invoke(cli, ["--config", str(config_file), "stats"])
        assert result.exit_code == 1
        assert "Failed to load local data" in result.output


class TestRemoteCommands:
    """Test commands that talk to the remote store."""

    def test_sync_requires_remote_url(self, config_file):
        result = CliRunner().invoke(cli, ["--config", str(config_file), "sync"])
        assert result.exit_code == 1
        assert "remote_url" in result.output

    def test_sync_migrates_to_empty_remote(self, config_file, seeded_store):
        remote = InMemoryRemoteStore()
        with with_remote(config_file, remote):
            result = CliRunner().invoke(cli, ["--config", str(config_file), "sync"])

        assert result.exit_code == 0, result.output
        assert "migrated" in result.output
        assert remote.snapshot().entity_count() == 3

    def test_sync_merges_remote_data(self, config_file, seeded_store):
        remote = InMemoryRemoteStore(SystemData(components=[Component(id="c-remote", name="Lidar")]))
        with with_remote(config_file, remote):
            result = CliRunner().invoke(cli, ["--config", str(config_file), "sync"])

        assert result.exit_code == 0, result.output
        assert "merged" in result.output
        reopened = LocalStore(seeded_store.path)
        assert [c.id for c in reopened.get_components()] == ["c-remote", "comp-servo"]

    def test_sync_offline_is_skipped(self, config_file, seeded_store):
        remote = InMemoryRemoteStore()
        remote.reachable = False
        with with_remote(config_file, remote):
            result = CliRunner().invoke(cli, ["--config", str(config_file), "sync"])

        assert result.exit_code == 0, result.output
        assert "skipped_offline" in result.output
        assert remote.calls == []

    def test_status_with_remote(self, config_file, seeded_store):
        with with_remote(config_file, InMemoryRemoteStore()):
            result = CliRunner().invoke(cli, ["--config", str(config_file), "status"])

        assert result.exit_code == 0, result.output
        assert "online" in result.output
        assert "Sync in progress: no" in result.output
