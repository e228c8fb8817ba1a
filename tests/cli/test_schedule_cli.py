"""Tests for the ``schedspine`` CLI commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from schedspine.cli.app import app

runner = CliRunner()


@pytest.fixture
def db(tmp_path):
    """--url/--table arguments for an initialized file database."""
    args = ["--url", f"sqlite:///{tmp_path / 'cli.db'}", "--table", "schedules"]
    result = runner.invoke(app, ["init", *args])
    assert result.exit_code == 0, result.output
    return args


def invoke(*args):
    return runner.invoke(app, list(args))


class TestInit:
    def test_init(self, tmp_path):
        result = invoke("init", "--url", f"sqlite:///{tmp_path / 'x.db'}", "--table", "jobs")
        assert result.exit_code == 0
        assert "Initialized" in result.output

    def test_init_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCHEDSPINE_URL", f"sqlite:///{tmp_path / 'env.db'}")
        monkeypatch.setenv("SCHEDSPINE_TABLE", "jobs")
        assert invoke("init").exit_code == 0

    def test_init_missing_table(self, tmp_path):
        result = invoke("init", "--url", f"sqlite:///{tmp_path / 'x.db'}")
        assert result.exit_code == 1
        assert "table option is required" in result.output

    def test_force_requires_confirmation(self, db):
        result = runner.invoke(app, ["init", *db, "--force"], input="n\n")
        assert result.exit_code != 0

    def test_force_confirmed(self, db):
        invoke("schedule", "add", "job1", "--type", "t", *db)
        result = runner.invoke(app, ["init", *db, "--force"], input="y\n")
        assert result.exit_code == 0

        listed = invoke("schedule", "list", *db, "--json")
        assert json.loads(listed.stdout) == []


class TestScheduleAdd:
    def test_add_json(self, db):
        result = invoke(
            "schedule", "add", "job1",
            "--type", "report",
            "--cron", "0 * * * *",
            "--delay", "30",
            "--data", '{"a": 1}',
            "--start", "2024-01-01T00:00:00",
            *db, "--json",
        )
        assert result.exit_code == 0, result.output

        payload = json.loads(result.stdout)
        assert payload["key"] == "job1"
        assert payload["type"] == "report"
        assert payload["data"] == {"a": 1}
        assert payload["delay"] == 30
        assert payload["next_time"].startswith("2024-01-01 00:00:00")
        assert payload["next_run_time"].startswith("2024-01-01 00:00:30")

    def test_add_duplicate(self, db):
        invoke("schedule", "add", "job1", "--type", "t", *db)
        result = invoke("schedule", "add", "job1", "--type", "t", *db)
        assert result.exit_code == 1
        assert "AlreadyExistsError" in result.output

    def test_add_invalid_cron(self, db):
        result = invoke("schedule", "add", "job1", "--type", "t", "--cron", "nope", *db)
        assert result.exit_code == 1
        assert "InvalidScheduleError" in result.output

    def test_add_invalid_data(self, db):
        result = invoke("schedule", "add", "job1", "--type", "t", "--data", "[1]", *db)
        assert result.exit_code == 2


class TestScheduleList:
    def test_list_empty(self, db):
        result = invoke("schedule", "list", *db)
        assert result.exit_code == 0
        assert "No schedules" in result.output

    def test_list_table(self, db):
        invoke("schedule", "add", "job1", "--type", "report", *db)
        result = invoke("schedule", "list", *db)
        assert result.exit_code == 0
        assert "job1" in result.output

    def test_list_json_order(self, db):
        invoke("schedule", "add", "late", "--type", "t", "--start", "2030-01-01", *db)
        invoke("schedule", "add", "early", "--type", "t", "--start", "2020-01-01", *db)

        result = invoke("schedule", "list", *db, "--json")
        assert [s["key"] for s in json.loads(result.stdout)] == ["early", "late"]


class TestScheduleShowUpdateDelete:
    def test_show_missing(self, db):
        result = invoke("schedule", "show", "nope", *db)
        assert result.exit_code == 1
        assert "NotFoundError" in result.output

    def test_update(self, db):
        invoke("schedule", "add", "job1", "--type", "t", "--cron", "0 * * * *", *db)
        result = invoke("schedule", "update", "job1", "--delay", "15", *db, "--json")
        assert result.exit_code == 0

        payload = json.loads(result.stdout)
        assert payload["delay"] == 15
        assert payload["cron"] == "0 * * * *"

    def test_update_nothing(self, db):
        result = invoke("schedule", "update", "nope", *db)
        assert result.exit_code == 0
        assert "Nothing to update" in result.output

    def test_delete(self, db):
        invoke("schedule", "add", "job1", "--type", "t", *db)
        assert invoke("schedule", "delete", "job1", *db).exit_code == 0
        assert invoke("schedule", "show", "job1", *db).exit_code == 1

    def test_delete_missing(self, db):
        assert invoke("schedule", "delete", "nope", *db).exit_code == 1


def test_version():
    result = invoke("--version")
    assert result.exit_code == 0
    assert result.output.startswith("schedspine ")
