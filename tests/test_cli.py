"""Tests for the command line interface."""

import pytest
from click.testing import CliRunner

from sol_gateway import cli


@pytest.fixture
def runner(notion, settings, monkeypatch) -> CliRunner:
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    monkeypatch.setattr(cli, "NotionClient", lambda token, notion_version=None: notion.client())
    return CliRunner()


def test_schema_command(runner):
    result = runner.invoke(cli.main, ["schema", "--db", "roadmap"])

    assert result.exit_code == 0
    assert "Database Roadmap has 2 properties" in result.output
    assert "Phase: title (title)" in result.output
    assert "options: Q1, Q2" in result.output


def test_schema_command_shows_relation_targets(runner):
    result = runner.invoke(cli.main, ["schema", "--db", "tasks"])

    assert result.exit_code == 0
    assert "relation -> 22222222222222222222222222222222" in result.output


def test_schema_command_reports_errors(runner, notion):
    notion.fail("GET", "/databases/22222222-2222-2222-2222-222222222222", 403)

    result = runner.invoke(cli.main, ["schema", "--db", "roadmap"])

    assert result.exit_code == 1
    assert "Notion API error (403)" in result.output


def test_users_command(runner, notion):
    notion.add_user("Ada", "ada@example.com")

    result = runner.invoke(cli.main, ["users"])

    assert result.exit_code == 0
    assert "1 users" in result.output
    assert "Ada <ada@example.com>" in result.output


def test_missing_notion_key(notion, settings, monkeypatch):
    monkeypatch.setattr(cli, "get_settings", lambda: settings.model_copy(update={"notion_key": ""}))

    result = CliRunner().invoke(cli.main, ["users"])

    assert result.exit_code == 1
    assert "NOTION_KEY not set" in result.output


def test_env_file_option(notion, tmp_path, monkeypatch):
    monkeypatch.setattr(cli, "NotionClient", lambda token, notion_version=None: notion.client())
    env_file = tmp_path / "gateway.env"
    env_file.write_text("NOTION_KEY=secret_file\nROADMAP_DATABASE_ID=22222222-2222-2222-2222-222222222222\n")

    result = CliRunner().invoke(cli.main, ["--env-file", str(env_file), "schema", "--db", "roadmap"])

    assert result.exit_code == 0
    assert "Database Roadmap has 2 properties" in result.output


def test_invalid_settings_are_reported_by_subcommand(tmp_path, monkeypatch):
    monkeypatch.delenv("PORT", raising=False)
    env_file = tmp_path / "gateway.env"
    env_file.write_text("PORT=not-a-port\n")

    result = CliRunner().invoke(cli.main, ["--env-file", str(env_file), "users"])

    assert result.exit_code == 1
    assert "Error loading settings" in result.output
