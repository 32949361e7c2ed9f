"""Tests for service creation through the CLI."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from onionctl.cli import cli
from onionctl.domain.records import ServiceStatus
from onionctl.infrastructure.workspace import Workspace
from tests.conftest import FakeSystem


@pytest.mark.usefixtures("_cli_home")
class TestCreateCommand:
    def test_creates_without_prompt_when_not_a_tty(
        self, cli_runner: CliRunner, fake_system: FakeSystem, workspace: Workspace
    ) -> None:
        result = cli_runner.invoke(cli, [], obj={"system": fake_system})

        assert result.exit_code == 0, result.output
        assert "Onion service created" in result.stdout
        assert "Creating onion service" in result.stderr
        [record] = workspace.registry.load()
        assert record.status == ServiceStatus.ACTIVE
        assert fake_system.started == []

    def test_website_flag(
        self, cli_runner: CliRunner, fake_system: FakeSystem, workspace: Workspace
    ) -> None:
        result = cli_runner.invoke(cli, ["--website"], obj={"system": fake_system})
        assert result.exit_code == 0, result.output
        assert len(fake_system.started) == 1
        [record] = workspace.registry.load()
        assert record.website_directory == workspace.website_directory(record.name)

    def test_json_output(self, cli_runner: CliRunner, fake_system: FakeSystem) -> None:
        result = cli_runner.invoke(
            cli, ["--json", "--no-website"], obj={"system": fake_system}
        )
        assert result.exit_code == 0
        assert result.stderr == ""
        payload = json.loads(result.stdout)
        assert payload["data"]["onion_url"].startswith("http://")
        assert payload["data"]["onion_url"].endswith(".onion")

    def test_tor_missing(
        self, cli_runner: CliRunner, fake_system: FakeSystem, workspace: Workspace
    ) -> None:
        del fake_system.programs["tor"]
        result = cli_runner.invoke(cli, ["--no-interact"], obj={"system": fake_system})
        assert result.exit_code == 1
        assert "Tor is not installed" in result.stderr
        assert "fix: sudo apt-get install -y tor" in result.stderr
        assert workspace.registry.load() == []

    def test_timeout_reports_hints(
        self, cli_runner: CliRunner, fake_system: FakeSystem, workspace: Workspace
    ) -> None:
        fake_system.generate_identities = False
        result = cli_runner.invoke(cli, ["--no-website"], obj={"system": fake_system})
        assert result.exit_code == 1
        assert "troubleshooting:" in result.stderr
        assert "tor --verify-config" in result.stderr
        [record] = workspace.registry.load()
        assert record.status == ServiceStatus.ERROR
