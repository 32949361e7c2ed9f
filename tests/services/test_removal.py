"""Tests for RemovalService: name parsing, plan and execute."""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from onionctl.domain import torrc
from onionctl.infrastructure.workspace import Workspace
from onionctl.services import removal as removal_module
from onionctl.services.removal import RemovalService, parse_names
from tests.conftest import FakeSystem, add_service

MANAGED = "hidden_service_abc123def"


@pytest.fixture
def service(workspace: Workspace) -> RemovalService:
    return RemovalService(workspace)


class TestParseNames:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("svcA", ["svcA"]),
            ("svcA,svcB", ["svcA", "svcB"]),
            ("svcA, svcB  svcC", ["svcA", "svcB", "svcC"]),
            ('"svcA, svcB"', ["svcA", "svcB"]),
            ("svcA,,svcA ,", ["svcA"]),
            (("svcA", "svcB,svcC"), ["svcA", "svcB", "svcC"]),
            ("", []),
        ],
    )
    def test_splitting(self, raw: str | tuple[str, ...], expected: list[str]) -> None:
        assert parse_names(raw) == expected


class TestPlan:
    def test_no_valid_names(self, service: RemovalService) -> None:
        result = service.plan("ghost_service")
        assert not result.ok
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"
        assert "ghost_service" in result.error.message

    def test_describes_everything_to_delete(
        self, service: RemovalService, workspace: Workspace
    ) -> None:
        add_service(workspace, MANAGED, 5000, identity="abc.onion")
        workspace.website_directory(MANAGED).mkdir(parents=True)

        result = service.plan(f"{MANAGED}, ghost")

        assert result.ok
        assert result.data["valid"] == [MANAGED]
        assert result.data["invalid"] == ["ghost"]
        [preview] = result.data["services"]
        assert preview["address"] == "abc.onion"
        assert preview["directory_exists"] is True
        assert preview["website_directories"] == [str(workspace.website_directory(MANAGED))]
        assert preview["torrc_lines"][0] == f"# Hidden Service Configuration - {MANAGED}"
        assert result.data["totals"] == {
            "services": 1,
            "directories": 1,
            "website_directories": 1,
            "managed": 1,
            "torrc_blocks": 1,
        }
        assert result.warnings == ["'ghost' not found in registry; it will be skipped"]

    def test_plan_changes_nothing(self, service: RemovalService, workspace: Workspace) -> None:
        add_service(workspace, MANAGED, 5000)
        registry_before = workspace.registry.path.read_bytes()
        torrc_before = workspace.torrc.read()
        service.plan(MANAGED)
        assert workspace.registry.path.read_bytes() == registry_before
        assert workspace.torrc.read() == torrc_before


class TestExecute:
    def test_partial_batch(
        self, service: RemovalService, workspace: Workspace, fake_system: FakeSystem
    ) -> None:
        add_service(workspace, "svcA", 5000, identity="aaaa.onion")
        directory = workspace.service_directory("svcA")

        result = service.execute(["svcA,svcB"])

        assert not result.ok
        assert result.error is not None
        assert result.error.code == "BULK_PARTIAL"
        assert result.data["succeeded"] == 1
        assert result.data["failed_count"] == 1
        assert result.data["removed"] == ["svcA"]
        assert result.data["failed"] == [{"name": "svcB", "reason": "not found in registry"}]
        assert not directory.exists()
        assert not torrc.has_block(workspace.torrc.read(), "svcA")
        assert workspace.registry.find("svcA") is None
        assert len(fake_system.reloads()) == 1

    def test_all_succeed_with_one_reload(
        self, service: RemovalService, workspace: Workspace, fake_system: FakeSystem
    ) -> None:
        add_service(workspace, MANAGED, 5000, identity="abc.onion")
        add_service(workspace, "svc_hand", 8080)
        site = workspace.website_directory(MANAGED)
        site.mkdir(parents=True)
        workspace.pids.write(MANAGED, 777)
        fake_system.alive.add(777)
        original = workspace.torrc.read()

        result = service.execute([MANAGED, "svc_hand"])

        assert result.ok
        assert result.data["succeeded"] == 2
        assert result.data["reloaded"] is True
        assert not site.exists()
        assert fake_system.terminated == [777]
        assert workspace.pids.read(MANAGED) is None
        assert workspace.registry.load() == []
        assert torrc.block_names(workspace.torrc.read()) == []
        assert "SocksPort 9050" in workspace.torrc.read()
        assert original != workspace.torrc.read()
        assert len(fake_system.reloads()) == 1

    def test_unknown_names_only(
        self, service: RemovalService, workspace: Workspace, fake_system: FakeSystem
    ) -> None:
        add_service(workspace, "svcA", 5000)
        before = workspace.registry.path.read_bytes()
        result = service.execute(["ghost_service"])
        assert result.error is not None
        assert result.error.code == "NOT_FOUND"
        assert workspace.registry.path.read_bytes() == before
        assert fake_system.reloads() == []

    def test_failure_does_not_stop_the_batch(
        self,
        service: RemovalService,
        workspace: Workspace,
        fake_system: FakeSystem,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        add_service(workspace, "svcA", 5000)
        add_service(workspace, "svcB", 5001)
        real_rmtree = shutil.rmtree

        def flaky_rmtree(path: Path) -> None:
            if Path(path).name == "svcA":
                raise PermissionError(f"cannot delete {path}")
            real_rmtree(path)

        monkeypatch.setattr(removal_module.shutil, "rmtree", flaky_rmtree)

        result = service.execute(["svcA", "svcB"])

        assert result.error is not None
        assert result.error.code == "BULK_PARTIAL"
        assert result.data["removed"] == ["svcB"]
        assert result.data["failed"][0]["name"] == "svcA"
        assert workspace.registry.find("svcA") is not None
        assert workspace.registry.find("svcB") is None
        assert len(fake_system.reloads()) == 1

    def test_missing_torrc_entry_is_a_warning(
        self, service: RemovalService, workspace: Workspace
    ) -> None:
        add_service(workspace, "svc_hand", 8080, block=False)
        result = service.execute(["svc_hand"])
        assert result.ok
        assert any("no torrc entry found" in w for w in result.warnings)
        assert any("new onion address" in w for w in result.warnings)
        assert workspace.registry.find("svc_hand") is None

    def test_hand_written_directives_are_removed(
        self, service: RemovalService, workspace: Workspace
    ) -> None:
        record = add_service(workspace, "svc_hand", 8080, block=False)
        original = workspace.torrc.read()
        directives = f"HiddenServiceDir {record.directory}/\nHiddenServicePort 80 8080\n"
        workspace.torrc.write(original + directives + "ControlPort 9051\n")
        backups_before = len(workspace.torrc.backups())

        plan = service.plan("svc_hand")
        assert plan.data["services"][0]["torrc_lines"] == directives.splitlines()

        result = service.execute(["svc_hand"])

        assert result.ok
        assert result.warnings == []
        assert workspace.torrc.read() == original + "ControlPort 9051\n"
        assert len(workspace.torrc.backups()) == backups_before + 1
        assert torrc.find_services(workspace.torrc.read()) == []

    def test_removed_hand_written_service_is_not_rediscovered(
        self, service: RemovalService, workspace: Workspace
    ) -> None:
        from onionctl.services.reconcile import ReconcileService

        record = add_service(workspace, "svc_hand", 8080, identity="hand.onion", block=False)
        directives = f"HiddenServiceDir {record.directory}\nHiddenServicePort 80 8080\n"
        workspace.torrc.write(workspace.torrc.read() + directives)

        assert service.execute(["svc_hand"]).ok
        ReconcileService(workspace).sync()

        assert workspace.registry.find("svc_hand") is None

    def test_failed_reload_is_a_warning(
        self, service: RemovalService, workspace: Workspace, fake_system: FakeSystem
    ) -> None:
        add_service(workspace, "svcA", 5000)
        fake_system.control_ok = False
        result = service.execute(["svcA"])
        assert result.ok
        assert result.data["reloaded"] is False
        assert any("restart tor" in w for w in result.warnings)
