"""Tests for host inspection."""

import time
from types import SimpleNamespace
from unittest.mock import MagicMock

from fleet_status.collectors import host
from fleet_status.collectors.host import (
    UNKNOWN,
    InspectionPipeline,
    LocalHostInspector,
    RemoteHostInspector,
    parse_host_report,
)
from fleet_status.data.models import HostReport, ProbeResult
from fleet_status.server.config import RemoteHostConfig


class TestParseHostReport:
    def test_full_report(self, sample_host_report):
        report = parse_host_report(sample_host_report)
        assert report.hostname == "anvil"
        assert report.uptime.startswith("up 3 days")
        assert report.disk.startswith("/dev/nvme0n1p2")
        assert report.disk.endswith("52% /")

    def test_missing_fields_default_to_unknown(self):
        report = parse_host_report("HOSTNAME=anvil\n")
        assert report.hostname == "anvil"
        assert report.uptime == UNKNOWN
        assert report.disk == UNKNOWN

    def test_empty_and_none(self):
        assert parse_host_report("") == HostReport()
        assert parse_host_report(None) == HostReport()

    def test_empty_value_is_unknown(self):
        report = parse_host_report("HOSTNAME=\nDISK=/dev/sda1 50%\n")
        assert report.hostname == UNKNOWN
        assert report.disk == "/dev/sda1 50%"

    def test_to_dict(self, sample_host_report):
        data = parse_host_report(sample_host_report).to_dict()
        assert set(data) == {"hostname", "uptime", "disk"}


class TestRemoteHostInspector:
    def test_build_command_is_non_interactive(self):
        command = RemoteHostInspector(connect_timeout_s=3).build_command("anvil")
        assert command.startswith("ssh ")
        assert "BatchMode=yes" in command
        assert "ConnectTimeout=3" in command
        assert " anvil " in command
        assert "HOSTNAME=" in command

    def test_inspect_parses_output(self, sample_host_report):
        runner = MagicMock(return_value=sample_host_report)
        report = RemoteHostInspector(runner=runner).inspect("anvil", timeout_ms=8000)
        assert report.hostname == "anvil"
        runner.assert_called_once()
        assert runner.call_args[0][1] == 8000

    def test_inspect_failure_returns_none(self):
        runner = MagicMock(return_value=None)
        assert RemoteHostInspector(runner=runner).inspect("anvil") is None


class TestInspectionPipeline:
    def _hosts(self):
        return {
            "anvil": RemoteHostConfig(name="Anvil", primary="10.0.0.5", ssh_target="anvil"),
            "forge": RemoteHostConfig(name="Forge", primary="10.0.0.6"),
        }

    def test_unreachable_host_is_not_inspected(self):
        inspector = MagicMock()
        inspector.inspect.return_value = HostReport(hostname="forge")
        liveness = {
            "anvil": ProbeResult(ok=False, latency_ms=3000, timeout=True),
            "forge": ProbeResult(ok=True, latency_ms=12),
        }
        reports = InspectionPipeline(inspector).run(self._hosts(), liveness)

        assert reports["anvil"] is None
        assert reports["forge"].hostname == "forge"
        inspector.inspect.assert_called_once_with("10.0.0.6", 8000)

    def test_missing_liveness_counts_as_down(self):
        inspector = MagicMock()
        reports = InspectionPipeline(inspector).run(self._hosts(), {})
        assert reports == {"anvil": None, "forge": None}
        inspector.inspect.assert_not_called()

    def test_ssh_target_preferred_over_address(self):
        inspector = MagicMock()
        inspector.inspect.return_value = HostReport()
        liveness = {"anvil": ProbeResult(ok=True, latency_ms=5)}
        InspectionPipeline(inspector).run({"anvil": self._hosts()["anvil"]}, liveness)
        inspector.inspect.assert_called_once_with("anvil", 8000)

    def test_inspector_exception_degrades_to_none(self):
        inspector = MagicMock()
        inspector.inspect.side_effect = RuntimeError("ssh exploded")
        liveness = {"forge": ProbeResult(ok=True, latency_ms=5)}
        reports = InspectionPipeline(inspector).run({"forge": self._hosts()["forge"]}, liveness)
        assert reports == {"forge": None}


class TestLocalHostInspector:
    def test_inspect_shape(self):
        def runner(command, timeout_ms=5000):
            if command == "uptime":
                return "10:00  up 5 days,  1:00, 1 user, load averages: 0.5 0.4 0.3"
            return "/dev/disk3s1  460Gi  200Gi  250Gi  45% /"

        state = LocalHostInspector(runner=runner).inspect()
        assert state["uptime"].startswith("up 5 days")
        assert state["disk"].endswith("45% /")
        for key in ("hostname", "platform", "arch", "cpus", "total_mem_gb", "free_mem_gb",
                    "load_avg", "disk_usage", "uptime_seconds"):
            assert key in state

    def test_failed_commands_are_unknown(self):
        state = LocalHostInspector(runner=lambda *a, **k: None).inspect()
        assert state["uptime"] == UNKNOWN
        assert state["disk"] == UNKNOWN

    def test_metrics_come_from_psutil(self, monkeypatch):
        gb = 1024 ** 3
        monkeypatch.setattr(
            host.psutil, "virtual_memory",
            lambda: SimpleNamespace(total=64 * gb, available=int(12.5 * gb)),
        )
        monkeypatch.setattr(
            host.psutil, "disk_usage",
            lambda path: SimpleNamespace(percent=45.04, free=250 * gb),
        )
        monkeypatch.setattr(host.psutil, "getloadavg", lambda: (0.5, 0.4, 0.3))
        monkeypatch.setattr(host.psutil, "cpu_count", lambda logical=True: 12)
        monkeypatch.setattr(host.psutil, "boot_time", lambda: time.time() - 3600)

        state = LocalHostInspector(runner=lambda *a, **k: None).inspect()

        assert state["total_mem_gb"] == 64
        assert state["free_mem_gb"] == 12.5
        assert state["disk_usage"] == {"used_percent": 45.0, "free_gb": 250.0}
        assert state["load_avg"] == {"1m": 0.5, "5m": 0.4, "15m": 0.3}
        assert state["cpus"] == 12
        assert 3590 <= state["uptime_seconds"] <= 3700

    def test_unreadable_disk_is_none(self, monkeypatch):
        def refuse(path):
            raise PermissionError(path)

        monkeypatch.setattr(host.psutil, "disk_usage", refuse)
        state = LocalHostInspector(runner=lambda *a, **k: None).inspect()
        assert state["disk_usage"] == {"used_percent": None, "free_gb": None}
