"""Host inspection: cheap liveness first, SSH inspection only when it pays.

The remote side echoes ``LABEL=value`` lines; ``parse_host_report`` pulls
each field out independently so partial output still yields a report.
"""

from __future__ import annotations

import platform
import re
import socket
import time
from typing import Any, Callable, Dict, Mapping, Optional

import psutil

from ..data.models import HostReport, ProbeResult
from ..server.config import RemoteHostConfig
from .commands import run_command

UNKNOWN = "unknown"

REMOTE_REPORT_SCRIPT = (
    "export PATH=/opt/homebrew/bin:/usr/local/bin:$PATH"
    " && echo HOSTNAME=$(hostname)"
    " && echo UPTIME=$(uptime)"
    " && echo DISK=$(df -h / | tail -1)"
)

CommandRunner = Callable[..., Optional[str]]


def _log(msg: str) -> None:
    print(msg, flush=True)


def _extract_field(text: str, label: str) -> str:
    match = re.search(rf"{re.escape(label)}=(.+)", text)
    if not match:
        return UNKNOWN
    value = match.group(1).strip()
    return value or UNKNOWN


def _uptime_description(raw: Optional[str]) -> str:
    """Trim ``uptime`` output to the part starting at ``up``."""
    if not raw:
        return UNKNOWN
    match = re.search(r"\bup\b.*", raw)
    return match.group(0).strip() if match else raw.strip()


def parse_host_report(raw_text: Optional[str]) -> HostReport:
    """Parse HOSTNAME/UPTIME/DISK marker lines; missing markers stay 'unknown'."""
    text = raw_text or ""
    uptime = _extract_field(text, "UPTIME")
    return HostReport(
        hostname=_extract_field(text, "HOSTNAME"),
        uptime=_uptime_description(uptime) if uptime != UNKNOWN else UNKNOWN,
        disk=_extract_field(text, "DISK"),
    )


class RemoteHostInspector:
    """Runs the report script over SSH."""

    def __init__(
        self,
        runner: CommandRunner = run_command,
        connect_timeout_s: int = 3,
    ):
        self.runner = runner
        self.connect_timeout_s = connect_timeout_s

    def build_command(self, ssh_target: str) -> str:
        return (
            f"ssh -o ConnectTimeout={self.connect_timeout_s} -o StrictHostKeyChecking=no "
            f"-o BatchMode=yes {ssh_target} \"{REMOTE_REPORT_SCRIPT}\" 2>/dev/null"
        )

    def inspect(self, ssh_target: str, timeout_ms: int = 8000) -> Optional[HostReport]:
        output = self.runner(self.build_command(ssh_target), timeout_ms)
        if not output:
            return None
        return parse_host_report(output)


class InspectionPipeline:
    """Two-stage host check: liveness results gate deep inspection.

    Stage one is the probe phase the caller already ran. Stage two runs
    the inspector sequentially, and only for hosts whose primary probe
    succeeded; every other host maps to None without an SSH attempt.
    """

    def __init__(self, inspector: RemoteHostInspector):
        self.inspector = inspector

    def run(
        self,
        hosts: Mapping[str, RemoteHostConfig],
        liveness: Mapping[str, ProbeResult],
    ) -> Dict[str, Optional[HostReport]]:
        reports: Dict[str, Optional[HostReport]] = {}
        for key, host in hosts.items():
            result = liveness.get(key)
            if result is None or not result.ok:
                reports[key] = None
                continue
            ssh_target = host.ssh_target or host.primary
            try:
                reports[key] = self.inspector.inspect(ssh_target, host.inspect_timeout_ms)
            except Exception as exc:
                _log(f"[inspect] {key}: inspection failed: {exc}")
                reports[key] = None
        return reports


class LocalHostInspector:
    """System facts for the machine the API runs on."""

    def __init__(self, runner: CommandRunner = run_command):
        self.runner = runner

    @staticmethod
    def _memory_gb() -> Dict[str, Optional[float]]:
        memory = psutil.virtual_memory()
        gb = 1024 ** 3
        return {"total": round(memory.total / gb), "free": round(memory.available / gb, 1)}

    @staticmethod
    def _load_avg() -> Optional[Dict[str, float]]:
        try:
            one, five, fifteen = psutil.getloadavg()
        except (AttributeError, OSError):
            return None
        return {"1m": one, "5m": five, "15m": fifteen}

    @staticmethod
    def _disk(path: str = "/") -> Dict[str, Any]:
        try:
            usage = psutil.disk_usage(path)
        except OSError:
            return {"used_percent": None, "free_gb": None}
        return {
            "used_percent": round(usage.percent, 1),
            "free_gb": round(usage.free / 1024 ** 3, 1),
        }

    def inspect(self) -> Dict[str, Any]:
        memory = self._memory_gb()
        return {
            "hostname": socket.gethostname(),
            "platform": platform.system().lower(),
            "arch": platform.machine(),
            "uptime": _uptime_description(self.runner("uptime", 5000)),
            "uptime_seconds": int(time.time() - psutil.boot_time()),
            "disk": self.runner("df -h / | tail -1", 5000) or UNKNOWN,
            "disk_usage": self._disk(),
            "cpus": psutil.cpu_count(logical=True),
            "total_mem_gb": memory["total"],
            "free_mem_gb": memory["free"],
            "load_avg": self._load_avg(),
        }
