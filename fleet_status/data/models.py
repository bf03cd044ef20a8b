"""Data models for fleet status monitoring.

This module defines the core data structures shared by the collectors,
the aggregator and the snapshot builder, following these principles:

1. TERMINAL RESULTS
   - A ProbeResult is always a finished value (success, failure or timeout)
   - Nothing here carries an exception or a pending future

2. EXPLICIT UNITS
   - Time: milliseconds (integers) with an ``_ms`` suffix
   - Sizes: gigabytes (floats) with a ``_gb`` suffix

3. PROVENANCE
   - Every AgentRecord remembers the source that first produced it
   - Enrichment from a later source never overwrites provenance
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# =============================================================================
# Enumerations
# =============================================================================


class AgentStatus(str, Enum):
    """Normalized coordination status of an agent."""

    ACTIVE = "Active"
    PARKED = "Parked"
    UNKNOWN = "Unknown"

    @classmethod
    def from_text(cls, text: Optional[str]) -> "AgentStatus":
        value = (text or "").strip().lower()
        if value.startswith("active"):
            return cls.ACTIVE
        if value.startswith("parked"):
            return cls.PARKED
        return cls.UNKNOWN


class AgentSource(str, Enum):
    """Where an agent record came from."""

    PROTOCOL = "protocol"
    PROCESS_LIST = "process-list"
    SESSION_LOG = "session-log"


# =============================================================================
# Probes
# =============================================================================


@dataclass(frozen=True)
class ProbeTarget:
    """A single HTTP endpoint to check."""

    host: str
    port: int
    path: str = "/"
    timeout_ms: Optional[int] = None
    headers: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)

    @property
    def url(self) -> str:
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"http://{self.host}:{self.port}{path}"


@dataclass
class ProbeResult:
    """Outcome of one probe. ``ok`` means the endpoint answered at all."""

    ok: bool
    latency_ms: int
    status: Optional[int] = None
    data: Any = None
    timeout: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"ok": self.ok, "latency_ms": self.latency_ms}
        if self.status is not None:
            result["status"] = self.status
        if self.data is not None:
            result["data"] = self.data
        if self.timeout:
            result["timeout"] = True
        return result

    def connectivity(self) -> Dict[str, Any]:
        """Reachability view used in fleet snapshots."""
        return {
            "reachable": self.ok,
            "latency_ms": self.latency_ms,
            "timeout": self.timeout,
        }


# =============================================================================
# Hosts and mesh
# =============================================================================


@dataclass
class HostReport:
    """System facts parsed from a remote inspection command."""

    hostname: str = "unknown"
    uptime: str = "unknown"
    disk: str = "unknown"

    def to_dict(self) -> Dict[str, Any]:
        return {"hostname": self.hostname, "uptime": self.uptime, "disk": self.disk}


@dataclass
class MeshDevice:
    """A node on the overlay mesh network."""

    name: str
    address: Optional[str]
    online: bool
    os: Optional[str] = None
    last_seen: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "online": self.online,
            "os": self.os,
            "last_seen": self.last_seen,
        }


# =============================================================================
# Agents
# =============================================================================


@dataclass
class ProtocolAgent:
    """One row of the coordination document's agent table."""

    agent_id: str
    name: str
    model: str
    interface_type: str
    status: str
    focus: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.agent_id,
            "name": self.name,
            "model": self.model,
            "interface": self.interface_type,
            "status": self.status,
            "focus": self.focus,
        }


@dataclass
class ProcessRecord:
    """A process-list line that looked like an agent."""

    user: str
    pid: str
    cpu: str
    mem: str
    command: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "pid": self.pid,
            "cpu": self.cpu,
            "mem": self.mem,
            "command": self.command,
        }


@dataclass
class SessionLogRecord:
    """Heuristically extracted facts about one session log file."""

    log_file: str
    agent_name: str
    status: str
    focus: str
    model: str
    last_modified: str  # ISO-8601, UTC
    age_ms: int
    is_recently_active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "log_file": self.log_file,
            "agent_name": self.agent_name,
            "status": self.status,
            "focus": self.focus,
            "model": self.model,
            "last_modified": self.last_modified,
            "age_ms": self.age_ms,
            "is_recently_active": self.is_recently_active,
        }


@dataclass
class AgentRecord:
    """A fused agent identity."""

    identity: str
    source: AgentSource
    status: AgentStatus = AgentStatus.UNKNOWN
    agent_id: Optional[str] = None
    model: str = ""
    interface_type: str = ""
    focus: str = ""
    protocol_status: Optional[str] = None
    last_activity: Optional[str] = None
    age_ms: Optional[int] = None
    session_log_ref: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.identity,
            "id": self.agent_id,
            "model": self.model,
            "interface": self.interface_type,
            "status": self.status.value,
            "focus": self.focus,
            "source": self.source.value,
            "protocol_status": self.protocol_status,
            "last_activity": self.last_activity,
            "age_ms": self.age_ms,
            "session_log": self.session_log_ref,
        }


@dataclass
class HealthSummary:
    total: int = 0
    active: int = 0
    parked: int = 0
    recently_active: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "active": self.active,
            "parked": self.parked,
            "recently_active": self.recently_active,
        }


@dataclass
class HealthSnapshot:
    """Fused agent health: identity-keyed records plus raw process evidence."""

    agents: Dict[str, AgentRecord]
    summary: HealthSummary
    processes: List[ProcessRecord] = field(default_factory=list)
    timestamp: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agents": [record.to_dict() for record in self.agents.values()],
            "summary": self.summary.to_dict(),
            "processes": [proc.to_dict() for proc in self.processes],
            "timestamp": self.timestamp,
        }
