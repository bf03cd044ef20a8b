"""Data layer - models, normalization, fusion, stores, and snapshots."""

from .models import (
    AgentRecord,
    AgentSource,
    AgentStatus,
    HealthSnapshot,
    HealthSummary,
    HostReport,
    MeshDevice,
    ProbeResult,
    ProbeTarget,
    ProcessRecord,
    ProtocolAgent,
    SessionLogRecord,
)
from .aggregator import HealthAggregator
from .persistence import AssetStore, VaultStore

__all__ = [
    "AgentRecord",
    "AgentSource",
    "AgentStatus",
    "HealthSnapshot",
    "HealthSummary",
    "HostReport",
    "MeshDevice",
    "ProbeResult",
    "ProbeTarget",
    "ProcessRecord",
    "ProtocolAgent",
    "SessionLogRecord",
    "HealthAggregator",
    "AssetStore",
    "VaultStore",
]
