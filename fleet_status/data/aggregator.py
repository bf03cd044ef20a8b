"""Multi-source agent health aggregation.

Fuses the coordination table with recent session logs into one record per
identity. Process-list entries are carried alongside as raw evidence; they
have no reliable identity key and are never fused.

Matching a session log to a known agent is fuzzy: a protocol entry matches
when its name equals the log's agent name or is contained in it. When more
than one entry qualifies, the ``first`` strategy takes the earliest entry
in table order and ``longest`` takes the longest name. An alias table maps
log names to identities before any matching happens.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..server.config import DEFAULT_RECENCY_THRESHOLD_MS, MATCH_STRATEGIES
from .models import (
    AgentRecord,
    AgentSource,
    AgentStatus,
    HealthSnapshot,
    HealthSummary,
    ProcessRecord,
    ProtocolAgent,
    SessionLogRecord,
)


def _isoformat(ts: datetime) -> str:
    return ts.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


class HealthAggregator:
    """Identity fusion over protocol rows and session logs."""

    def __init__(
        self,
        recency_threshold_ms: int = DEFAULT_RECENCY_THRESHOLD_MS,
        match_strategy: str = "first",
        aliases: Optional[Mapping[str, str]] = None,
    ):
        if match_strategy not in MATCH_STRATEGIES:
            raise ValueError(f"Unknown match strategy: {match_strategy!r}")
        self.recency_threshold_ms = recency_threshold_ms
        self.match_strategy = match_strategy
        self.aliases = dict(aliases or {})

    def resolve_identity(self, name: str) -> str:
        return self.aliases.get(name, name)

    def find_match(self, agents: Mapping[str, AgentRecord], name: str) -> Optional[str]:
        """Key of the entry a session log name belongs to, if any."""
        candidates = [key for key in agents if key == name or key in name]
        if not candidates:
            return None
        if self.match_strategy == "longest":
            # max() keeps the earliest of equal-length keys
            return max(candidates, key=len)
        return candidates[0]

    def fuse(
        self,
        protocol_agents: Iterable[ProtocolAgent],
        session_logs: Iterable[SessionLogRecord],
        processes: Sequence[ProcessRecord] = (),
        now: Optional[datetime] = None,
    ) -> HealthSnapshot:
        """Build a HealthSnapshot. Inputs are not modified."""
        agents: Dict[str, AgentRecord] = {}

        for row in protocol_agents:
            agents[row.name] = AgentRecord(
                identity=row.name,
                source=AgentSource.PROTOCOL,
                status=AgentStatus.from_text(row.status),
                agent_id=row.agent_id,
                model=row.model,
                interface_type=row.interface_type,
                focus=row.focus,
                protocol_status=row.status,
            )

        for log in session_logs:
            if not log.is_recently_active:
                continue
            name = self.resolve_identity(log.agent_name)
            key = self.find_match(agents, name)
            if key is not None:
                agents[key] = replace(
                    agents[key],
                    last_activity=log.last_modified,
                    session_log_ref=log.log_file,
                    age_ms=log.age_ms,
                )
                continue
            agents[name] = AgentRecord(
                identity=name,
                source=AgentSource.SESSION_LOG,
                status=AgentStatus.from_text(log.status),
                model=log.model,
                focus=log.focus,
                protocol_status=None,
                last_activity=log.last_modified,
                age_ms=log.age_ms,
                session_log_ref=log.log_file,
            )

        return HealthSnapshot(
            agents=agents,
            summary=self.summarize(agents.values()),
            processes=list(processes),
            timestamp=_isoformat(now or datetime.now(timezone.utc)),
        )

    def summarize(self, records: Iterable[AgentRecord]) -> HealthSummary:
        records = list(records)
        return HealthSummary(
            total=len(records),
            active=sum(1 for r in records if r.status is AgentStatus.ACTIVE),
            parked=sum(1 for r in records if r.status is AgentStatus.PARKED),
            recently_active=sum(
                1 for r in records
                if r.age_ms is not None and r.age_ms < self.recency_threshold_ms
            ),
        )

    def active_agents(self, snapshot: HealthSnapshot) -> List[AgentRecord]:
        """Agents marked Active or seen in a recent session log."""
        return [
            record for record in snapshot.agents.values()
            if record.status is AgentStatus.ACTIVE
            or (record.age_ms is not None and record.age_ms < self.recency_threshold_ms)
        ]
