"""Agent coordination sources.

Three unrelated inputs describe which agents exist and what they are doing:

- the coordination document's ``## Active Agents`` Markdown table
- the process list, filtered by a small name vocabulary
- session log files, mined for labeled lines

The parsing functions take plain text so they can be tested against
fixtures; ``AgentSourceCollector`` does the file and command I/O.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Pattern, Sequence

from ..data.models import ProcessRecord, ProtocolAgent, SessionLogRecord
from ..server.config import AgentsConfig, DEFAULT_RECENCY_THRESHOLD_MS
from .base import BaseCollector
from .commands import list_directory, read_text_file, run_command

ACTIVE_AGENTS_TABLE = re.compile(
    r"## Active Agents\n\n\|[^\n]+\n\|[^\n]+\n((?:\|[^\n]+\n?)+)"
)

# First matching pattern wins for each field.
AGENT_NAME_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\*\*Agent\*\*:\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"\*\*Instance\*\*:\s*(.+?)(?:\n|$)", re.IGNORECASE),
    re.compile(r"^# Session Log:\s*[\d-]+\s*[—-]+\s*(.+?)(?:\n|$)", re.MULTILINE),
)
STATUS_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\*\*Status\*\*:\s*(.+?)(?:\n|$)", re.IGNORECASE),
)
FOCUS_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\*\*Focus\*\*:\s*(.+?)(?:\n|$)", re.IGNORECASE),
)
MODEL_PATTERNS: Sequence[Pattern[str]] = (
    re.compile(r"\(([^)]*(?:Sonnet|Opus|Haiku)[^)]*)\)", re.IGNORECASE),
)

PS_MIN_FIELDS = 11


def _first_match(patterns: Iterable[Pattern[str]], text: str, default: str) -> str:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            return match.group(1).strip()
    return default


def parse_protocol_table(content: Optional[str]) -> List[ProtocolAgent]:
    """Rows of the Active Agents table; rows with fewer than six cells are skipped."""
    if not content:
        return []
    section = ACTIVE_AGENTS_TABLE.search(content.replace("\r\n", "\n"))
    if not section:
        return []

    agents = []
    for row in section.group(1).strip().split("\n"):
        cells = [cell.strip() for cell in row.split("|")]
        cells = [cell for cell in cells if cell]
        if len(cells) < 6:
            continue
        agents.append(
            ProtocolAgent(
                agent_id=cells[0],
                name=cells[1],
                model=cells[2],
                interface_type=cells[3],
                status=cells[4],
                focus=cells[5],
            )
        )
    return agents


def parse_process_list(output: Optional[str], patterns: Sequence[str]) -> List[ProcessRecord]:
    """Filter ``ps aux`` output by a case-insensitive vocabulary."""
    if not output:
        return []
    vocabulary = [p.lower() for p in patterns if p]
    processes = []
    for line in output.splitlines():
        lowered = line.lower()
        if not line.strip() or not any(word in lowered for word in vocabulary):
            continue
        parts = line.split()
        if len(parts) < PS_MIN_FIELDS:
            continue
        processes.append(
            ProcessRecord(
                user=parts[0],
                pid=parts[1],
                cpu=parts[2],
                mem=parts[3],
                command=" ".join(parts[10:]),
            )
        )
    return processes


def parse_session_log(
    log_file: str,
    content: str,
    modified_at: datetime,
    now: datetime,
    recency_threshold_ms: int = DEFAULT_RECENCY_THRESHOLD_MS,
) -> SessionLogRecord:
    """Extract agent facts from one session log."""
    age_ms = max(0, int((now - modified_at).total_seconds() * 1000))
    return SessionLogRecord(
        log_file=log_file,
        agent_name=_first_match(AGENT_NAME_PATTERNS, content, "Unknown"),
        status=_first_match(STATUS_PATTERNS, content, "Unknown"),
        focus=_first_match(FOCUS_PATTERNS, content, ""),
        model=_first_match(MODEL_PATTERNS, content, ""),
        last_modified=modified_at.astimezone(timezone.utc).isoformat().replace("+00:00", "Z"),
        age_ms=age_ms,
        is_recently_active=age_ms < recency_threshold_ms,
    )


class AgentSourceCollector(BaseCollector):
    """Reads the three agent sources from disk and the process table."""

    def __init__(
        self,
        protocol_path: Path,
        session_logs_dir: Path,
        config: Optional[AgentsConfig] = None,
        runner: Callable[..., Optional[str]] = run_command,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.protocol_path = Path(protocol_path)
        self.session_logs_dir = Path(session_logs_dir)
        self.config = config or AgentsConfig()
        self.runner = runner
        self.clock = clock

    @property
    def name(self) -> str:
        return "agents"

    @property
    def display_name(self) -> str:
        return "Agent Sources"

    def is_available(self) -> bool:
        return self.protocol_path.exists() or self.session_logs_dir.is_dir()

    def protocol_agents(self) -> List[ProtocolAgent]:
        return parse_protocol_table(read_text_file(self.protocol_path))

    def process_agents(self) -> List[ProcessRecord]:
        output = self.runner(self.config.process_command, 10000)
        return parse_process_list(output, self.config.process_patterns)

    def session_logs(self) -> List[SessionLogRecord]:
        """Session log records, newest first."""
        now = self.clock()
        records = []
        for name in list_directory(self.session_logs_dir):
            if not name.endswith(".md"):
                continue
            path = self.session_logs_dir / name
            try:
                mtime = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except OSError:
                continue
            content = read_text_file(path)
            if content is None:
                continue
            records.append((
                mtime,
                parse_session_log(name, content, mtime, now, self.config.recency_threshold_ms),
            ))
        records.sort(key=lambda pair: pair[0], reverse=True)
        return [record for _, record in records]
