"""Data collectors - HTTP probes, host inspection, and agent sources."""

from .base import BaseCollector, CollectorError
from .commands import list_directory, read_text_file, run_command
from .probe import ProbeOrchestrator
from .host import InspectionPipeline, LocalHostInspector, RemoteHostInspector, parse_host_report
from .agents import (
    AgentSourceCollector,
    parse_process_list,
    parse_protocol_table,
    parse_session_log,
)

__all__ = [
    "BaseCollector",
    "CollectorError",
    "list_directory",
    "read_text_file",
    "run_command",
    "ProbeOrchestrator",
    "InspectionPipeline",
    "LocalHostInspector",
    "RemoteHostInspector",
    "parse_host_report",
    "AgentSourceCollector",
    "parse_process_list",
    "parse_protocol_table",
    "parse_session_log",
]
