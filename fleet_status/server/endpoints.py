"""API endpoint handlers and route table.

Every handler takes an ``ApiRequest`` and returns ``(status, body)``, or
raises ``ApiError`` for 4xx/503 answers. The HTTP handler in ``routes``
does the socket work.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from ..collectors.base import CollectorError
from ..collectors.commands import list_directory, read_text_file, run_command
from ..collectors.host import LocalHostInspector
from ..data.normalization import is_unsafe_path, parse_model_list
from ..data.persistence import AssetStore, VaultStore
from ..data.snapshot import FleetSnapshotBuilder, create_snapshot_builder
from .config import Config
from .errors import invalid_input, not_found, unavailable
from .router import Router

Response = Tuple[HTTPStatus, Any]

API_VERSION = "0.1.0"


@dataclass
class ApiRequest:
    method: str
    path: str
    query: Dict[str, str] = field(default_factory=dict)
    params: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_url(cls, method: str, url: str, params: Optional[Dict[str, str]] = None) -> "ApiRequest":
        parts = urlsplit(url)
        query = {key: values[0] for key, values in parse_qs(parts.query, keep_blank_values=True).items()}
        return cls(method=method, path=parts.path or "/", query=query, params=dict(params or {}))


@dataclass
class ApiContext:
    """Everything the endpoints read from. Built once at startup."""

    config: Config
    snapshots: FleetSnapshotBuilder
    vault: VaultStore
    atlas: AssetStore
    local_inspector: LocalHostInspector
    runner: Callable[..., Optional[str]] = run_command
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def from_config(cls, config: Config) -> "ApiContext":
        return cls(
            config=config,
            snapshots=create_snapshot_builder(config),
            vault=VaultStore(config.vault_path),
            atlas=AssetStore(config.atlas_db_path),
            local_inspector=LocalHostInspector(),
        )


def _iso_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat().replace("+00:00", "Z")


def _int_param(query: Dict[str, str], name: str, default: int) -> int:
    raw = query.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise invalid_input(f"Invalid {name}: {raw}")
    if value < 0:
        raise invalid_input(f"Invalid {name}: {raw}")
    return value


PLANNED_WRITES: Dict[str, Dict[str, Any]] = {
    "spawn": {
        "error": "Agent spawning not yet implemented",
        "instructions": "Open a new terminal session and start the agent with its directive",
        "planned": {
            "method": "Terminal automation",
            "params": ["agent_name", "model", "focus", "prompt"],
            "example": {
                "agent_name": "The Watcher",
                "model": "sonnet",
                "focus": "System monitoring",
                "prompt": "Monitor services and report anomalies",
            },
        },
    },
    "park": {
        "error": "Agent parking not yet implemented",
        "instructions": "Tell the agent to run its park routine",
        "planned": {
            "method": "Send park command to agent via API or stdin",
            "params": ["agent_name or pid"],
            "actions": [
                "Update session log",
                "Rebuild indexes",
                "Create handoff entry",
                "Update agent-protocol.md status to Parked",
            ],
        },
    },
    "handoff": {
        "error": "Handoff creation not yet implemented",
        "instructions": "Append to the ## Handoffs section of the coordination document",
        "planned": {
            "method": "Append to agent-protocol.md",
            "params": ["agent_name", "timestamp", "what_changed", "whats_next", "blockers"],
            "template": (
                "### {agent_name} - {timestamp} - {title}\n\n"
                "**What changed**: ...\n**What's next**: ...\n**Blockers**: ..."
            ),
        },
    },
}


class Endpoints:
    """Handlers for every API route."""

    def __init__(self, ctx: ApiContext):
        self.ctx = ctx

    # --- Meta ---

    def health(self, req: ApiRequest) -> Response:
        uptime = round(time.monotonic() - self.ctx.started_at, 3)
        return HTTPStatus.OK, {"ok": True, "uptime_seconds": uptime}

    def index(self, req: ApiRequest) -> Response:
        return HTTPStatus.OK, {
            "name": self.ctx.config.deployment_name,
            "version": API_VERSION,
            "endpoints": ENDPOINT_INDEX,
            "sources": [
                source.get_status()
                for source in (self.ctx.snapshots.agent_sources, self.ctx.vault, self.ctx.atlas)
            ],
        }

    # --- Fleet ---

    def fleet(self, req: ApiRequest) -> Response:
        return HTTPStatus.OK, self.ctx.snapshots.build()

    def fleet_routes(self, req: ApiRequest) -> Response:
        return HTTPStatus.OK, self.ctx.snapshots.route_table()

    def fleet_host(self, req: ApiRequest) -> Response:
        name = req.params["name"]
        status = self.ctx.snapshots.host_status(name)
        if status is None:
            raise not_found(f"Unknown host: {name}")
        return HTTPStatus.OK, status

    # --- Agents ---

    def agents_health(self, req: ApiRequest) -> Response:
        return HTTPStatus.OK, self.ctx.snapshots.agent_health().to_dict()

    def agents_active(self, req: ApiRequest) -> Response:
        snapshot = self.ctx.snapshots.agent_health()
        active = self.ctx.snapshots.aggregator.active_agents(snapshot)
        return HTTPStatus.OK, {
            "active": [record.to_dict() for record in active],
            "count": len(active),
            "timestamp": snapshot.timestamp,
        }

    def agents_planned(self, action: str) -> Callable[[ApiRequest], Response]:
        def handler(req: ApiRequest) -> Response:
            return HTTPStatus.NOT_IMPLEMENTED, PLANNED_WRITES[action]
        return handler

    def agents_protocol(self, req: ApiRequest) -> Response:
        path = self.ctx.config.protocol_path
        content = read_text_file(path)
        if content is None:
            raise not_found("No agent-protocol.md found")
        return HTTPStatus.OK, {"path": str(path), "content": content}

    def agents_sessions(self, req: ApiRequest) -> Response:
        logs_dir = self.ctx.config.session_logs_dir
        sessions = []
        for name in list_directory(logs_dir):
            if not name.endswith(".md"):
                continue
            path = logs_dir / name
            try:
                stat = path.stat()
            except OSError:
                continue
            sessions.append((stat.st_mtime, {
                "name": name,
                "modified": _iso_timestamp(stat.st_mtime),
                "size_bytes": stat.st_size,
            }))
        sessions.sort(key=lambda pair: pair[0], reverse=True)
        return HTTPStatus.OK, {"sessions": [session for _, session in sessions]}

    def agents_session(self, req: ApiRequest) -> Response:
        name = req.params["name"]
        if not name or is_unsafe_path(name) or "/" in name:
            raise invalid_input("Invalid path")
        content = read_text_file(self.ctx.config.session_logs_dir / name)
        if content is None:
            raise not_found("Session log not found")
        return HTTPStatus.OK, {"name": name, "content": content}

    def agents_collab_brief(self, req: ApiRequest) -> Response:
        content = read_text_file(self.ctx.config.collab_brief_path)
        if content is None:
            raise not_found("No collaboration brief found")
        return HTTPStatus.OK, {"content": content}

    # --- System ---

    def system_state(self, req: ApiRequest) -> Response:
        return HTTPStatus.OK, self.ctx.local_inspector.inspect()

    def system_volumes(self, req: ApiRequest) -> Response:
        names = list_directory(self.ctx.config.stores.volumes_dir)
        return HTTPStatus.OK, {"volumes": [n for n in names if not n.startswith(".")]}

    def system_models(self, req: ApiRequest) -> Response:
        output = self.ctx.runner("ollama list 2>/dev/null", 5000)
        if output is None:
            return HTTPStatus.OK, {"available": False, "models": []}
        return HTTPStatus.OK, {"available": True, "models": parse_model_list(output)}

    # --- Vault ---

    def vault_stats(self, req: ApiRequest) -> Response:
        try:
            return HTTPStatus.OK, self.ctx.vault.stats()
        except CollectorError as exc:
            raise unavailable(str(exc))

    def vault_notes(self, req: ApiRequest) -> Response:
        directory = req.query.get("dir", "")
        if is_unsafe_path(directory):
            raise invalid_input("Invalid directory")
        try:
            notes = self.ctx.vault.list_notes(directory)
        except CollectorError as exc:
            raise unavailable(str(exc))
        return HTTPStatus.OK, {"notes": notes, "directory": directory}

    def vault_note(self, req: ApiRequest) -> Response:
        path = req.query.get("path", "")
        if not path or is_unsafe_path(path):
            raise invalid_input("Invalid path")
        try:
            content = self.ctx.vault.read_note(path)
        except CollectorError as exc:
            raise unavailable(str(exc))
        if content is None:
            raise not_found("Note not found")
        return HTTPStatus.OK, {"path": path, "content": content}

    def vault_structure(self, req: ApiRequest) -> Response:
        try:
            return HTTPStatus.OK, {"structure": self.ctx.vault.structure()}
        except CollectorError as exc:
            raise unavailable(str(exc))

    # --- Atlas ---

    def atlas_assets(self, req: ApiRequest) -> Response:
        limit = min(_int_param(req.query, "limit", 50), 200)
        offset = _int_param(req.query, "offset", 0)
        page = self.ctx.atlas.query_assets(req.query.get("type") or None, limit, offset)
        if page is None:
            raise unavailable("Asset database unavailable")
        rows, total = page
        return HTTPStatus.OK, {"assets": rows, "total": total, "limit": limit, "offset": offset}

    def atlas_asset(self, req: ApiRequest) -> Response:
        try:
            asset = self.ctx.atlas.get_asset(req.params["id"])
        except CollectorError:
            raise unavailable("Asset database unavailable")
        if asset is None:
            raise not_found("Asset not found")
        return HTTPStatus.OK, asset

    def atlas_stats(self, req: ApiRequest) -> Response:
        try:
            return HTTPStatus.OK, self.ctx.atlas.stats()
        except CollectorError:
            raise unavailable("Asset database unavailable")

    def atlas_search(self, req: ApiRequest) -> Response:
        query = req.params["query"]
        try:
            results = self.ctx.atlas.search(query)
        except CollectorError:
            raise unavailable("Asset database unavailable")
        return HTTPStatus.OK, {"results": results, "query": query, "count": len(results)}


ENDPOINT_INDEX: Dict[str, Dict[str, str]] = {
    "fleet": {
        "GET /api/fleet": "Live snapshot of machines, routing, agents and mesh",
        "GET /api/fleet/routes": "Gateway model routes by bucket",
        "GET /api/fleet/hosts/:name": "Quick check of one remote host",
    },
    "agents": {
        "GET /api/agents/health": "Fused agent health",
        "GET /api/agents/active": "Active or recently active agents",
        "POST /api/agents/spawn": "Not implemented",
        "POST /api/agents/park": "Not implemented",
        "POST /api/agents/handoff": "Not implemented",
        "GET /api/agents/protocol": "Agent coordination document",
        "GET /api/agents/sessions": "Session log list",
        "GET /api/agents/sessions/:name": "One session log",
        "GET /api/agents/collab-brief": "Collaboration brief",
    },
    "system": {
        "GET /api/system/state": "Local machine metrics",
        "GET /api/system/volumes": "Mounted volumes",
        "GET /api/system/models": "Local model list",
    },
    "vault": {
        "GET /api/vault/stats": "Vault note count and path",
        "GET /api/vault/notes": "Notes in a directory (?dir=Efforts/Active)",
        "GET /api/vault/note": "One note (?path=Dashboards/Home.md)",
        "GET /api/vault/structure": "Top-level vault structure",
    },
    "atlas": {
        "GET /api/atlas/assets": "Assets (?limit=50&offset=0&type=voice_memo)",
        "GET /api/atlas/assets/:id": "One asset",
        "GET /api/atlas/stats": "Asset statistics",
        "GET /api/atlas/search/:query": "Search assets by title",
    },
}


def build_router(ctx: ApiContext) -> Router:
    """Register every endpoint and freeze the table.

    Order matters: the first structural match wins, so literal routes such
    as ``/api/fleet/routes`` go ahead of placeholder routes next to them.
    """
    api = Endpoints(ctx)
    router = Router()

    router.get("/health", api.health)
    router.get("/api", api.index)

    router.get("/api/fleet", api.fleet)
    router.get("/api/fleet/routes", api.fleet_routes)
    router.get("/api/fleet/hosts/:name", api.fleet_host)

    router.get("/api/agents/health", api.agents_health)
    router.get("/api/agents/active", api.agents_active)
    for action in ("spawn", "park", "handoff"):
        router.post(f"/api/agents/{action}", api.agents_planned(action))
    router.get("/api/agents/protocol", api.agents_protocol)
    router.get("/api/agents/sessions", api.agents_sessions)
    router.get("/api/agents/sessions/:name", api.agents_session)
    router.get("/api/agents/collab-brief", api.agents_collab_brief)

    router.get("/api/system/state", api.system_state)
    router.get("/api/system/volumes", api.system_volumes)
    router.get("/api/system/models", api.system_models)

    router.get("/api/vault/stats", api.vault_stats)
    router.get("/api/vault/notes", api.vault_notes)
    router.get("/api/vault/note", api.vault_note)
    router.get("/api/vault/structure", api.vault_structure)

    router.get("/api/atlas/assets", api.atlas_assets)
    router.get("/api/atlas/assets/:id", api.atlas_asset)
    router.get("/api/atlas/stats", api.atlas_stats)
    router.get("/api/atlas/search/:query", api.atlas_search)

    return router.freeze()
