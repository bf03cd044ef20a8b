"""Fleet snapshot composition.

One call to ``FleetSnapshotBuilder.build`` makes a fresh, live read of the
whole fleet:

1. every network probe is issued at once and joined (probe phase)
2. hosts whose primary probe succeeded are inspected over SSH, one by one
3. agent sources are read and fused
4. gateway routes are fetched and bucketed
5. the overlay mesh status is parsed

Each step degrades only its own part of the snapshot. Keys are always
present; failed sources show up as None, False, "down" or empty lists.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..collectors.agents import AgentSourceCollector
from ..collectors.commands import run_command
from ..collectors.host import InspectionPipeline, LocalHostInspector
from ..collectors.probe import ProbeOrchestrator
from ..server.config import Config, RemoteHostConfig
from .aggregator import HealthAggregator
from .models import HealthSnapshot, ProbeResult, ProbeTarget
from .normalization import (
    categorize_routes,
    extract_model_ids,
    normalize_models,
    parse_mesh_status,
    total_size_gb,
)

GATEWAY_KEY = ("gateway", "health")


def _log(msg: str) -> None:
    print(msg, flush=True)


def _now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _up(result: Optional[ProbeResult]) -> str:
    return "up" if result is not None and result.ok else "down"


class FleetSnapshotBuilder:
    """Composes probes, inspections, agent health and mesh state."""

    def __init__(
        self,
        config: Config,
        orchestrator: ProbeOrchestrator,
        pipeline: InspectionPipeline,
        local_inspector: LocalHostInspector,
        agent_sources: AgentSourceCollector,
        aggregator: HealthAggregator,
        runner: Callable[..., Optional[str]] = run_command,
    ):
        self.config = config
        self.orchestrator = orchestrator
        self.pipeline = pipeline
        self.local_inspector = local_inspector
        self.agent_sources = agent_sources
        self.aggregator = aggregator
        self.runner = runner

    # --- Probe plan ---

    def _host_target(self, host: RemoteHostConfig, address: str) -> ProbeTarget:
        return ProbeTarget(host=address, port=host.port, path=host.path)

    def _gateway_target(self, models: bool = False) -> ProbeTarget:
        gw = self.config.fleet.gateway
        if not models:
            return ProbeTarget(host=gw.host, port=gw.port, path=gw.health_path)
        headers = {"Authorization": f"Bearer {gw.api_key}"} if gw.api_key else {}
        return ProbeTarget(host=gw.host, port=gw.port, path=gw.models_path, headers=headers)

    def probe_plan(self) -> Dict[Tuple[str, str], ProbeTarget]:
        """Every probe for one snapshot, keyed by (owner, role)."""
        plan: Dict[Tuple[str, str], ProbeTarget] = {}
        for key, host in self.config.fleet.hosts.items():
            plan[(key, "primary")] = self._host_target(host, host.primary)
            if host.overlay:
                plan[(key, "overlay")] = self._host_target(host, host.overlay)
        for name, svc in self.config.fleet.local.services.items():
            plan[("service", name)] = ProbeTarget(host=svc.host, port=svc.port, path=svc.path)
        plan[GATEWAY_KEY] = self._gateway_target()
        return plan

    # --- Degradable steps ---

    def _guard(self, label: str, fn: Callable[[], Any], default: Any) -> Any:
        try:
            return fn()
        except Exception as exc:
            _log(f"[fleet] {label} failed: {exc}")
            return default

    def fetch_route_ids(self, gateway_up: bool = True) -> Optional[List[str]]:
        """Model ids from the gateway, or None when it cannot be read."""
        if not gateway_up:
            return None
        result = self.orchestrator.probe(self._gateway_target(models=True))
        if not result.ok or not isinstance(result.data, dict):
            return None
        return extract_model_ids(result.data)

    def agent_health(self) -> HealthSnapshot:
        return self.aggregator.fuse(
            self.agent_sources.protocol_agents(),
            self.agent_sources.session_logs(),
            self.agent_sources.process_agents(),
        )

    def mesh_devices(self) -> List[Dict[str, Any]]:
        raw = self.runner(self.config.fleet.mesh_command, self.config.fleet.mesh_timeout_ms)
        return [device.to_dict() for device in parse_mesh_status(raw)]

    # --- Composition ---

    def build(self) -> Dict[str, Any]:
        results = self._guard("probe phase", lambda: self.orchestrator.probe_many(self.probe_plan()), {})
        liveness = {key: r for (key, role), r in results.items() if role == "primary"}

        hosts = self.config.fleet.hosts
        reports = self._guard(
            "host inspection",
            lambda: self.pipeline.run(hosts, liveness),
            {},
        )
        local_system = self._guard("local system", self.local_inspector.inspect, None)
        health = self._guard("agent health", self.agent_health, None)

        gateway = results.get(GATEWAY_KEY)
        route_ids = self._guard("gateway routes", lambda: self.fetch_route_ids(_up(gateway) == "up"), None)
        buckets = categorize_routes(route_ids or [], self.config.fleet.route_buckets)
        devices = self._guard("mesh status", self.mesh_devices, [])

        machines: Dict[str, Any] = {self.config.fleet.local.key: self._local_machine(results, local_system)}
        for key, host in hosts.items():
            machines[key] = self._remote_machine(key, host, results, reports.get(key))

        gw = self.config.fleet.gateway
        return {
            "timestamp": _now_iso(),
            "machines": machines,
            "routing": {
                "status": _up(gateway),
                "port": gw.port,
                "latency_ms": gateway.latency_ms if gateway else None,
                "models": buckets["all"],
                "routes": buckets["routes"],
                "all": buckets["all"],
            },
            "agents": health.to_dict() if health is not None else None,
            "mesh": {"devices": devices, "mesh_size": len(devices)},
        }

    def _local_machine(self, results, system) -> Dict[str, Any]:
        local = self.config.fleet.local
        services: Dict[str, Any] = {
            "api": {"port": self.config.server.port, "status": "up", "latency_ms": 0},
        }
        for name, svc in local.services.items():
            result = results.get(("service", name))
            services[name] = {
                "port": svc.port,
                "status": _up(result),
                "latency_ms": result.latency_ms if result else None,
            }
        models_result = results.get(("service", local.models_service)) if local.models_service else None
        models = normalize_models(models_result.data, detailed=False) if models_result and models_result.ok else []
        return {
            "name": local.name,
            "role": local.role,
            "system": system,
            "services": services,
            "models": models,
        }

    def _remote_machine(self, key, host: RemoteHostConfig, results, report) -> Dict[str, Any]:
        primary = results.get((key, "primary")) or ProbeResult(ok=False, latency_ms=0)
        overlay = results.get((key, "overlay"))
        source = primary if primary.ok else (overlay if overlay and overlay.ok else None)
        models = normalize_models(source.data) if source else []
        return {
            "name": host.name,
            "role": host.role,
            "address": {"primary": host.primary, "overlay": host.overlay},
            "system": report.to_dict() if report else None,
            "connectivity": {
                "primary": primary.connectivity(),
                "overlay": overlay.connectivity() if overlay else {
                    "reachable": False, "latency_ms": None, "timeout": False,
                },
            },
            "service": {
                "status": "up" if source else "down",
                "port": host.port,
                "models": models,
                "total_size_gb": total_size_gb(models),
            },
        }

    # --- Single-purpose reads ---

    def host_status(self, key: str) -> Optional[Dict[str, Any]]:
        """Quick primary-address check of one host; None if the host is unknown."""
        host = self.config.fleet.hosts.get(key)
        if host is None:
            return None
        result = self.orchestrator.probe(self._host_target(host, host.primary))
        if not result.ok:
            return {"name": host.name, "status": "unreachable", "latency_ms": result.latency_ms,
                    "timeout": result.timeout}
        models = normalize_models(result.data, detailed=False)
        return {
            "name": host.name,
            "status": "online",
            "latency_ms": result.latency_ms,
            "models": models,
            "total_models": len(models),
            "timestamp": _now_iso(),
        }

    def route_table(self) -> Dict[str, Any]:
        route_ids = self.fetch_route_ids()
        buckets = categorize_routes(route_ids or [], self.config.fleet.route_buckets)
        if route_ids is None:
            return {"status": "gateway_unreachable", "total": 0, **buckets, "timestamp": _now_iso()}
        return {"status": "ok", "total": len(route_ids), **buckets, "timestamp": _now_iso()}


def create_snapshot_builder(config: Config) -> FleetSnapshotBuilder:
    """Wire the builder from configuration."""
    from ..collectors.host import RemoteHostInspector

    return FleetSnapshotBuilder(
        config=config,
        orchestrator=ProbeOrchestrator(config.probe.timeout_ms, config.probe.grace_ms),
        pipeline=InspectionPipeline(RemoteHostInspector()),
        local_inspector=LocalHostInspector(),
        agent_sources=AgentSourceCollector(
            config.protocol_path, config.session_logs_dir, config.agents,
        ),
        aggregator=HealthAggregator(
            recency_threshold_ms=config.agents.recency_threshold_ms,
            match_strategy=config.agents.match_strategy,
            aliases=config.agents.aliases,
        ),
    )
