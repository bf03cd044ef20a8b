"""Configuration management for the fleet status API.

Supports YAML-based configuration describing the fleet, the agent
coordination sources and the local data stores.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

DEFAULT_RECENCY_THRESHOLD_MS = 3_600_000
DEFAULT_PROBE_TIMEOUT_MS = 3000

MATCH_STRATEGIES = ("first", "longest")


def _expand(path: Optional[str]) -> Optional[str]:
    if not path:
        return path
    return os.path.expanduser(os.path.expandvars(str(path)))


@dataclass
class ServerConfig:
    """Server configuration."""

    host: str = "127.0.0.1"
    port: int = 3001


@dataclass
class ProbeConfig:
    """Network probe configuration."""

    timeout_ms: int = DEFAULT_PROBE_TIMEOUT_MS
    grace_ms: int = 250  # join slack on top of the slowest probe timeout


@dataclass
class ServiceConfig:
    """A service on the local machine checked by HTTP probe."""

    port: int
    path: str = "/"
    host: str = "127.0.0.1"


@dataclass
class LocalMachineConfig:
    """The machine this API runs on."""

    key: str = "hearth"
    name: str = "Hearth"
    role: str = "Orchestration hub"
    services: Dict[str, ServiceConfig] = field(default_factory=dict)
    models_service: Optional[str] = "ollama"


@dataclass
class RemoteHostConfig:
    """A remote machine reached over LAN and the overlay mesh."""

    name: str
    primary: str
    overlay: Optional[str] = None
    port: int = 11434
    path: str = "/api/tags"
    role: str = ""
    ssh_target: Optional[str] = None
    inspect_timeout_ms: int = 8000


@dataclass
class GatewayConfig:
    """Model routing gateway (OpenAI-compatible)."""

    host: str = "127.0.0.1"
    port: int = 4000
    health_path: str = "/health/readiness"
    models_path: str = "/v1/models"
    api_key: Optional[str] = None


@dataclass
class FleetConfig:
    """Fleet layout."""

    local: LocalMachineConfig = field(default_factory=LocalMachineConfig)
    hosts: Dict[str, RemoteHostConfig] = field(default_factory=dict)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    route_buckets: Dict[str, List[str]] = field(
        default_factory=lambda: {
            "anvil": ["anvil/"],
            "local": ["local/"],
            "cloud": ["claude/", "gpt/", "gemini/"],
            "gpu": ["gpu/"],
        }
    )
    mesh_command: str = "tailscale status --json"
    mesh_timeout_ms: int = 5000


@dataclass
class AgentsConfig:
    """Agent coordination sources."""

    protocol_path: str = "~/agent-protocol.md"
    session_logs_dir: str = "~/.claude/session-logs"
    collab_brief_path: str = "~/claude-collab-brief.md"
    recency_threshold_ms: int = DEFAULT_RECENCY_THRESHOLD_MS
    process_patterns: List[str] = field(default_factory=lambda: ["claude", "sonnet", "opus"])
    process_command: str = "ps aux"
    match_strategy: str = "first"  # 'first' or 'longest'
    aliases: Dict[str, str] = field(default_factory=dict)


@dataclass
class StoresConfig:
    """Local data stores exposed read-only."""

    vault_path: str = "~/Documents/Vault"
    atlas_db_path: str = "~/tools/memoryatlas/data/atlas.db"
    volumes_dir: str = "/Volumes"


def _default_services() -> Dict[str, ServiceConfig]:
    return {
        "dashboard": ServiceConfig(port=3000),
        "prompt_browser": ServiceConfig(port=3002),
        "ollama": ServiceConfig(port=11434, path="/api/tags"),
    }


def _default_hosts() -> Dict[str, RemoteHostConfig]:
    return {
        "anvil": RemoteHostConfig(
            name="Anvil",
            primary="192.168.1.105",
            overlay="100.116.17.120",
            role="Inference workhorse",
            ssh_target="anvil",
        ),
    }


@dataclass
class Config:
    """Main configuration container."""

    deployment_name: str = "Fleet Status API"

    server: ServerConfig = field(default_factory=ServerConfig)
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    fleet: FleetConfig = field(
        default_factory=lambda: FleetConfig(
            local=LocalMachineConfig(services=_default_services()),
            hosts=_default_hosts(),
        )
    )
    agents: AgentsConfig = field(default_factory=AgentsConfig)
    stores: StoresConfig = field(default_factory=StoresConfig)

    def __post_init__(self):
        if self.agents.match_strategy not in MATCH_STRATEGIES:
            raise ValueError(
                f"agents.match_strategy must be one of {MATCH_STRATEGIES}, "
                f"got {self.agents.match_strategy!r}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        deployment = data.get("deployment", {})

        server_data = data.get("server", {})
        server = ServerConfig(
            host=server_data.get("host", "127.0.0.1"),
            port=int(server_data.get("port", 3001)),
        )

        probe_data = data.get("probe", {})
        probe = ProbeConfig(
            timeout_ms=int(probe_data.get("timeout_ms", DEFAULT_PROBE_TIMEOUT_MS)),
            grace_ms=int(probe_data.get("grace_ms", 250)),
        )

        fleet_data = data.get("fleet", {})
        local_data = fleet_data.get("local", {})
        services_data = local_data.get("services")
        if services_data is None:
            services = _default_services()
        else:
            services = {
                name: ServiceConfig(
                    port=int(svc["port"]),
                    path=svc.get("path", "/"),
                    host=svc.get("host", "127.0.0.1"),
                )
                for name, svc in services_data.items()
                if isinstance(svc, dict) and "port" in svc
            }
        local = LocalMachineConfig(
            key=local_data.get("key", "hearth"),
            name=local_data.get("name", "Hearth"),
            role=local_data.get("role", "Orchestration hub"),
            services=services,
            models_service=local_data.get("models_service", "ollama"),
        )

        hosts_data = fleet_data.get("hosts")
        if hosts_data is None:
            hosts = _default_hosts()
        else:
            hosts = {}
            for key, host in hosts_data.items():
                if not isinstance(host, dict) or "primary" not in host:
                    continue
                hosts[key] = RemoteHostConfig(
                    name=host.get("name", key),
                    primary=host["primary"],
                    overlay=host.get("overlay"),
                    port=int(host.get("port", 11434)),
                    path=host.get("path", "/api/tags"),
                    role=host.get("role", ""),
                    ssh_target=host.get("ssh_target"),
                    inspect_timeout_ms=int(host.get("inspect_timeout_ms", 8000)),
                )

        gw_data = fleet_data.get("gateway", {})
        gateway = GatewayConfig(
            host=gw_data.get("host", "127.0.0.1"),
            port=int(gw_data.get("port", 4000)),
            health_path=gw_data.get("health_path", "/health/readiness"),
            models_path=gw_data.get("models_path", "/v1/models"),
            api_key=gw_data.get("api_key") or os.environ.get("FLEET_STATUS_GATEWAY_KEY"),
        )

        fleet = FleetConfig(
            local=local,
            hosts=hosts,
            gateway=gateway,
            route_buckets=fleet_data.get("route_buckets", FleetConfig().route_buckets),
            mesh_command=fleet_data.get("mesh_command", "tailscale status --json"),
            mesh_timeout_ms=int(fleet_data.get("mesh_timeout_ms", 5000)),
        )

        agents_data = data.get("agents", {})
        defaults = AgentsConfig()
        agents = AgentsConfig(
            protocol_path=agents_data.get("protocol_path", defaults.protocol_path),
            session_logs_dir=agents_data.get("session_logs_dir", defaults.session_logs_dir),
            collab_brief_path=agents_data.get("collab_brief_path", defaults.collab_brief_path),
            recency_threshold_ms=int(
                agents_data.get("recency_threshold_ms", DEFAULT_RECENCY_THRESHOLD_MS)
            ),
            process_patterns=agents_data.get("process_patterns", defaults.process_patterns),
            process_command=agents_data.get("process_command", defaults.process_command),
            match_strategy=agents_data.get("match_strategy", "first"),
            aliases=agents_data.get("aliases", {}) or {},
        )

        stores_data = data.get("stores", {})
        store_defaults = StoresConfig()
        stores = StoresConfig(
            vault_path=stores_data.get("vault_path", store_defaults.vault_path),
            atlas_db_path=stores_data.get("atlas_db_path", store_defaults.atlas_db_path),
            volumes_dir=stores_data.get("volumes_dir", store_defaults.volumes_dir),
        )

        return cls(
            deployment_name=deployment.get("name", "Fleet Status API"),
            server=server,
            probe=probe,
            fleet=fleet,
            agents=agents,
            stores=stores,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "Config":
        """Load config from YAML file."""
        if not path.exists():
            return cls()
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """Load config from path or defaults.

        Checks in order:
        1. Provided path
        2. FLEET_STATUS_CONFIG env var
        3. ./configs/config.yaml
        4. ./config.yaml
        5. ~/.fleet_status/config.yaml
        6. Default config
        """
        paths_to_try = []

        if config_path:
            paths_to_try.append(Path(config_path))

        if env_path := os.environ.get("FLEET_STATUS_CONFIG"):
            paths_to_try.append(Path(env_path))

        paths_to_try.extend([
            Path("./configs/config.yaml"),
            Path("./config.yaml"),
            Path.home() / ".fleet_status" / "config.yaml",
        ])

        for path in paths_to_try:
            if path.exists():
                return cls.from_yaml(path)

        return cls()

    # --- Resolved paths ---

    @property
    def protocol_path(self) -> Path:
        return Path(_expand(self.agents.protocol_path))

    @property
    def session_logs_dir(self) -> Path:
        return Path(_expand(self.agents.session_logs_dir))

    @property
    def collab_brief_path(self) -> Path:
        return Path(_expand(self.agents.collab_brief_path))

    @property
    def vault_path(self) -> Path:
        return Path(_expand(self.stores.vault_path))

    @property
    def atlas_db_path(self) -> Path:
        return Path(_expand(self.stores.atlas_db_path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary. The gateway key is never included."""
        return {
            "deployment": {"name": self.deployment_name},
            "server": {"host": self.server.host, "port": self.server.port},
            "probe": {"timeout_ms": self.probe.timeout_ms, "grace_ms": self.probe.grace_ms},
            "fleet": {
                "local": {
                    "key": self.fleet.local.key,
                    "name": self.fleet.local.name,
                    "services": {
                        name: {"port": svc.port, "path": svc.path}
                        for name, svc in self.fleet.local.services.items()
                    },
                },
                "hosts": {
                    key: {"name": host.name, "primary": host.primary, "overlay": host.overlay}
                    for key, host in self.fleet.hosts.items()
                },
                "gateway": {"host": self.fleet.gateway.host, "port": self.fleet.gateway.port},
                "route_buckets": self.fleet.route_buckets,
            },
            "agents": {
                "recency_threshold_ms": self.agents.recency_threshold_ms,
                "process_patterns": list(self.agents.process_patterns),
                "match_strategy": self.agents.match_strategy,
            },
        }
