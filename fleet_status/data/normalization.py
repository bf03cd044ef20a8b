"""Source-agnostic data normalization.

This module turns the raw shapes reported by fleet services into the
consistent structures used in API responses.

Key normalizations:
1. Route identifiers → Named provider buckets by prefix
2. Overlay mesh status → Flat device list, self first
3. Model listings → Name/size/family records with sizes in GB
4. Request paths → Rejected when they try to escape their root
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence
from urllib.parse import unquote

from .models import MeshDevice

BYTES_PER_GB = 1024 ** 3


# =============================================================================
# Route Buckets
# =============================================================================


def categorize_routes(
    identifiers: Iterable[str],
    buckets: Mapping[str, Sequence[str]],
) -> Dict[str, Any]:
    """Partition route identifiers into buckets by prefix.

    Args:
        identifiers: Model/route ids as reported by the gateway
        buckets: Bucket name -> list of prefixes (e.g. {"cloud": ["claude/", "gpt/"]})

    Returns:
        {"routes": {bucket: [ids...]}, "all": [ids...]}. Every bucket key is
        present even when empty; ids matching no prefix appear only in "all".
    """
    all_ids = [str(i) for i in identifiers if i]
    routes: Dict[str, List[str]] = {name: [] for name in buckets}
    for ident in all_ids:
        for name, prefixes in buckets.items():
            if any(ident.startswith(prefix) for prefix in prefixes):
                routes[name].append(ident)
    return {"routes": routes, "all": all_ids}


def extract_model_ids(payload: Any) -> List[str]:
    """Ids from an OpenAI-style ``{"data": [{"id": ...}]}`` listing."""
    if not isinstance(payload, dict):
        return []
    entries = payload.get("data") or []
    if not isinstance(entries, list):
        return []
    return [e["id"] for e in entries if isinstance(e, dict) and e.get("id")]


# =============================================================================
# Overlay Mesh
# =============================================================================


def _first_address(node: Mapping[str, Any]) -> Optional[str]:
    addresses = node.get("TailscaleIPs") or []
    return addresses[0] if addresses else None


def parse_mesh_status(raw: Optional[str]) -> List[MeshDevice]:
    """Parse ``tailscale status --json`` into a device list.

    The self node always comes first and is always online. Any parse
    failure yields an empty list.
    """
    if not raw:
        return []
    try:
        status = json.loads(raw)
    except ValueError:
        return []
    if not isinstance(status, dict):
        return []

    devices: List[MeshDevice] = []
    me = status.get("Self") or {}
    if isinstance(me, dict):
        devices.append(
            MeshDevice(
                name=me.get("HostName") or "self",
                address=_first_address(me),
                online=True,
                os=me.get("OS"),
            )
        )

    peers = status.get("Peer") or {}
    if isinstance(peers, dict):
        for peer in peers.values():
            if not isinstance(peer, dict):
                continue
            devices.append(
                MeshDevice(
                    name=peer.get("HostName") or "unknown",
                    address=_first_address(peer),
                    online=bool(peer.get("Online")),
                    os=peer.get("OS"),
                    last_seen=peer.get("LastSeen"),
                )
            )
    return devices


# =============================================================================
# Model Listings
# =============================================================================


def format_size_gb(size_bytes: Any) -> str:
    """Bytes → "12.3GB"; anything unusable → "unknown"."""
    try:
        size = float(size_bytes)
    except (TypeError, ValueError):
        return "unknown"
    if size <= 0:
        return "unknown"
    return f"{size / BYTES_PER_GB:.1f}GB"


def normalize_models(payload: Any, detailed: bool = True) -> List[Dict[str, Any]]:
    """Model records from an Ollama ``/api/tags`` response."""
    if not isinstance(payload, dict):
        return []
    models = []
    for entry in payload.get("models") or []:
        if not isinstance(entry, dict):
            continue
        details = entry.get("details") or {}
        record = {
            "name": entry.get("name"),
            "size": format_size_gb(entry.get("size")),
            "family": details.get("family") or "unknown",
        }
        if detailed:
            record["parameter_size"] = details.get("parameter_size") or "unknown"
            record["quantization"] = details.get("quantization_level") or "unknown"
        models.append(record)
    return models


def total_size_gb(models: Iterable[Mapping[str, Any]]) -> float:
    total = 0.0
    for model in models:
        match = re.match(r"([\d.]+)GB$", str(model.get("size", "")))
        if match:
            total += float(match.group(1))
    return round(total, 1)


def parse_model_list(output: Optional[str]) -> List[Dict[str, Optional[str]]]:
    """Parse ``ollama list`` table output (header line skipped)."""
    if not output:
        return []
    models = []
    for line in output.splitlines()[1:]:
        parts = line.split()
        if not parts:
            continue
        models.append({
            "name": parts[0],
            "size": " ".join(parts[2:4]) if len(parts) > 3 else None,
            "modified": " ".join(parts[4:]) if len(parts) > 4 else None,
        })
    return models


# =============================================================================
# Request Path Safety
# =============================================================================


def fully_unquote(value: str, max_rounds: int = 5) -> str:
    """Percent-decode until the value stops changing."""
    for _ in range(max_rounds):
        decoded = unquote(value)
        if decoded == value:
            break
        value = decoded
    return value


def is_unsafe_path(value: Optional[str]) -> bool:
    """True for parent-directory traversal or absolute paths, however encoded."""
    if not value:
        return False
    decoded = fully_unquote(value).replace("\\", "/")
    if decoded.startswith("/") or "\x00" in decoded:
        return True
    return ".." in decoded
