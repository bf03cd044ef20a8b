"""Pytest configuration and shared fixtures."""

import json
import socket
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest


@pytest.fixture
def sample_protocol_md():
    """Coordination document with an Active Agents table."""
    return (
        "# Agent Protocol\n"
        "\n"
        "Rules for working together.\n"
        "\n"
        "## Active Agents\n"
        "\n"
        "| ID | Name | Model | Interface | Status | Focus |\n"
        "|----|------|-------|-----------|--------|-------|\n"
        "| A1 | Watcher | sonnet | terminal | Active - monitoring | Service health |\n"
        "| A2 | Scribe | opus | desktop | Parked | Vault cleanup |\n"
        "| A3 | Broken | row |\n"
        "\n"
        "## Handoffs\n"
        "\n"
        "Nothing yet.\n"
    )


@pytest.fixture
def sample_session_log():
    """Session log using labeled lines."""
    return (
        "# Session Log: 2025-01-10 - Watcher-session\n"
        "\n"
        "**Agent**: Watcher-session\n"
        "**Status**: Active\n"
        "**Focus**: Probing the fleet\n"
        "\n"
        "Started with (Claude Sonnet 4) on the terminal.\n"
    )


@pytest.fixture
def sample_ps_output():
    """`ps aux` output with two agent processes and noise."""
    return "\n".join([
        "USER       PID  %CPU %MEM      VSZ    RSS   TT  STAT STARTED      TIME COMMAND",
        "alice     1201   2.5  1.0  4123456  78900 s001  S+   10:00AM   0:05.12 claude --model opus",
        "alice     1202   0.0  0.1   412345   1234 s002  S    10:01AM   0:00.01 /usr/bin/vim notes.md",
        "alice     1203  12.0  3.2  5123456 178900 s003  R+   10:02AM   1:05.00 node sonnet-runner.js --watch",
        "alice     1204 claude short line",
    ])


@pytest.fixture
def sample_host_report():
    """Output of the remote report script."""
    return (
        "HOSTNAME=anvil\n"
        "UPTIME=10:00  up 3 days,  2:11, 2 users, load averages: 1.00 1.10 1.20\n"
        "DISK=/dev/nvme0n1p2  1.8T  900G  850G  52% /\n"
    )


@pytest.fixture
def sample_mesh_json():
    """`tailscale status --json` output with one peer."""
    return json.dumps({
        "Self": {
            "HostName": "hearth",
            "TailscaleIPs": ["100.64.0.1", "fd7a::1"],
            "OS": "macOS",
        },
        "Peer": {
            "nodekey:abc": {
                "HostName": "anvil",
                "TailscaleIPs": ["100.116.17.120"],
                "Online": True,
                "OS": "linux",
                "LastSeen": "2025-01-10T10:00:00Z",
            },
            "nodekey:def": {
                "HostName": "phone",
                "TailscaleIPs": [],
                "Online": False,
                "OS": "iOS",
            },
        },
    })


@pytest.fixture
def sample_ollama_tags():
    """Ollama /api/tags response."""
    return {
        "models": [
            {
                "name": "llama3:8b",
                "size": 4_920_000_000,
                "details": {"family": "llama", "parameter_size": "8B", "quantization_level": "Q4_0"},
            },
            {
                "name": "qwen2.5:14b",
                "size": 9_000_000_000,
                "details": {"family": "qwen2", "parameter_size": "14B", "quantization_level": "Q4_K_M"},
            },
        ]
    }


class _FixtureHandler(BaseHTTPRequestHandler):
    routes = {}

    def do_GET(self):
        status, content_type, body = self.routes.get(
            self.path, (404, "text/plain", b"missing")
        )
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        pass


@pytest.fixture
def fixture_http_server(sample_ollama_tags):
    """Local HTTP server; yields (host, port)."""
    routes = {
        "/api/tags": (200, "application/json", json.dumps(sample_ollama_tags).encode("utf-8")),
        "/text": (200, "text/plain", ("x" * 800).encode("utf-8")),
        "/error": (500, "application/json", b'{"error": "boom"}'),
    }
    handler = type("Handler", (_FixtureHandler,), {"routes": routes})
    server = ThreadingHTTPServer(("127.0.0.1", 0), handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield server.server_address[0], server.server_address[1]
    finally:
        server.shutdown()
        server.server_close()


@pytest.fixture
def silent_port():
    """A listening socket that accepts connections but never answers."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(16)
    try:
        yield sock.getsockname()[1]
    finally:
        sock.close()


@pytest.fixture
def refused_port():
    """A port with nothing listening on it."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    port = sock.getsockname()[1]
    sock.close()
    return port
