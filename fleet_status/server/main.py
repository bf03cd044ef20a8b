#!/usr/bin/env python3
"""
Fleet Status API - Main entry point.

Serves live fleet, agent, system and data-store state over HTTP. Every
request reads its sources fresh; nothing is cached between requests.
"""

from __future__ import annotations

import argparse
from http.server import ThreadingHTTPServer
from typing import List, Optional

from .config import Config
from .endpoints import ApiContext, build_router
from .routes import bind_handler


def create_server(config: Config) -> ThreadingHTTPServer:
    """Build the route table and bind the HTTP server."""
    ctx = ApiContext.from_config(config)
    router = build_router(ctx)
    handler = bind_handler(router)
    server = ThreadingHTTPServer((config.server.host, config.server.port), handler)
    server.daemon_threads = True
    return server


def run_server(args: argparse.Namespace):
    config = Config.load(args.config)

    # CLI overrides
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.probe_timeout:
        config.probe.timeout_ms = args.probe_timeout

    server = create_server(config)

    print(f"[api] {config.deployment_name} serving on http://{config.server.host}:{config.server.port}")
    print(f"[api] Probe timeout: {config.probe.timeout_ms}ms, remote hosts: {', '.join(config.fleet.hosts) or 'none'}")

    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print("\n[api] Shutting down...")
    finally:
        server.server_close()


def parse_args(argv: Optional[List[str]] = None):
    parser = argparse.ArgumentParser(
        description="Fleet Status API",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument("--host", default=None, help="Bind address (default from config: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=None, help="Port to listen on (default from config: 3001)")
    parser.add_argument("--config", type=str, help="Path to config YAML file")
    parser.add_argument(
        "--probe-timeout",
        type=int,
        default=None,
        help="Per-probe timeout in milliseconds",
    )

    return parser.parse_args(argv)


def main():
    """Entry point for the fleet-status command."""
    args = parse_args()
    run_server(args)


if __name__ == "__main__":
    main()
