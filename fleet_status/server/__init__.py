"""HTTP server: configuration, routing, endpoints and entry point."""
