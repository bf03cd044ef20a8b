"""Tests for the pattern router."""

import pytest

from fleet_status.server.router import Router, match_pattern


def _handler(name):
    def handler(req):
        return name
    handler.__name__ = name
    return handler


class TestMatchPattern:
    def test_literal_match(self):
        assert match_pattern("/api/fleet", "/api/fleet") == {}

    def test_literal_mismatch(self):
        assert match_pattern("/api/fleet", "/api/agents") is None

    def test_segment_count_must_match(self):
        assert match_pattern("/api/fleet", "/api/fleet/extra") is None
        assert match_pattern("/api/fleet/hosts/:name", "/api/fleet/hosts") is None

    def test_trailing_slash_is_an_extra_segment(self):
        assert match_pattern("/api/fleet", "/api/fleet/") is None

    def test_named_params(self):
        params = match_pattern("/api/atlas/assets/:id", "/api/atlas/assets/abc-123")
        assert params == {"id": "abc-123"}

    def test_params_are_percent_decoded(self):
        params = match_pattern("/api/atlas/search/:query", "/api/atlas/search/hello%20world")
        assert params == {"query": "hello world"}

    def test_encoded_slash_stays_inside_one_segment(self):
        params = match_pattern("/api/agents/sessions/:name", "/api/agents/sessions/..%2Fprivate.md")
        assert params == {"name": "../private.md"}


class TestRouter:
    def test_method_must_match(self):
        router = Router()
        router.get("/api/fleet", _handler("fleet"))
        assert router.match("POST", "/api/fleet") is None
        assert router.match("GET", "/api/fleet") is not None

    def test_query_string_is_ignored(self):
        router = Router()
        router.get("/api/vault/notes", _handler("notes"))
        match = router.match("GET", "/api/vault/notes?dir=Efforts/Active")
        assert match is not None
        assert match.params == {}

    def test_first_registered_wins(self):
        router = Router()
        routes = _handler("routes")
        router.get("/api/fleet/:section", _handler("section"))
        router.get("/api/fleet/routes", routes)
        match = router.match("GET", "/api/fleet/routes")
        assert match.handler.__name__ == "section"
        assert match.params == {"section": "routes"}

    def test_literal_before_placeholder(self):
        router = Router()
        router.get("/api/fleet/routes", _handler("routes"))
        router.get("/api/fleet/hosts/:name", _handler("host"))
        assert router.match("GET", "/api/fleet/routes").handler.__name__ == "routes"
        match = router.match("GET", "/api/fleet/hosts/anvil")
        assert match.handler.__name__ == "host"
        assert match.params == {"name": "anvil"}

    def test_no_match_returns_none(self):
        router = Router()
        router.get("/health", _handler("health"))
        assert router.match("GET", "/nope") is None

    def test_frozen_router_rejects_registration(self):
        router = Router()
        router.get("/health", _handler("health"))
        router.freeze()
        with pytest.raises(RuntimeError):
            router.post("/late", _handler("late"))
        assert len(router.routes) == 1

    def test_register_normalizes_method(self):
        router = Router()
        router.register("post", "/api/agents/spawn", _handler("spawn"))
        assert router.match("POST", "/api/agents/spawn") is not None

    def test_match_normalizes_method(self):
        router = Router()
        router.get("/api/fleet", _handler("fleet"))
        assert router.match("get", "/api/fleet") is not None
