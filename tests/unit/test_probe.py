"""Tests for the concurrent HTTP probe orchestrator."""

import time

from fleet_status.collectors.probe import RAW_BODY_LIMIT, ProbeOrchestrator
from fleet_status.data.models import ProbeTarget


class TestProbe:
    def test_json_body_is_decoded(self, fixture_http_server):
        host, port = fixture_http_server
        result = ProbeOrchestrator().probe(ProbeTarget(host=host, port=port, path="/api/tags"))
        assert result.ok is True
        assert result.timeout is False
        assert result.status == 200
        assert result.data["models"][0]["name"] == "llama3:8b"
        assert result.latency_ms >= 0

    def test_non_json_body_is_truncated_text(self, fixture_http_server):
        host, port = fixture_http_server
        result = ProbeOrchestrator().probe(ProbeTarget(host=host, port=port, path="/text"))
        assert result.ok is True
        assert isinstance(result.data, str)
        assert len(result.data) == RAW_BODY_LIMIT

    def test_error_status_still_counts_as_answered(self, fixture_http_server):
        host, port = fixture_http_server
        result = ProbeOrchestrator().probe(ProbeTarget(host=host, port=port, path="/error"))
        assert result.ok is True
        assert result.status == 500
        assert result.data == {"error": "boom"}

    def test_connection_refused_is_not_a_timeout(self, refused_port):
        result = ProbeOrchestrator().probe(
            ProbeTarget(host="127.0.0.1", port=refused_port), timeout_ms=1000
        )
        assert result.ok is False
        assert result.timeout is False
        assert result.latency_ms < 1000

    def test_silent_endpoint_times_out(self, silent_port):
        orchestrator = ProbeOrchestrator(grace_ms=250)
        start = time.monotonic()
        result = orchestrator.probe(ProbeTarget(host="127.0.0.1", port=silent_port), timeout_ms=300)
        elapsed_ms = (time.monotonic() - start) * 1000

        assert result.ok is False
        assert result.timeout is True
        assert result.latency_ms == 300
        assert elapsed_ms < 300 + 250 + 200

    def test_target_timeout_used_when_no_override(self, silent_port):
        target = ProbeTarget(host="127.0.0.1", port=silent_port, timeout_ms=200)
        result = ProbeOrchestrator(default_timeout_ms=5000).probe(target)
        assert result.timeout is True
        assert result.latency_ms == 200

    def test_explicit_zero_timeout_is_honoured(self, fixture_http_server):
        host, port = fixture_http_server
        orchestrator = ProbeOrchestrator(default_timeout_ms=5000)
        target = ProbeTarget(host=host, port=port, path="/api/tags", timeout_ms=5000)
        result = orchestrator.probe(target, timeout_ms=0)
        assert result.ok is False
        assert result.timeout is True
        assert result.latency_ms == 0
        zero_target = ProbeTarget(host=host, port=port, path="/api/tags", timeout_ms=0)
        assert orchestrator.probe(zero_target).timeout is True

    def test_to_dict_and_connectivity(self, refused_port):
        result = ProbeOrchestrator().probe(ProbeTarget(host="127.0.0.1", port=refused_port), 500)
        assert result.to_dict()["ok"] is False
        assert result.connectivity() == {
            "reachable": False,
            "latency_ms": result.latency_ms,
            "timeout": False,
        }


class TestProbeMany:
    def test_empty_plan(self):
        assert ProbeOrchestrator().probe_many({}) == {}

    def test_fan_out_takes_max_not_sum(self, silent_port):
        targets = {
            name: ProbeTarget(host="127.0.0.1", port=silent_port)
            for name in ("a", "b", "c", "d")
        }
        start = time.monotonic()
        results = ProbeOrchestrator(grace_ms=250).probe_many(targets, timeout_ms=300)
        elapsed_ms = (time.monotonic() - start) * 1000

        assert set(results) == set(targets)
        assert all(r.timeout for r in results.values())
        # four sequential probes would take at least 1200ms
        assert elapsed_ms < 900

    def test_mixed_outcomes_are_independent(self, fixture_http_server, silent_port, refused_port):
        host, port = fixture_http_server
        targets = {
            ("anvil", "primary"): ProbeTarget(host=host, port=port, path="/api/tags"),
            ("anvil", "overlay"): ProbeTarget(host="127.0.0.1", port=silent_port),
            ("service", "dashboard"): ProbeTarget(host="127.0.0.1", port=refused_port),
        }
        results = ProbeOrchestrator().probe_many(targets, timeout_ms=300)

        assert results[("anvil", "primary")].ok is True
        assert results[("anvil", "overlay")].timeout is True
        assert results[("service", "dashboard")].ok is False
        assert results[("service", "dashboard")].timeout is False
