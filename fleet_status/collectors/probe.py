"""Concurrent HTTP health probes.

A probe is one bounded-time GET against a service. ``probe_many`` fans
several probes out at once and joins on all of them; the join never takes
longer than the slowest probe's timeout plus a small grace period.
"""

from __future__ import annotations

import json
import time
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Dict, Hashable, Mapping, Optional, TypeVar

import requests
from requests.adapters import HTTPAdapter

from ..data.models import ProbeResult, ProbeTarget

K = TypeVar("K", bound=Hashable)

RAW_BODY_LIMIT = 500
MAX_BODY_BYTES = 4 * 1024 * 1024


def _log(msg: str) -> None:
    print(msg, flush=True)


class ProbeOrchestrator:
    """Runs probes with a per-probe deadline and never raises."""

    def __init__(self, default_timeout_ms: int = 3000, grace_ms: int = 250):
        self.default_timeout_ms = default_timeout_ms
        self.grace_ms = grace_ms

    def _make_session(self) -> requests.Session:
        """Fresh session per probe; sessions are not shared across threads."""
        session = requests.Session()
        adapter = HTTPAdapter(max_retries=0, pool_connections=1, pool_maxsize=1)
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        return session

    def _timeout_for(self, target: ProbeTarget, timeout_ms: Optional[int]) -> int:
        for candidate in (timeout_ms, target.timeout_ms):
            if candidate is not None:
                return int(candidate)
        return int(self.default_timeout_ms)

    def _fetch(self, target: ProbeTarget, timeout_ms: int) -> ProbeResult:
        if timeout_ms <= 0:
            return ProbeResult(ok=False, latency_ms=0, timeout=True)
        timeout_s = timeout_ms / 1000.0
        start = time.monotonic()
        deadline = start + timeout_s
        session = self._make_session()
        try:
            resp = session.get(
                target.url,
                headers=target.headers or None,
                timeout=(timeout_s, timeout_s),
                stream=True,
            )
            chunks = []
            size = 0
            for chunk in resp.iter_content(chunk_size=8192):
                if time.monotonic() > deadline:
                    resp.close()
                    return ProbeResult(ok=False, latency_ms=timeout_ms, timeout=True)
                chunks.append(chunk)
                size += len(chunk)
                if size >= MAX_BODY_BYTES:
                    break
            latency_ms = int((time.monotonic() - start) * 1000)
            if latency_ms > timeout_ms:
                return ProbeResult(ok=False, latency_ms=timeout_ms, timeout=True)
            body = b"".join(chunks).decode(resp.encoding or "utf-8", errors="replace")
            return ProbeResult(
                ok=True,
                latency_ms=latency_ms,
                status=resp.status_code,
                data=self._parse_body(body),
            )
        except requests.exceptions.Timeout:
            return ProbeResult(ok=False, latency_ms=timeout_ms, timeout=True)
        except requests.exceptions.RequestException:
            return ProbeResult(ok=False, latency_ms=int((time.monotonic() - start) * 1000))
        except Exception as exc:
            _log(f"[probe] Unexpected error probing {target.url}: {exc}")
            return ProbeResult(ok=False, latency_ms=int((time.monotonic() - start) * 1000))
        finally:
            session.close()

    @staticmethod
    def _parse_body(body: str):
        """Decoded JSON when possible, otherwise a truncated raw fallback."""
        try:
            return json.loads(body)
        except ValueError:
            return body[:RAW_BODY_LIMIT]

    def probe(self, target: ProbeTarget, timeout_ms: Optional[int] = None) -> ProbeResult:
        """Probe a single target."""
        key = "target"
        return self.probe_many({key: target}, timeout_ms=timeout_ms)[key]

    def probe_many(
        self,
        targets: Mapping[K, ProbeTarget],
        timeout_ms: Optional[int] = None,
    ) -> Dict[K, ProbeResult]:
        """Probe every target concurrently and join on all of them.

        All probes are submitted before any is awaited. A probe that has
        not finished by its own deadline resolves to a timeout result and
        is left to finish in the background; siblings are unaffected.
        """
        if not targets:
            return {}

        timeouts = {key: self._timeout_for(t, timeout_ms) for key, t in targets.items()}
        pool = ThreadPoolExecutor(max_workers=len(targets), thread_name_prefix="probe")
        try:
            started = time.monotonic()
            futures = {
                key: pool.submit(self._fetch, target, timeouts[key])
                for key, target in targets.items()
            }
            join_s = (max(timeouts.values()) + self.grace_ms) / 1000.0
            wait(list(futures.values()), timeout=join_s)

            results: Dict[K, ProbeResult] = {}
            for key, future in futures.items():
                if future.done():
                    try:
                        results[key] = future.result()
                    except Exception as exc:
                        elapsed = int((time.monotonic() - started) * 1000)
                        _log(f"[probe] Probe {key!r} failed: {exc}")
                        results[key] = ProbeResult(ok=False, latency_ms=elapsed)
                else:
                    future.cancel()
                    results[key] = ProbeResult(ok=False, latency_ms=timeouts[key], timeout=True)
            return results
        finally:
            pool.shutdown(wait=False)
