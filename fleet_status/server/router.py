"""Minimal pattern router.

Patterns are ``/``-delimited literal segments and ``:name`` placeholders,
e.g. ``/api/atlas/assets/:id``. Routes are tried in registration order and
the first structural match wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import unquote, urlsplit

Handler = Callable[..., Any]


@dataclass(frozen=True)
class Route:
    method: str
    pattern: str
    handler: Handler


@dataclass(frozen=True)
class RouteMatch:
    handler: Handler
    params: Dict[str, str]


def match_pattern(pattern: str, pathname: str) -> Optional[Dict[str, str]]:
    """Match a pathname against a pattern.

    Returns the extracted params, or None when the segment counts differ or
    a literal segment does not match exactly.
    """
    pattern_parts = pattern.split("/")
    path_parts = pathname.split("/")
    if len(pattern_parts) != len(path_parts):
        return None

    params: Dict[str, str] = {}
    for expected, actual in zip(pattern_parts, path_parts):
        if expected.startswith(":"):
            params[expected[1:]] = unquote(actual)
        elif expected != actual:
            return None
    return params


class Router:
    """Ordered route table with method + path matching."""

    def __init__(self):
        self._routes: List[Route] = []
        self._frozen = False

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    def register(self, method: str, pattern: str, handler: Handler) -> None:
        if self._frozen:
            raise RuntimeError("Router is frozen; routes must be registered at startup")
        self._routes.append(Route(method.upper(), pattern, handler))

    def get(self, pattern: str, handler: Handler) -> None:
        self.register("GET", pattern, handler)

    def post(self, pattern: str, handler: Handler) -> None:
        self.register("POST", pattern, handler)

    def freeze(self) -> "Router":
        self._frozen = True
        return self

    def match(self, method: str, url: str) -> Optional[RouteMatch]:
        pathname = urlsplit(url).path or "/"
        for route in self._routes:
            if route.method != method.upper():
                continue
            params = match_pattern(route.pattern, pathname)
            if params is not None:
                return RouteMatch(route.handler, params)
        return None
