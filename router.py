"""Routing table for method/path handlers."""

from __future__ import annotations

import dataclasses
import enum
import logging
import re
from dataclasses import dataclass
from typing import Protocol

from request import HTTPRequest
from response import (
    HTTPResponse,
    internal_server_error_response,
    method_not_allowed_response,
    not_found_response,
    options_response,
)

PathParams = dict[str, str]


class Handler(Protocol):
    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """Process ``request`` and return an HTTP response."""


class MatchKind(enum.Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    PARAMETERIZED = "parameterized"
    REGEX = "regex"


@dataclass(frozen=True, slots=True)
class ExactPattern:
    path: str

    def match(self, path: str) -> PathParams | None:
        return {} if path == self.path else None


@dataclass(frozen=True, slots=True)
class PrefixPattern:
    prefix: str

    def match(self, path: str) -> PathParams | None:
        return {} if path.startswith(self.prefix) else None


@dataclass(frozen=True, slots=True)
class ParameterizedPattern:
    segments: tuple[str, ...]

    def match(self, path: str) -> PathParams | None:
        path_segments = path.split("/")
        if len(path_segments) != len(self.segments):
            return None
        params: PathParams = {}
        for expected, actual in zip(self.segments, path_segments):
            if expected.startswith(":"):
                params[expected[1:]] = actual
            elif expected != actual:
                return None
        return params


@dataclass(frozen=True, slots=True)
class RegexPattern:
    regex: re.Pattern[str]

    def match(self, path: str) -> PathParams | None:
        found = self.regex.search(path)
        if found is None:
            return None
        return {name: value for name, value in found.groupdict().items() if value is not None}


RoutePattern = ExactPattern | PrefixPattern | ParameterizedPattern | RegexPattern


def compile_pattern(pattern: str, kind: MatchKind) -> RoutePattern:
    if kind is MatchKind.REGEX:
        return RegexPattern(re.compile(pattern))
    if not pattern.startswith("/"):
        raise ValueError("path must start with '/'")
    if kind is MatchKind.EXACT:
        return ExactPattern(pattern)
    if kind is MatchKind.PREFIX:
        return PrefixPattern(pattern)
    return ParameterizedPattern(tuple(pattern.split("/")))


@dataclass(frozen=True, slots=True)
class Route:
    pattern: RoutePattern
    method: str | None
    handler: Handler
    kind: MatchKind

    def allows(self, method: str) -> bool:
        return self.method is None or self.method == method


class Router:
    """Ordered route table; the first registered match wins."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._routes: list[Route] = []
        self._logger = logger or logging.getLogger(__name__)

    @property
    def routes(self) -> tuple[Route, ...]:
        return tuple(self._routes)

    def register(
        self,
        pattern: str,
        method: str | None,
        handler: Handler,
        kind: MatchKind = MatchKind.EXACT,
    ) -> None:
        normalized_method = None
        if method is not None:
            normalized_method = method.upper().strip()
            if not normalized_method:
                raise ValueError("method cannot be empty")
        self._routes.append(
            Route(
                pattern=compile_pattern(pattern, kind),
                method=normalized_method,
                handler=handler,
                kind=kind,
            )
        )

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        method = request.method.upper()
        matched: list[tuple[Route, PathParams]] = []
        for route in self._routes:
            params = route.pattern.match(request.path)
            if params is None:
                continue
            if route.allows(method):
                return self._invoke(route, request, params)
            matched.append((route, params))

        if not matched:
            self._logger.debug("No route for %s %s", request.method, request.path)
            return not_found_response()

        if method == "HEAD":
            for route, params in matched:
                if route.method == "GET":
                    return as_head_response(self._invoke(route, request, params))

        allow = ", ".join(sorted({route.method for route, _params in matched if route.method}))
        if method == "OPTIONS":
            return options_response(allow)
        self._logger.debug(
            "Method %s not allowed for %s (allow: %s)", request.method, request.path, allow
        )
        return method_not_allowed_response(allow)

    def _invoke(self, route: Route, request: HTTPRequest, params: PathParams) -> HTTPResponse:
        bound_request = dataclasses.replace(request, path_params=params)
        try:
            return route.handler.handle(bound_request)
        except Exception:
            self._logger.exception(
                "Unhandled error in route handler for %s %s", request.method, request.path
            )
            return internal_server_error_response()


class LoggingMiddleware:
    """Handler wrapper logging each request and the status it produced."""

    def __init__(self, handler: Handler, logger: logging.Logger) -> None:
        self._handler = handler
        self._logger = logger

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        self._logger.info("Middleware: %s %s", request.method, request.path)
        response = self._handler.handle(request)
        self._logger.info("Response status: %s", response.status_code)
        return response


def as_head_response(get_response: HTTPResponse) -> HTTPResponse:
    headers = dict(get_response.headers)
    if get_response.stream is not None:
        headers.setdefault("Transfer-Encoding", "chunked")
    elif get_response.get_header("Content-Length") is None:
        headers["Content-Length"] = str(len(get_response.body))
    return HTTPResponse(
        status_code=get_response.status_code,
        reason_phrase=get_response.reason_phrase,
        headers=headers,
        body=b"",
        http_version=get_response.http_version,
    )
