"""
=============================================================================
URL ROUTER
=============================================================================

Maps (method, path) pairs to handler functions.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        ROUTING FLOW                                 │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request: GET /users/42                                    │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌─────────────────────────────────────────────────────────────┐   │
    │   │  POST   /users          → create                             │   │
    │   │  GET    /users/*rest    → read_one     ← MATCH (rest="42")   │   │
    │   │  GET    /users          → read_all                           │   │
    │   │  PUT    /users/*rest    → update                             │   │
    │   │  DELETE /users/*rest    → delete                             │   │
    │   └─────────────────────────────────────────────────────────────┘   │
    │        │                                                             │
    │        ▼                                                             │
    │   handler(request) → HTTPResponse                                    │
    │                                                                      │
    │   No match → 404 Not Found with an empty body                        │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
PATTERN SYNTAX
=============================================================================

    /users          static, exact match
    /users/:id      ":" captures exactly one non-empty segment
    /users/*rest    "*" captures everything after the prefix, even ""

Rules:
- First match wins, in registration order.
- Methods must match exactly. "get" is not "GET".
- Paths are matched literally. "/users/" is not "/users".

=============================================================================
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Dict, List, Tuple
import logging
import re

from .request import HTTPRequest
from .response import HTTPResponse, not_found


logger = logging.getLogger(__name__)


# Handler: A function that takes a request and returns a response
Handler = Callable[[HTTPRequest], HTTPResponse]


@dataclass
class Route:
    """A registered route: pattern + method + handler."""

    path: str
    method: str
    handler: Handler
    name: Optional[str] = None

    _pattern: Optional[re.Pattern] = field(default=None, repr=False)
    _param_names: List[str] = field(default_factory=list, repr=False)


@dataclass
class RouteMatch:
    """
    Result of a successful route match.

        Pattern: /users/*rest
        Path:    /users/42
        Result:  RouteMatch(route=<Route>, params={"rest": "42"})
    """
    route: Route
    params: Dict[str, str]


class Router:
    """
    HTTP request router with a fixed, ordered route table.

        router = Router()
        router.add_route("/users", list_users, method="GET")
        router.add_route("/users/*rest", get_user, method="GET")
        response = router.handle(request)
    """

    def __init__(self):
        self._routes: List[Route] = []

    # =========================================================================
    # ROUTE REGISTRATION
    # =========================================================================

    def add_route(
        self,
        path: str,
        handler: Handler,
        method: str,
        name: Optional[str] = None,
    ) -> Route:
        """
        Register a route.

        Args:
            path: URL pattern (e.g., /users/*rest)
            handler: Function that takes a request and returns a response
            method: HTTP method, matched case-sensitively
            name: Optional route name (shown in logs)

        Returns:
            The registered Route object
        """
        pattern, param_names = self._compile_pattern(path)

        route = Route(
            path=path,
            method=method,
            handler=handler,
            name=name or getattr(handler, "__name__", None),
            _pattern=pattern,
            _param_names=param_names,
        )
        self._routes.append(route)
        return route

    def _compile_pattern(self, path: str) -> Tuple[re.Pattern, List[str]]:
        """
        Compile a path pattern into an anchored regex.

            "/users"        → ^/users$
            "/users/:id"    → ^/users/(?P<id>[^/]+)$
            "/users/*rest"  → ^/users/(?P<rest>.*)$

        Empty segments are kept so that a pattern ending in "/" only
        matches paths ending in "/".
        """
        param_names: List[str] = []
        regex_parts = ["^"]

        segments = path.split("/")
        for i, segment in enumerate(segments):
            if i > 0:
                regex_parts.append("/")

            if segment.startswith(":"):
                param_name = segment[1:]
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>[^/]+)")

            elif segment.startswith("*"):
                param_name = segment[1:] or "wildcard"
                param_names.append(param_name)
                regex_parts.append(f"(?P<{param_name}>.*)")
                break  # Wildcard consumes everything, stop here

            else:
                regex_parts.append(re.escape(segment))

        regex_parts.append("$")
        return re.compile("".join(regex_parts), re.DOTALL), param_names

    # =========================================================================
    # ROUTE MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """
        Find the first route matching the method and path.

        Returns:
            RouteMatch if found, None otherwise
        """
        for route in self._routes:
            if route.method != method:
                continue

            match = route._pattern.match(path)
            if match:
                return RouteMatch(route=route, params=match.groupdict())

        return None

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        """
        Route a request to its handler.

        Unmatched requests, whether the path is unknown or the method is,
        get a 404 with an empty body.
        """
        match = self.match(request.method, request.path)

        if match:
            logger.debug(f"{request.method} {request.path} -> {match.route.name}")
            request.path_params = match.params
            return match.route.handler(request)

        logger.debug(f"No route for {request.method} {request.path}")
        return not_found()

    def print_routes(self) -> None:
        """
        Print the route table.

            Registered Routes:
            ------------------------------------------------------------
              POST     /users
              GET      /users/*rest
            ------------------------------------------------------------
        """
        print("\nRegistered Routes:")
        print("-" * 60)
        for route in self._routes:
            print(f"  {route.method:8} {route.path}")
        print("-" * 60)
