"""Router module for registering, grouping and matching routes."""

import logging
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from .exceptions import AliasNotFoundError, ConfigurationError, RouteNotFoundError
from .route import MatchResult, Middleware, MiddlewareSpec, Route, normalize_middleware

# Set up logger for this module
logger = logging.getLogger(__name__)


def normalize_path(prefix: str, path: str) -> str:
    """Normalize a path by combining prefix and path, handling double slashes.

    Args:
        prefix: The prefix path (e.g., "/", "/api", "/users")
        path: The route path (e.g., "/", "/list", "/@id")

    Returns:
        Normalized path without double slashes

    Examples:
        normalize_path("/", "/users") -> "/users"
        normalize_path("/", "users") -> "/users"
        normalize_path("/api", "/users") -> "/api/users"
        normalize_path("/api", "users") -> "/api/users"
        normalize_path("/api/", "/users") -> "/api/users"
        normalize_path("", "/users") -> "/users"
    """
    # Ensure prefix starts with /
    if not prefix.startswith('/'):
        prefix = '/' + prefix

    # Remove trailing slash from prefix unless it's just "/"
    if prefix != '/' and prefix.endswith('/'):
        prefix = prefix.rstrip('/')

    if path == '*':
        return path if prefix == '/' else prefix + '/*'

    # Optional groups carry their own leading slash
    if path.startswith('('):
        return prefix + path if prefix != '/' else path

    # Ensure path starts with /
    if not path.startswith('/'):
        path = '/' + path

    # Combine and handle the root case
    if prefix == '/':
        return path

    return prefix + path


def split_methods(pattern: str) -> Tuple[Optional[List[str]], str]:
    """Split an optional method prefix off a route pattern.

    ``"GET /users"``, ``"GET POST /users"`` and ``"GET|POST /users"`` all
    restrict the route; a pattern without a prefix matches any method.

    Returns:
        Tuple of (methods or None, bare pattern)

    Raises:
        ConfigurationError: a method token is not alphabetic, or the path
            itself contains whitespace
    """
    tokens = pattern.strip().split()
    if len(tokens) <= 1:
        return None, pattern.strip()

    methods: List[str] = []
    for token in tokens[:-1]:
        if token[0] in '/*(' or '/' in token:
            raise ConfigurationError(f"Route path may not contain whitespace: '{pattern}'")
        for method in token.split('|'):
            if not method.isalpha():
                raise ConfigurationError(f"Invalid HTTP method '{method}' in route '{pattern}'")
            methods.append(method.upper())
    return methods, tokens[-1]


class RouteGroup:
    """Registration context handed to group callbacks.

    Carries the accumulated prefix and the middleware inherited from every
    enclosing group. Routes registered through it get both.
    """

    def __init__(self, router: "Router", prefix: str, middleware: List[Middleware]):
        self.router = router
        self.prefix = prefix
        self.middleware = middleware

    def route(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        methods, path = split_methods(pattern)
        return self.router._register(methods, path, handler, pass_route, alias, group=self)

    def map(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.route(pattern, handler, pass_route, alias)

    def get(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router._register(["GET"], pattern, handler, pass_route, alias, group=self)

    def post(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router._register(["POST"], pattern, handler, pass_route, alias, group=self)

    def put(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router._register(["PUT"], pattern, handler, pass_route, alias, group=self)

    def patch(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router._register(["PATCH"], pattern, handler, pass_route, alias, group=self)

    def delete(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router._register(["DELETE"], pattern, handler, pass_route, alias, group=self)

    def group(self, prefix: str, callback: Callable, middleware: Optional[MiddlewareSpec] = None) -> None:
        """Open a nested group under this one."""
        nested = RouteGroup(
            self.router,
            normalize_path(self.prefix, prefix),
            self.middleware + normalize_middleware(middleware),
        )
        self.router._run_group(nested, callback)


class Router:
    """Router class holding every registered route in registration order.

    Matching is first-registered-wins: the first route whose method set and
    pattern both accept the request is returned, even when a later route
    would be more specific.
    """

    def __init__(self, case_sensitive: bool = False):
        """Initialize a router.

        Args:
            case_sensitive: Whether literal segments and constraints match case-sensitively.
                Read on every match, so changing it affects routes already registered.
        """
        self.case_sensitive = case_sensitive
        self._routes: List[Route] = []
        self._aliases: Dict[str, Route] = {}
        self._groups: List[RouteGroup] = []

    @property
    def routes(self) -> List[Route]:
        """Registered routes, in registration order."""
        return list(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def map(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a route for all methods (a method prefix in the pattern still applies)."""
        return self.route(pattern, handler, pass_route, alias)

    def route(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a route, honoring an optional leading method prefix.

        Args:
            pattern: Route pattern, optionally prefixed by methods ("GET|POST /users/@id")
            handler: Callable invoked with the path parameters
            pass_route: Also pass the MatchResult to the handler as its last argument
            alias: Unique name for URL generation

        Returns:
            The registered Route, so middleware can be chained onto it

        Raises:
            ConfigurationError: the alias is taken or the pattern is malformed
        """
        methods, path = split_methods(pattern)
        return self._register(methods, path, handler, pass_route, alias)

    def get(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a GET route."""
        return self._register(["GET"], pattern, handler, pass_route, alias)

    def post(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a POST route."""
        return self._register(["POST"], pattern, handler, pass_route, alias)

    def put(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a PUT route."""
        return self._register(["PUT"], pattern, handler, pass_route, alias)

    def patch(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a PATCH route."""
        return self._register(["PATCH"], pattern, handler, pass_route, alias)

    def delete(self, pattern: str, handler: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        """Register a DELETE route."""
        return self._register(["DELETE"], pattern, handler, pass_route, alias)

    def group(self, prefix: str, callback: Callable, middleware: Optional[MiddlewareSpec] = None) -> None:
        """Register a group of routes under a common prefix and middleware.

        The callback receives a RouteGroup. Routes registered through it, or
        directly on this router while the callback runs, get the prefix and
        the group middleware (outer groups first).

        Example:
            router.group("/api", lambda api: api.get("/users", list_users), [auth])
        """
        parent = self._groups[-1] if self._groups else None
        if parent is not None:
            parent.group(prefix, callback, middleware)
            return
        group = RouteGroup(self, normalize_path("/", prefix), normalize_middleware(middleware))
        self._run_group(group, callback)

    def _run_group(self, group: RouteGroup, callback: Callable) -> None:
        self._groups.append(group)
        try:
            callback(group)
        finally:
            self._groups.pop()

    def _register(
        self,
        methods: Optional[Iterable[str]],
        pattern: str,
        handler: Callable,
        pass_route: bool,
        alias: Optional[str],
        group: Optional[RouteGroup] = None,
    ) -> Route:
        if group is None and self._groups:
            group = self._groups[-1]
        if group is not None:
            pattern = normalize_path(group.prefix, pattern)

        if alias is not None and alias in self._aliases:
            raise ConfigurationError(
                f"Alias '{alias}' is already used by route {self._aliases[alias].pattern!r}"
            )

        route = Route(pattern, handler, methods, pass_route, alias)
        if group is not None:
            route.add_middleware(group.middleware)

        self._routes.append(route)
        if alias is not None:
            self._aliases[alias] = route

        logger.debug(f"Registered route {route!r}")
        return route

    def match(self, method: str, path: str, start: int = 0) -> Optional[MatchResult]:
        """Match a request against the route table.

        Args:
            method: HTTP method of the request
            path: Request path; a query string suffix is ignored
            start: Index of the first route to consider (to resume after a pass-through)

        Returns:
            MatchResult for the first matching route, None otherwise
        """
        path = path.split('?', 1)[0] or '/'

        for index in range(start, len(self._routes)):
            route = self._routes[index]
            if not route.matches_method(method):
                continue
            found = route.match(path, self.case_sensitive)
            if found is None:
                continue
            params, splat = found
            logger.debug(f"Matched {method} {path} to {route!r} with params {params}")
            return MatchResult(route=route, params=params, splat=splat, index=index)

        logger.debug(f"No route matched {method} {path}")
        return None

    def resolve(self, method: str, path: str, start: int = 0) -> MatchResult:
        """Like ``match``, but raise when nothing matches.

        Raises:
            RouteNotFoundError: no route accepts the method and path
        """
        found = self.match(method, path, start)
        if found is None:
            raise RouteNotFoundError(method, path.split('?', 1)[0] or '/')
        return found

    def get_route(self, alias: str) -> Route:
        """Look up a route by alias.

        Raises:
            AliasNotFoundError: no route carries this alias
        """
        route = self._aliases.get(alias)
        if route is None:
            raise AliasNotFoundError(alias)
        return route

    def get_url(self, alias: str, params: Optional[Mapping[str, object]] = None) -> str:
        """Build a URL for the route registered under ``alias``.

        Parameter values are substituted as given; they are not checked
        against the parameters' constraints.

        Raises:
            AliasNotFoundError: no route carries this alias
            ConfigurationError: a required parameter has no value
        """
        return self.get_route(alias).compiled.build(params)

    def reset(self) -> None:
        """Remove every registered route."""
        self._routes.clear()
        self._aliases.clear()
