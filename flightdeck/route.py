"""
Route entities: registered routes, their middleware and per-request matches.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .pattern import CompiledPattern, compile_pattern

# Set up logger for this module
logger = logging.getLogger(__name__)

ANY_METHOD = "*"


class Middleware:
    """A before/after hook pair attached to a route.

    Either hook may be None. The object the hooks came from is kept in
    ``source`` and is shared by reference with whoever constructed it.
    """

    def __init__(self, before: Optional[Callable] = None, after: Optional[Callable] = None, source: Any = None):
        self.before = before
        self.after = after
        self.source = source if source is not None else (before or after)

    @classmethod
    def wrap(cls, middleware: Any) -> "Middleware":
        """Normalize a user-supplied middleware into a Middleware entry.

        A Middleware instance is returned unchanged. An object exposing
        ``before`` and/or ``after`` methods contributes whichever it has. Any
        other callable becomes a before-only hook.
        """
        if isinstance(middleware, Middleware):
            return middleware

        before = getattr(middleware, "before", None)
        after = getattr(middleware, "after", None)
        before = before if callable(before) else None
        after = after if callable(after) else None

        if before is None and after is None:
            if not callable(middleware):
                raise TypeError(f"Middleware must be callable or define before/after: {middleware!r}")
            return cls(before=middleware, source=middleware)
        return cls(before=before, after=after, source=middleware)

    def __repr__(self) -> str:
        return f"Middleware(before={self.before is not None}, after={self.after is not None})"


MiddlewareSpec = Union[Any, Iterable[Any]]


def normalize_middleware(middleware: Optional[MiddlewareSpec]) -> List[Middleware]:
    """Turn a single middleware or an ordered list of them into Middleware entries."""
    if middleware is None:
        return []
    if isinstance(middleware, (list, tuple)):
        return [Middleware.wrap(m) for m in middleware]
    return [Middleware.wrap(middleware)]


class Route:
    """Represents a registered route and its handler."""

    def __init__(
        self,
        pattern: str,
        handler: Callable,
        methods: Optional[Iterable[str]] = None,
        pass_route: bool = False,
        alias: Optional[str] = None,
    ):
        self.pattern = pattern
        self.handler = handler
        self.methods: FrozenSet[str] = frozenset(m.upper() for m in methods) if methods else frozenset([ANY_METHOD])
        self.pass_route = pass_route
        self.alias = alias
        # Compiles eagerly so malformed patterns fail at registration
        self.compiled: CompiledPattern = compile_pattern(pattern)
        self._case_sensitive: Optional[CompiledPattern] = None
        self.middleware: List[Middleware] = []

    @property
    def param_names(self):
        return self.compiled.param_names

    def matches_method(self, method: str) -> bool:
        """Check whether this route accepts the given HTTP method."""
        return ANY_METHOD in self.methods or method.upper() in self.methods

    def match(self, path: str, case_sensitive: bool = False) -> Optional[Tuple[Dict[str, Optional[str]], Optional[str]]]:
        """Match a path against the pattern, honoring the case setting in effect now."""
        if not case_sensitive:
            return self.compiled.match(path)
        if self._case_sensitive is None:
            self._case_sensitive = compile_pattern(self.pattern, case_sensitive=True)
        return self._case_sensitive.match(path)

    def add_middleware(self, middleware: MiddlewareSpec) -> "Route":
        """Append one middleware or an ordered list of them; returns self for chaining."""
        entries = normalize_middleware(middleware)
        self.middleware.extend(entries)
        logger.debug(f"Attached {len(entries)} middleware to route {self.pattern}")
        return self

    def __repr__(self) -> str:
        methods = "|".join(sorted(self.methods))
        return f"Route({methods} {self.pattern!r}, alias={self.alias!r})"


@dataclass
class MatchResult:
    """The outcome of matching one request against the route table."""

    route: Route
    params: Dict[str, Optional[str]] = field(default_factory=dict)
    splat: Optional[str] = None
    index: int = 0

    @property
    def pattern(self) -> str:
        return self.route.pattern

    @property
    def alias(self) -> Optional[str]:
        return self.route.alias

    @property
    def methods(self) -> FrozenSet[str]:
        return self.route.methods
