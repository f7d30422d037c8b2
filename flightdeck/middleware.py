"""
Middleware chain executor.

Runs a matched route through its middleware:

    PENDING -> RUNNING_BEFORE -> RUNNING_HANDLER -> RUNNING_AFTER -> DONE

A hook that returns ``False`` moves the chain to SHORT_CIRCUITED, which the
engine reports as 403 Forbidden. Exceptions are not caught here.
"""

import inspect
import logging
from enum import Enum
from http import HTTPStatus
from typing import Any, Callable, List, Optional, Sequence

from .exceptions import ForbiddenError
from .route import MatchResult, Middleware

# Set up logger for this module
logger = logging.getLogger(__name__)


class ChainState(Enum):
    """States of a middleware chain run."""

    PENDING = "pending"
    RUNNING_BEFORE = "running_before"
    RUNNING_HANDLER = "running_handler"
    RUNNING_AFTER = "running_after"
    DONE = "done"
    SHORT_CIRCUITED = "short_circuited"


class ChainResult:
    """Result from a middleware chain run."""

    def __init__(
        self,
        state: ChainState,
        handler_result: Any = None,
        failed_hook: Optional[Middleware] = None,
        failed_phase: Optional[ChainState] = None,
    ):
        self.state = state
        self.handler_result = handler_result
        self.failed_hook = failed_hook
        self.failed_phase = failed_phase

    @property
    def forbidden(self) -> bool:
        return self.state is ChainState.SHORT_CIRCUITED

    @property
    def status_code(self) -> Optional[int]:
        """403 for a short-circuited chain, None when the handler decides."""
        return HTTPStatus.FORBIDDEN.value if self.forbidden else None

    def raise_for_status(self) -> None:
        """Raise ForbiddenError if a hook short-circuited the chain."""
        if self.forbidden:
            raise ForbiddenError(hook=self.failed_hook)

    def __repr__(self) -> str:
        return f"ChainResult(state={self.state.name}, handler_result={self.handler_result!r})"


def call_handler(handler: Callable, args: Sequence[Any]) -> Any:
    """Call a route handler with positional arguments.

    Arguments beyond what the handler accepts are dropped, so a handler may
    ignore trailing path parameters or the route object.
    """
    try:
        sig = inspect.signature(handler)
    except (TypeError, ValueError):
        # Builtins without a signature get everything
        return handler(*args)

    positional = 0
    for param in sig.parameters.values():
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            return handler(*args)
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            positional += 1
    return handler(*list(args)[:positional])


class MiddlewareChain:
    """Executes before hooks, the handler, then after hooks for one matched route."""

    def __init__(self, match: MatchResult, invoker: Optional[Callable[[Callable, Sequence[Any]], Any]] = None):
        """
        Args:
            match: The route match to execute
            invoker: Calls the handler with its argument list; defaults to call_handler
        """
        self.match = match
        self.invoker = invoker or call_handler
        self.state = ChainState.PENDING

    def _transition(self, state: ChainState) -> None:
        logger.debug(f"Chain {self.match.route.pattern}: {self.state.name} -> {state.name}")
        self.state = state

    def handler_args(self) -> List[Any]:
        """Positional handler arguments: params in pattern order, then the match if requested."""
        args: List[Any] = list(self.match.params.values())
        if self.match.route.pass_route:
            args.append(self.match)
        return args

    def run(self) -> ChainResult:
        """Run the chain to completion or short-circuit."""
        if self.state is not ChainState.PENDING:
            raise RuntimeError(f"Middleware chain already ran (state: {self.state.name})")

        middleware = self.match.route.middleware
        params = self.match.params

        self._transition(ChainState.RUNNING_BEFORE)
        for entry in middleware:
            if entry.before is None:
                continue
            if entry.before(params) is False:
                logger.debug(f"Before hook {entry!r} rejected {self.match.route.pattern}")
                self._transition(ChainState.SHORT_CIRCUITED)
                return ChainResult(self.state, failed_hook=entry, failed_phase=ChainState.RUNNING_BEFORE)

        self._transition(ChainState.RUNNING_HANDLER)
        result = self.invoker(self.match.route.handler, self.handler_args())

        self._transition(ChainState.RUNNING_AFTER)
        for entry in reversed(middleware):
            if entry.after is None:
                continue
            if entry.after(params) is False:
                logger.debug(f"After hook {entry!r} rejected {self.match.route.pattern}")
                self._transition(ChainState.SHORT_CIRCUITED)
                return ChainResult(
                    self.state, handler_result=result, failed_hook=entry, failed_phase=ChainState.RUNNING_AFTER
                )

        self._transition(ChainState.DONE)
        return ChainResult(self.state, handler_result=result)
