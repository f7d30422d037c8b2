"""
The routing and dispatch core of a small synchronous web framework.

Routes map HTTP method and path patterns to handlers, groups compose prefixes
and middleware, and every framework operation (``render``, ``json``,
``error``, ...) goes through a dispatcher where user code can filter or
replace it.
"""

from http import HTTPStatus

from .config import EngineSettings
from .dispatcher import Dispatcher, Invocation
from .drivers import Driver, WsgiDriver
from .engine import Engine
from .exceptions import (
    AliasNotFoundError,
    ConfigurationError,
    FlightdeckError,
    ForbiddenError,
    HaltRequest,
    MethodNotFoundError,
    NotFoundError,
    ProtectedNameError,
    RouteNotFoundError,
)
from .middleware import ChainResult, ChainState, MiddlewareChain
from .models import HTTPMethod, Request, Response
from .pattern import CompiledPattern, compile_pattern
from .route import MatchResult, Middleware, Route
from .router import RouteGroup, Router
from .views import View

__version__ = "0.1.0"
__author__ = "Flightdeck Contributors"
__license__ = "MIT"

__all__ = [
    "Engine",
    "EngineSettings",
    "Router",
    "RouteGroup",
    "Route",
    "Middleware",
    "MatchResult",
    "MiddlewareChain",
    "ChainResult",
    "ChainState",
    "Dispatcher",
    "Invocation",
    "CompiledPattern",
    "compile_pattern",
    "Request",
    "Response",
    "HTTPMethod",
    "HTTPStatus",
    "View",
    "Driver",
    "WsgiDriver",
    "FlightdeckError",
    "ConfigurationError",
    "ProtectedNameError",
    "NotFoundError",
    "RouteNotFoundError",
    "AliasNotFoundError",
    "MethodNotFoundError",
    "ForbiddenError",
    "HaltRequest",
]
