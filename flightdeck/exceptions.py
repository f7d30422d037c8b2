"""
Custom exceptions for the flightdeck framework.
"""
from typing import Optional


class FlightdeckError(Exception):
    """Base exception for flightdeck errors."""

    pass


class ConfigurationError(FlightdeckError):
    """Raised at registration time for programmer mistakes.

    Duplicate aliases, duplicate parameter names within one pattern, malformed
    patterns and unresolved URL parameters all end up here.
    """

    pass


class ProtectedNameError(ConfigurationError):
    """Raised when binding over a protected framework method."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Cannot override an existing framework method: '{name}'.")


class NotFoundError(FlightdeckError):
    """Raised when a lookup by name, alias or path finds nothing."""

    pass


class RouteNotFoundError(NotFoundError):
    """Raised when no route matches the request."""

    def __init__(self, method: str, path: str):
        self.method = method
        self.path = path
        super().__init__(f"No route matches {method} {path}")


class AliasNotFoundError(NotFoundError):
    """Raised when URL generation is asked for an unknown alias."""

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"No route found with alias '{alias}'")


class MethodNotFoundError(NotFoundError):
    """Raised when invoking a name the dispatcher has no binding for."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"'{name}' must be a mapped method.")


class ForbiddenError(FlightdeckError):
    """Raised when a middleware hook rejects a request (403)."""

    def __init__(self, message: str = "Forbidden", hook: Optional[object] = None):
        self.message = message
        self.hook = hook
        super().__init__(self.message)


class HaltRequest(FlightdeckError):
    """Signals that the current response is final and request handling stops."""

    pass
