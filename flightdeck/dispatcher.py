"""
Name-keyed method dispatcher with before/after filter chains.

Both plain callables and lazily constructed class instances can be bound to a
name. Every invocation through the dispatcher runs the name's filters, which
is how framework built-ins (render, json, error, ...) can be observed or
replaced without touching the engine.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .exceptions import ConfigurationError, MethodNotFoundError, ProtectedNameError

# Set up logger for this module
logger = logging.getLogger(__name__)

Filter = Callable[["Invocation"], Any]


class Invocation:
    """State of one dispatcher call, shared by its filters.

    Before filters may rewrite ``args``/``kwargs`` or call ``skip()`` to replace
    the real call with a substitute result. After filters may rewrite
    ``result``.
    """

    def __init__(self, name: str, args: Sequence[Any], kwargs: Dict[str, Any]):
        self.name = name
        self.args: List[Any] = list(args)
        self.kwargs: Dict[str, Any] = dict(kwargs)
        self.result: Any = None
        self.skipped = False

    def skip(self, result: Any = None) -> None:
        """Skip the bound target and use ``result`` instead."""
        self.skipped = True
        self.result = result

    def __repr__(self) -> str:
        return f"Invocation({self.name!r}, args={self.args!r}, skipped={self.skipped})"


class DispatcherEntry:
    """Binding and filters for one dispatcher name."""

    def __init__(self, name: str):
        self.name = name
        self.target: Optional[Callable] = None
        self.factory: Optional[Callable] = None
        self.args: Tuple[Any, ...] = ()
        self.kwargs: Dict[str, Any] = {}
        self.callback: Optional[Callable[[Any], Any]] = None
        self.instance: Any = None
        self.before: List[Filter] = []
        self.after: List[Filter] = []

    @property
    def bound(self) -> bool:
        return self.target is not None or self.factory is not None

    def bind_callable(self, target: Callable) -> None:
        self.target = target
        self.factory = None
        self.instance = None

    def bind_factory(self, factory: Callable, args: Sequence[Any], kwargs: Dict[str, Any], callback: Optional[Callable]) -> None:
        self.target = None
        self.factory = factory
        self.args = tuple(args)
        self.kwargs = dict(kwargs)
        self.callback = callback
        self.instance = None

    def build(self) -> Any:
        """Construct a new instance from the factory and run the callback on it."""
        if self.factory is None:
            raise MethodNotFoundError(self.name)
        instance = self.factory(*self.args, **self.kwargs)
        if self.callback is not None:
            self.callback(instance)
        return instance

    def resolve(self) -> Any:
        """Return the shared instance, constructing it on first use."""
        if self.instance is None:
            self.instance = self.build()
            logger.debug(f"Constructed shared instance for '{self.name}': {type(self.instance).__name__}")
        return self.instance

    def call(self, args: Sequence[Any], kwargs: Dict[str, Any]) -> Any:
        if self.factory is not None:
            return self.resolve()
        if self.target is None:
            raise MethodNotFoundError(self.name)
        return self.target(*args, **kwargs)


class Dispatcher:
    """Registry of named callables and factories, each with filter chains."""

    def __init__(self):
        self._entries: Dict[str, DispatcherEntry] = {}
        self._protected: Set[str] = set()

    def protect(self, *names: str) -> None:
        """Mark names that can never be bound, filtered or unregistered."""
        self._protected.update(names)

    def is_protected(self, name: str) -> bool:
        return name in self._protected

    def _check_name(self, name: str) -> None:
        if not name or not isinstance(name, str):
            raise ConfigurationError(f"Invalid dispatcher name: {name!r}")
        if name in self._protected:
            logger.warning(f"Rejected binding over protected name '{name}'")
            raise ProtectedNameError(name)

    def _entry(self, name: str) -> DispatcherEntry:
        entry = self._entries.get(name)
        if entry is None:
            entry = DispatcherEntry(name)
            self._entries[name] = entry
        return entry

    def map(self, name: str, target: Callable) -> None:
        """Bind a name to a callable, replacing any previous (unprotected) binding.

        Raises:
            ProtectedNameError: the name is protected
        """
        self._check_name(name)
        if not callable(target):
            raise ConfigurationError(f"Cannot map '{name}' to a non-callable: {target!r}")
        self._entry(name).bind_callable(target)
        logger.debug(f"Mapped '{name}' to {getattr(target, '__name__', target)!r}")

    def register(
        self,
        name: str,
        factory: Callable,
        args: Iterable[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """Bind a name to a class (or factory) constructed lazily, once.

        Args:
            name: Dispatcher name
            factory: Class or callable producing the instance
            args: Positional constructor arguments
            kwargs: Keyword constructor arguments
            callback: Receives the instance right after construction

        Raises:
            ProtectedNameError: the name is protected
        """
        self._check_name(name)
        if not callable(factory):
            raise ConfigurationError(f"Cannot register '{name}' with a non-callable factory: {factory!r}")
        self._entry(name).bind_factory(factory, list(args), kwargs or {}, callback)
        logger.debug(f"Registered '{name}' to factory {getattr(factory, '__name__', factory)!r}")

    def before(self, name: str, filter: Filter) -> None:
        """Add a filter that runs before each invocation of ``name``."""
        self._check_name(name)
        self._entry(name).before.append(filter)

    def after(self, name: str, filter: Filter) -> None:
        """Add a filter that runs after each invocation of ``name`` (reverse order)."""
        self._check_name(name)
        self._entry(name).after.append(filter)

    def has(self, name: str) -> bool:
        entry = self._entries.get(name)
        return entry is not None and entry.bound

    def get(self, name: str) -> Optional[Callable]:
        """Return the bound callable or factory, or None."""
        entry = self._entries.get(name)
        if entry is None:
            return None
        return entry.target if entry.target is not None else entry.factory

    def names(self) -> List[str]:
        return [name for name, entry in self._entries.items() if entry.bound]

    def unregister(self, name: str) -> None:
        """Drop the binding and filters for ``name``."""
        self._check_name(name)
        self._entries.pop(name, None)

    def reset(self) -> None:
        """Drop every binding and filter. Protected names stay protected."""
        self._entries.clear()

    def new_instance(self, name: str) -> Any:
        """Build a fresh, unshared instance of a registered factory."""
        entry = self._entries.get(name)
        if entry is None or entry.factory is None:
            raise MethodNotFoundError(name)
        return entry.build()

    def invoke(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Invoke ``name`` through its filter chains.

        Before filters run in attachment order, then the bound target (unless
        a filter skipped it), then after filters in reverse attachment order.
        A filter returning False stops the rest of its own chain.

        Raises:
            MethodNotFoundError: nothing is bound to ``name``
        """
        entry = self._entries.get(name)
        if entry is None or not entry.bound:
            raise MethodNotFoundError(name)

        invocation = Invocation(name, args, kwargs)
        self._run_filters(entry.before, invocation)
        if invocation.skipped:
            logger.debug(f"Invocation of '{name}' skipped by a before filter")
        else:
            invocation.result = entry.call(invocation.args, invocation.kwargs)
        self._run_filters(reversed(entry.after), invocation)
        return invocation.result

    @staticmethod
    def _run_filters(filters: Iterable[Filter], invocation: Invocation) -> None:
        for filter in list(filters):
            if filter(invocation) is False:
                break
