"""
Engine: wires the router, the dispatcher and the request/response collaborators.

Every framework built-in (``start``, ``json``, ``error``, ...) is bound in the
engine's dispatcher to its ``_name`` implementation, so applications can add
filters around it or replace it with ``engine.map(name, func)``. The
engine's infrastructure methods are protected and cannot be rebound.
"""

import html
import json
import logging
import re
import traceback
from datetime import datetime
from functools import partial
from http import HTTPStatus
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .config import SETTING_ALIASES, EngineSettings
from .dispatcher import Dispatcher, Filter
from .exceptions import HaltRequest, RouteNotFoundError
from .middleware import ChainState, MiddlewareChain, call_handler
from .models import Request, Response, format_http_date
from .route import MatchResult, MiddlewareSpec, Route
from .router import Router
from .views import View

# Set up logger for this module
logger = logging.getLogger(__name__)

# Methods of the engine itself; never rebindable
PROTECTED_NAMES = (
    "map",
    "register",
    "unregister",
    "before",
    "after",
    "set",
    "get",
    "has",
    "clear",
    "init",
    "execute",
    "settings",
    "router",
    "request",
    "response",
    "view",
    "dispatcher",
)

# Built-ins dispatched by name; each is implemented by the engine's ``_name`` method
EXTENSIBLE_NAMES = (
    "start",
    "stop",
    "halt",
    "route",
    "group",
    "get_url",
    "post",
    "put",
    "patch",
    "delete",
    "redirect",
    "render",
    "json",
    "jsonp",
    "error",
    "not_found",
    "etag",
    "last_modified",
)

NOT_FOUND_BODY = "<h1>404 Not Found</h1><h3>The page you have requested could not be found.</h3>"


class Engine:
    """Framework engine for one worker.

    Construct one per process (or worker thread), register routes and
    methods at startup, then call ``execute`` for each request.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or EngineSettings()
        self.dispatcher = Dispatcher()
        self.router = Router(case_sensitive=self.settings.case_sensitive)
        self.view = View(self.settings.views_path, self.settings.views_extension)
        self.request = Request()
        self.response = Response()
        self._vars: Dict[str, Any] = {}
        self._current_match: Optional[MatchResult] = None
        self.init()

    def init(self) -> None:
        """Bind every built-in to its default implementation.

        Also drops registered routes, variables and custom mapped methods.
        """
        self.router.reset()
        self._vars.clear()
        self.dispatcher.reset()
        self.dispatcher.protect(*PROTECTED_NAMES)
        self.dispatcher.protect(*(f"_{name}" for name in EXTENSIBLE_NAMES))
        for name in EXTENSIBLE_NAMES:
            self.dispatcher.map(name, getattr(self, f"_{name}"))
        logger.debug(f"Engine initialized with {len(EXTENSIBLE_NAMES)} built-in methods")

    def __getattr__(self, name: str) -> Callable:
        # Only reached for attributes not found normally: expose custom mapped methods
        if name.startswith("_"):
            raise AttributeError(name)
        dispatcher = self.__dict__.get("dispatcher")
        if dispatcher is not None and dispatcher.has(name):
            return partial(dispatcher.invoke, name)
        raise AttributeError(f"'{type(self).__name__}' object has no attribute '{name}'")

    # Extension API

    def map(self, name: str, callback: Callable) -> None:
        """Create or replace a framework method."""
        self.dispatcher.map(name, callback)

    def register(
        self,
        name: str,
        factory: Callable,
        args: Any = (),
        kwargs: Optional[Dict[str, Any]] = None,
        callback: Optional[Callable[[Any], Any]] = None,
    ) -> None:
        """Bind a name to a lazily built shared instance (``engine.<name>()`` returns it)."""
        self.dispatcher.register(name, factory, args, kwargs, callback)

    def unregister(self, name: str) -> None:
        self.dispatcher.unregister(name)

    def before(self, name: str, filter: Filter) -> None:
        """Add a filter that runs before the framework method ``name``."""
        self.dispatcher.before(name, filter)

    def after(self, name: str, filter: Filter) -> None:
        """Add a filter that runs after the framework method ``name``."""
        self.dispatcher.after(name, filter)

    # Variables

    def set(self, key: Union[str, Mapping[str, Any]], value: Any = None) -> None:
        """Set a variable, or several from a mapping.

        The dotted ``flight.*`` names update the engine settings.
        """
        if isinstance(key, Mapping):
            for name, item in key.items():
                self.set(name, item)
            return
        if key in SETTING_ALIASES:
            setattr(self.settings, SETTING_ALIASES[key], value)
            self._sync_settings()
            return
        self._vars[key] = value

    def get(self, key: Optional[str] = None) -> Any:
        """Get a variable, or all variables when no key is given."""
        if key is None:
            return dict(self._vars)
        if key in SETTING_ALIASES:
            return getattr(self.settings, SETTING_ALIASES[key])
        return self._vars.get(key)

    def has(self, key: str) -> bool:
        return key in self._vars

    def clear(self, key: Optional[str] = None) -> None:
        if key is None:
            self._vars.clear()
        else:
            self._vars.pop(key, None)

    def _sync_settings(self) -> None:
        self.router.case_sensitive = self.settings.case_sensitive
        self.view.path = self.settings.views_path
        self.view.extension = self.settings.views_extension
        self.view._env = None

    # Request handling

    def execute(self, request: Request) -> Response:
        """Handle one request and return the finished response.

        Exceptions raised by handlers or middleware go to the ``error``
        built-in unless ``handle_errors`` is disabled, in which case they
        propagate to the caller.
        """
        self.request = request
        self.response = Response()
        self._current_match = None

        logger.debug(f"Handling {request.method} {request.url}")
        try:
            self.start()
        except HaltRequest:
            pass
        except Exception as e:
            if not self.settings.handle_errors:
                raise
            try:
                self.error(e)
            except HaltRequest:
                pass

        self.response.finalize(self.settings.content_length)
        return self.response

    def _call_route_handler(self, handler: Callable, args: Any) -> Any:
        result = call_handler(handler, args)
        if isinstance(result, str):
            self.response.write(result)
        return result

    # Built-in dispatch wrappers

    def start(self) -> None:
        self.dispatcher.invoke("start")

    def stop(self, code: Optional[int] = None) -> None:
        self.dispatcher.invoke("stop", code)

    def halt(self, code: int = 200, message: str = "") -> None:
        self.dispatcher.invoke("halt", code, message)

    def route(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.dispatcher.invoke("route", pattern, callback, pass_route, alias)

    def group(self, prefix: str, callback: Callable, middleware: Optional[MiddlewareSpec] = None) -> None:
        self.dispatcher.invoke("group", prefix, callback, middleware)

    def post(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.dispatcher.invoke("post", pattern, callback, pass_route, alias)

    def put(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.dispatcher.invoke("put", pattern, callback, pass_route, alias)

    def patch(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.dispatcher.invoke("patch", pattern, callback, pass_route, alias)

    def delete(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.dispatcher.invoke("delete", pattern, callback, pass_route, alias)

    def get_url(self, alias: str, params: Optional[Mapping[str, Any]] = None) -> str:
        return self.dispatcher.invoke("get_url", alias, params)

    def redirect(self, url: str, code: int = 303) -> None:
        self.dispatcher.invoke("redirect", url, code)

    def render(self, template: str, data: Optional[Mapping[str, Any]] = None, key: Optional[str] = None) -> None:
        self.dispatcher.invoke("render", template, data, key)

    def json(self, data: Any, code: int = 200, encode: bool = True, charset: str = "utf-8", **options: Any) -> None:
        self.dispatcher.invoke("json", data, code, encode, charset, **options)

    def jsonp(
        self, data: Any, param: str = "jsonp", code: int = 200, encode: bool = True, charset: str = "utf-8", **options: Any
    ) -> None:
        self.dispatcher.invoke("jsonp", data, param, code, encode, charset, **options)

    def error(self, exception: BaseException) -> None:
        self.dispatcher.invoke("error", exception)

    def not_found(self) -> None:
        self.dispatcher.invoke("not_found")

    def etag(self, id: str, type: str = "strong") -> None:
        self.dispatcher.invoke("etag", id, type)

    def last_modified(self, time: Union[int, float, datetime]) -> None:
        self.dispatcher.invoke("last_modified", time)

    # Built-in implementations

    def _start(self) -> None:
        """Route the current request, run its middleware chain and finish the response."""
        dispatched = False
        start_index = 0

        while True:
            try:
                match = self.router.resolve(self.request.method, self.request.url, start_index)
            except RouteNotFoundError:
                break
            self._current_match = match

            result = MiddlewareChain(match, invoker=self._call_route_handler).run()
            if result.forbidden:
                if result.failed_phase is ChainState.RUNNING_BEFORE:
                    self.halt(HTTPStatus.FORBIDDEN.value, "Forbidden")
                self._forbidden_after_handler()

            # A handler returning True passes the request on to the next matching route
            if result.handler_result is not True:
                dispatched = True
                break
            start_index = match.index + 1

        if not dispatched:
            self.not_found()

        self.stop()

    def _forbidden_after_handler(self) -> None:
        # Output already written by the handler stays; only the status changes
        self.response.status(HTTPStatus.FORBIDDEN.value)
        self.stop()
        raise HaltRequest()

    def _stop(self, code: Optional[int] = None) -> None:
        if code is not None:
            self.response.status(code)
        self.response.finalize(self.settings.content_length)

    def _halt(self, code: int = 200, message: str = "") -> None:
        self.response.clear().status(code).write(message)
        self.stop()
        raise HaltRequest()

    def _route(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router.route(pattern, callback, pass_route, alias)

    def _group(self, prefix: str, callback: Callable, middleware: Optional[MiddlewareSpec] = None) -> None:
        self.router.group(prefix, callback, middleware)

    def _post(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router.post(pattern, callback, pass_route, alias)

    def _put(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router.put(pattern, callback, pass_route, alias)

    def _patch(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router.patch(pattern, callback, pass_route, alias)

    def _delete(self, pattern: str, callback: Callable, pass_route: bool = False, alias: Optional[str] = None) -> Route:
        return self.router.delete(pattern, callback, pass_route, alias)

    def _get_url(self, alias: str, params: Optional[Mapping[str, Any]] = None) -> str:
        # Parameters of the current match fill in whatever the caller left out
        merged: Dict[str, Any] = {}
        if self._current_match is not None:
            merged.update({k: v for k, v in self._current_match.params.items() if v is not None})
        if params:
            merged.update(params)
        return self.router.get_url(alias, merged)

    def _redirect(self, url: str, code: int = 303) -> None:
        base = self.settings.base_url
        if base is None:
            base = self.request.base
        if base and base != "/" and "://" not in url:
            url = base.rstrip("/") + re.sub(r"/+", "/", "/" + url)

        self.response.clear().status(code).header("Location", url)
        self.stop()

    def _render(self, template: str, data: Optional[Mapping[str, Any]] = None, key: Optional[str] = None) -> None:
        if key is not None:
            self.view.set(key, self.view.fetch(template, data))
        else:
            self.response.write(self.view.fetch(template, data))

    def _encode_json(self, data: Any, encode: bool, options: Mapping[str, Any]) -> str:
        if not encode:
            return data
        options = dict(options)
        options.setdefault("separators", (",", ":"))
        return json.dumps(data, **options)

    def _json(self, data: Any, code: int = 200, encode: bool = True, charset: str = "utf-8", **options: Any) -> None:
        body = self._encode_json(data, encode, options)
        self.response.status(code).header("Content-Type", f"application/json; charset={charset}").write(body)

    def _jsonp(
        self, data: Any, param: str = "jsonp", code: int = 200, encode: bool = True, charset: str = "utf-8", **options: Any
    ) -> None:
        body = self._encode_json(data, encode, options)
        callback = (self.request.query or {}).get(param, "")
        self.response.status(code).header(
            "Content-Type", f"application/javascript; charset={charset}"
        ).write(f"{callback}({body});")

    def _error(self, exception: BaseException) -> None:
        code = getattr(exception, "code", 0)
        trace = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
        message = (
            "<h1>500 Internal Server Error</h1>"
            f"<h3>{html.escape(str(exception))} ({code})</h3>"
            f"<pre>{html.escape(trace)}</pre>"
        )
        if self.settings.log_errors:
            logger.error(f"Unhandled exception processing {self.request.method} {self.request.url}: {exception}")

        self.response.clear().status(HTTPStatus.INTERNAL_SERVER_ERROR.value).write(message)
        self.stop()

    def _not_found(self) -> None:
        self.response.clear().status(HTTPStatus.NOT_FOUND.value).write(NOT_FOUND_BODY)
        self.stop()

    def _etag(self, id: str, type: str = "strong") -> None:
        self.response.set_etag(id, weak=(type == "weak"))
        candidates = self.request.get_if_none_match()
        if candidates and (id in candidates or "*" in candidates):
            self.halt(HTTPStatus.NOT_MODIFIED.value)

    def _last_modified(self, time: Union[int, float, datetime]) -> None:
        self.response.header("Last-Modified", format_http_date(time))
        since = self.request.get_if_modified_since()
        if since is None:
            return
        timestamp = time.timestamp() if isinstance(time, datetime) else time
        if int(since.timestamp()) == int(timestamp):
            self.halt(HTTPStatus.NOT_MODIFIED.value)
