"""
Driver interface for handling different event sources that execute the engine.
"""

import logging
from abc import ABC, abstractmethod
from http import HTTPStatus
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import quote

from .models import Request, Response

# Set up logger for this module
logger = logging.getLogger(__name__)

# Sub-delimiters and path punctuation that stay literal when re-quoting PATH_INFO
PATH_SAFE_CHARS = "/:@!$&'()*+,;="


class Driver(ABC):
    """Abstract base class for drivers that convert external events to engine requests."""

    @abstractmethod
    def handle_event(self, event: Any, context: Optional[Any] = None) -> Any:
        """
        Handle an external event and return the appropriate response format.

        Args:
            event: The external event (e.g., a WSGI environ)
            context: Optional context (e.g., the WSGI start_response callable)

        Returns:
            Response in the format expected by the external system
        """
        pass

    @abstractmethod
    def convert_to_request(self, event: Any, context: Optional[Any] = None) -> Request:
        """
        Convert an external event to a Request object.

        Args:
            event: The external event
            context: Optional context

        Returns:
            Request object that can be processed by the engine
        """
        pass

    @abstractmethod
    def convert_from_response(self, response: Response, event: Any, context: Optional[Any] = None) -> Any:
        """
        Convert a Response object to the format expected by the external system.

        Args:
            response: Response from the engine
            event: Original external event
            context: Optional context

        Returns:
            Response in the format expected by the external system
        """
        pass


class WsgiDriver(Driver):
    """Driver exposing an Engine as a WSGI application.

    Example:
        engine = Engine()
        engine.route("/", lambda: "hello")
        application = WsgiDriver(engine)
    """

    def __init__(self, engine):
        """
        Initialize the driver with an Engine instance.

        Args:
            engine: The Engine instance to execute requests against
        """
        self.engine = engine

    def __call__(self, environ: Dict[str, Any], start_response: Callable) -> Iterable[bytes]:
        return self.handle_event(environ, start_response)

    def handle_event(self, event: Dict[str, Any], context: Optional[Any] = None) -> List[bytes]:
        """
        Handle a WSGI call.

        Args:
            event: WSGI environ dictionary
            context: WSGI start_response callable

        Returns:
            WSGI body iterable
        """
        request = self.convert_to_request(event)
        response = self.engine.execute(request)
        return self.convert_from_response(response, event, context)

    def convert_to_request(self, event: Dict[str, Any], context: Optional[Any] = None) -> Request:
        """
        Convert a WSGI environ to a Request object.

        Args:
            event: WSGI environ dictionary
            context: Unused

        Returns:
            Request object
        """
        method = event.get("REQUEST_METHOD", "GET")
        script_name = event.get("SCRIPT_NAME", "")
        # PATH_INFO arrives percent-decoded as latin-1 text; restore the raw form so
        # the router decodes it exactly once
        path = quote((event.get("PATH_INFO", "") or "/").encode("latin-1"), safe=PATH_SAFE_CHARS)
        query_string = event.get("QUERY_STRING", "")
        url = f"{path}?{query_string}" if query_string else path

        # HTTP_* keys become headers; CONTENT_TYPE/CONTENT_LENGTH are special-cased by WSGI
        headers = {}
        for key, value in event.items():
            if key.startswith("HTTP_"):
                name = key[5:].replace("_", "-").title()
                headers[name] = value
        if event.get("CONTENT_TYPE"):
            headers["Content-Type"] = event["CONTENT_TYPE"]
        if event.get("CONTENT_LENGTH"):
            headers["Content-Length"] = event["CONTENT_LENGTH"]

        body = None
        length = int(event.get("CONTENT_LENGTH") or 0)
        stream = event.get("wsgi.input")
        if length and stream is not None:
            raw = stream.read(length)
            try:
                body = raw.decode("utf-8")
            except UnicodeDecodeError:
                # If it can't be decoded as UTF-8, use latin-1 as fallback
                body = raw.decode("latin-1")

        return Request(
            method=method,
            url=url,
            headers=headers,
            body=body,
            base=script_name or "/",
        )

    def convert_from_response(self, response: Response, event: Dict[str, Any], context: Optional[Any] = None) -> List[bytes]:
        """
        Convert a Response object to a WSGI status line, headers and body.

        Args:
            response: Response from the engine
            event: Original WSGI environ
            context: WSGI start_response callable

        Returns:
            WSGI body iterable
        """
        code = response.status_code
        status = f"{code} {HTTPStatus(code).phrase}"
        headers: List[Tuple[str, str]] = list(response.headers().items())

        if context is not None:
            context(status, headers)
        else:
            logger.warning("WSGI response converted without a start_response callable")

        if event.get("REQUEST_METHOD") == "HEAD":
            return [b""]
        return [response.get_body().encode("utf-8")]
