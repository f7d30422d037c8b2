"""
Core data models for the flightdeck framework.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from email.utils import format_datetime, parsedate_to_datetime
from enum import Enum
from http import HTTPStatus
from typing import Callable, Dict, List, Mapping, Optional, Union
from urllib.parse import parse_qsl


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


@dataclass
class Request:
    """Represents an HTTP request.

    ``url`` is the request target as received (path plus optional query
    string). ``query`` is parsed from it when not given.
    """

    method: str = "GET"
    url: str = "/"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    query: Optional[Dict[str, str]] = None
    base: str = "/"

    def __post_init__(self):
        if isinstance(self.method, HTTPMethod):
            self.method = self.method.value
        self.method = self.method.upper()
        if not self.url:
            self.url = "/"
        if self.query is None:
            _, _, query_string = self.url.partition("?")
            self.query = dict(parse_qsl(query_string, keep_blank_values=True))

    @property
    def path(self) -> str:
        """The request path without its query string."""
        return self.url.split("?", 1)[0] or "/"

    def get_header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Get a header value, case-insensitively."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def is_ajax(self) -> bool:
        return self.get_header("X-Requested-With") == "XMLHttpRequest"

    def get_if_none_match(self) -> Optional[List[str]]:
        """Get the If-None-Match header values as a list of unquoted ETags."""
        if_none_match = self.get_header("If-None-Match")
        if not if_none_match:
            return None
        if if_none_match.strip() == "*":
            return ["*"]
        etags = []
        for etag in if_none_match.split(","):
            etag = etag.strip()
            if etag.startswith('W/'):
                etag = etag[2:]
            if etag.startswith('"') and etag.endswith('"'):
                etag = etag[1:-1]
            etags.append(etag)
        return etags

    def get_if_modified_since(self) -> Optional[datetime]:
        """Get the If-Modified-Since header as a timezone-aware datetime."""
        if_modified_since = self.get_header("If-Modified-Since")
        if not if_modified_since:
            return None
        try:
            parsed = parsedate_to_datetime(if_modified_since)
        except (TypeError, ValueError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed


class Response:
    """Represents an HTTP response, mutated in place while a request is handled."""

    def __init__(self, status_code: int = 200, body: str = "", headers: Optional[Dict[str, str]] = None):
        self._status = HTTPStatus.OK.value
        self._headers: Dict[str, str] = {}
        self._body: List[str] = []
        self._body_callbacks: List[Callable[[str], str]] = []
        self._callbacks_applied = False
        self.sent = False
        self.status(status_code)
        if headers:
            self.header(headers)
        if body:
            self.write(body)

    def status(self, code: Optional[int] = None) -> Union[int, "Response"]:
        """Get the status code, or set it when ``code`` is given (returns self).

        Raises:
            ValueError: the code is not a known HTTP status
        """
        if code is None:
            return self._status
        try:
            self._status = HTTPStatus(int(code)).value
        except ValueError:
            raise ValueError("Invalid status code.") from None
        return self

    @property
    def status_code(self) -> int:
        return self._status

    def header(self, name: Union[str, Mapping[str, str]], value: Optional[str] = None) -> "Response":
        """Set one header, or several from a mapping. Header name case is kept."""
        if isinstance(name, Mapping):
            for key, item in name.items():
                self._headers[key] = str(item)
        elif value is not None:
            self._headers[name] = str(value)
        return self

    def headers(self) -> Dict[str, str]:
        return self._headers

    def get_header(self, name: str) -> Optional[str]:
        lowered = name.lower()
        for key, value in self._headers.items():
            if key.lower() == lowered:
                return value
        return None

    def remove_header(self, name: str) -> "Response":
        lowered = name.lower()
        for key in [k for k in self._headers if k.lower() == lowered]:
            del self._headers[key]
        return self

    def write(self, text: str) -> "Response":
        """Append text to the body."""
        self._body.append(str(text))
        return self

    def get_body(self) -> str:
        return "".join(self._body)

    @property
    def body(self) -> str:
        return self.get_body()

    def clear(self) -> "Response":
        """Reset status, headers and body."""
        self._status = HTTPStatus.OK.value
        self._headers = {}
        self._body = []
        self._callbacks_applied = False
        return self

    def cache(self, expires: Union[bool, int, datetime]) -> "Response":
        """Set caching headers.

        Args:
            expires: False to disable caching, a number of seconds, or an expiry datetime
        """
        if expires is False:
            self._headers["Expires"] = "Mon, 26 Jul 1997 05:00:00 GMT"
            self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            self._headers["Pragma"] = "no-cache"
            return self

        now = datetime.now(timezone.utc)
        if isinstance(expires, datetime):
            expiry = expires if expires.tzinfo else expires.replace(tzinfo=timezone.utc)
            max_age = max(0, int((expiry - now).total_seconds()))
        else:
            max_age = max(0, int(expires))
            expiry = now + timedelta(seconds=max_age)
        self._headers["Expires"] = format_http_date(expiry)
        self._headers["Cache-Control"] = f"max-age={max_age}"
        self._headers.pop("Pragma", None)
        return self

    def set_etag(self, etag: str, weak: bool = False) -> "Response":
        """Set the ETag header.

        Args:
            etag: The ETag value (without quotes)
            weak: Whether this is a weak ETag (prefixed with W/)
        """
        quoted = '"' + etag.replace('"', '\\"') + '"'
        self._headers["ETag"] = f"W/{quoted}" if weak else quoted
        return self

    def set_last_modified(self, last_modified: datetime) -> "Response":
        self._headers["Last-Modified"] = format_http_date(last_modified)
        return self

    def add_body_callback(self, callback: Callable[[str], str]) -> "Response":
        """Register a transform applied to the whole body when the response is finalized.

        Callbacks run in registration order, each receiving the previous one's output.
        """
        self._body_callbacks.append(callback)
        return self

    def finalize(self, content_length: bool = True) -> "Response":
        """Mark the response as final, adding Content-Length when requested.

        Body callbacks are applied once, before Content-Length is computed.
        """
        if self._body_callbacks and not self._callbacks_applied:
            body = self.get_body()
            for callback in self._body_callbacks:
                body = callback(body)
            self._body = [body]
            self._callbacks_applied = True
        if content_length and self._status not in (HTTPStatus.NO_CONTENT.value, HTTPStatus.NOT_MODIFIED.value):
            self._headers["Content-Length"] = str(len(self.get_body().encode("utf-8")))
        self.sent = True
        return self

    def __repr__(self) -> str:
        return f"Response(status={self._status}, headers={self._headers!r})"


def format_http_date(moment: Union[datetime, int, float]) -> str:
    """Format a datetime or UNIX timestamp as an HTTP date: "Fri, 13 Feb 2009 23:31:30 GMT"."""
    if not isinstance(moment, datetime):
        moment = datetime.fromtimestamp(moment, timezone.utc)
    elif moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return format_datetime(moment.astimezone(timezone.utc), usegmt=True)
