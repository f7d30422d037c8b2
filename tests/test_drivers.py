"""
Tests for the WSGI driver.
"""

import io

import pytest

from flightdeck import Engine
from flightdeck.drivers import Driver, WsgiDriver


class StartResponse:
    """Captures the status line and headers passed by a WSGI application."""

    def __init__(self):
        self.status = None
        self.headers = None

    def __call__(self, status, headers):
        self.status = status
        self.headers = dict(headers)


def make_environ(method="GET", path="/", query="", body=b"", **extra):
    environ = {
        "REQUEST_METHOD": method,
        "SCRIPT_NAME": "",
        "PATH_INFO": path,
        "QUERY_STRING": query,
        "wsgi.input": io.BytesIO(body),
    }
    if body:
        environ["CONTENT_LENGTH"] = str(len(body))
    environ.update(extra)
    return environ


@pytest.fixture
def app():
    engine = Engine()
    engine.route("/hello/@name", lambda name: f"Hello {name}")
    engine.route("POST /echo", lambda: engine.request.body)
    engine.route("/query", lambda: engine.request.query.get("q", ""))
    engine.route("/token", lambda: engine.request.get_header("X-Token") or "")
    return WsgiDriver(engine)


class TestWsgiDriver:
    """Test WSGI conversion in both directions."""

    def test_is_a_driver(self, app):
        assert isinstance(app, Driver)

    def test_get(self, app):
        start_response = StartResponse()
        body = app(make_environ(path="/hello/Bob"), start_response)

        assert start_response.status == "200 OK"
        assert start_response.headers["Content-Length"] == "9"
        assert body == [b"Hello Bob"]

    def test_not_found_status_line(self, app):
        start_response = StartResponse()
        app(make_environ(path="/missing"), start_response)
        assert start_response.status == "404 Not Found"

    def test_query_string(self, app):
        body = app(make_environ(path="/query", query="q=flight"), StartResponse())
        assert body == [b"flight"]

    def test_body(self, app):
        body = app(make_environ("POST", "/echo", body=b"payload", CONTENT_TYPE="text/plain"), StartResponse())
        assert body == [b"payload"]

    def test_headers_converted(self, app):
        body = app(make_environ(path="/token", HTTP_X_TOKEN="secret"), StartResponse())
        assert body == [b"secret"]

    def test_head_has_no_body(self, app):
        start_response = StartResponse()
        body = app(make_environ("HEAD", "/hello/Bob"), start_response)
        assert body == [b""]
        assert start_response.headers["Content-Length"] == "9"

    def test_convert_to_request(self, app):
        request = app.convert_to_request(
            make_environ(
                "PUT",
                "/items/1",
                query="a=1",
                body=b"{}",
                SCRIPT_NAME="/app",
                CONTENT_TYPE="application/json",
                HTTP_X_REQUESTED_WITH="XMLHttpRequest",
            )
        )
        assert request.method == "PUT"
        assert request.url == "/items/1?a=1"
        assert request.query == {"a": "1"}
        assert request.body == "{}"
        assert request.base == "/app"
        assert request.get_header("Content-Type") == "application/json"
        assert request.is_ajax

    def test_latin1_body_fallback(self, app):
        request = app.convert_to_request(make_environ("POST", "/echo", body=b"caf\xe9"))
        assert request.body == "café"


class TestWsgiPathDecoding:
    """PATH_INFO is already decoded by the server; parameters must be decoded once."""

    @pytest.fixture
    def engine(self):
        engine = Engine()
        engine.route("/search/@term", lambda term: f"term={term}")
        engine.route("/files/@name", lambda name: f"name={name}")
        engine.route("/users/@name", lambda name: f"name={name}")
        return engine

    def test_encoded_question_mark_stays_in_path(self, engine):
        # Client sent /search/a%3Fb
        body = WsgiDriver(engine)(make_environ(path="/search/a?b", query="page=2"), StartResponse())
        assert body == [b"term=a?b"]

    def test_percent_decoded_once(self, engine):
        # Client sent /files/100%2525
        body = WsgiDriver(engine)(make_environ(path="/files/100%25"), StartResponse())
        assert body == [b"name=100%25"]

    def test_utf8_path(self, engine):
        # Client sent /users/%C3%A9; PEP 3333 hands it over as latin-1 text
        path = "/users/é".encode("utf-8").decode("latin-1")
        body = WsgiDriver(engine)(make_environ(path=path), StartResponse())
        assert body == ["name=é".encode("utf-8")]

    def test_path_punctuation_kept_literal(self, engine):
        request = WsgiDriver(engine).convert_to_request(make_environ(path="/users/a+b@c"))
        assert request.path == "/users/a+b@c"
