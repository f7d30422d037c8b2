"""
Tests for the Request and Response models.
"""

import codecs
from datetime import datetime, timezone

import pytest

from flightdeck.models import HTTPMethod, Request, Response, format_http_date


def rot13(body):
    return codecs.encode(body, "rot13")


class TestRequest:
    """Test Request parsing helpers."""

    def test_defaults(self):
        request = Request()
        assert request.method == "GET"
        assert request.url == "/"
        assert request.query == {}

    def test_method_upper_cased(self):
        assert Request("post", "/").method == "POST"

    def test_method_enum(self):
        assert Request(HTTPMethod.DELETE, "/").method == "DELETE"

    def test_query_parsed_from_url(self):
        request = Request("GET", "/search?q=flight&empty=")
        assert request.path == "/search"
        assert request.query == {"q": "flight", "empty": ""}

    def test_explicit_query_kept(self):
        assert Request("GET", "/search?q=x", query={"q": "y"}).query == {"q": "y"}

    def test_header_lookup_case_insensitive(self):
        request = Request(headers={"Content-Type": "text/plain"})
        assert request.get_header("content-type") == "text/plain"
        assert request.get_header("Accept", "*/*") == "*/*"

    def test_is_ajax(self):
        assert Request(headers={"X-Requested-With": "XMLHttpRequest"}).is_ajax
        assert not Request().is_ajax

    def test_if_none_match(self):
        request = Request(headers={"If-None-Match": '"a", W/"b"'})
        assert request.get_if_none_match() == ["a", "b"]

    def test_if_none_match_wildcard(self):
        assert Request(headers={"If-None-Match": "*"}).get_if_none_match() == ["*"]

    def test_if_none_match_absent(self):
        assert Request().get_if_none_match() is None

    def test_if_modified_since(self):
        request = Request(headers={"If-Modified-Since": "Fri, 13 Feb 2009 23:31:30 GMT"})
        assert request.get_if_modified_since() == datetime(2009, 2, 13, 23, 31, 30, tzinfo=timezone.utc)

    def test_if_modified_since_invalid(self):
        assert Request(headers={"If-Modified-Since": "not a date"}).get_if_modified_since() is None


class TestResponseStatus:
    """Test status handling."""

    def test_default_status(self):
        assert Response().status() == 200

    def test_set_status_chains(self):
        response = Response()
        assert response.status(404) is response
        assert response.status_code == 404

    def test_invalid_status(self):
        with pytest.raises(ValueError, match="Invalid status code."):
            Response().status(999)


class TestResponseBody:
    """Test headers and body."""

    def test_write_appends(self):
        response = Response().write("a").write("b")
        assert response.get_body() == "ab"
        assert response.body == "ab"

    def test_headers(self):
        response = Response().header("X-One", "1").header({"X-Two": 2})
        assert response.headers() == {"X-One": "1", "X-Two": "2"}
        assert response.get_header("x-one") == "1"

    def test_remove_header(self):
        response = Response().header("X-One", "1")
        response.remove_header("x-one")
        assert response.headers() == {}

    def test_clear(self):
        response = Response(404, "body", {"X-One": "1"})
        response.clear()
        assert (response.status_code, response.body, response.headers()) == (200, "", {})


class TestContentLength:
    """Test Content-Length on finalize."""

    def test_body_length(self):
        response = Response(200, "Hello, World!").finalize()
        assert response.get_header("Content-Length") == "13"
        assert response.sent

    def test_unicode_byte_length(self):
        body = "Hello, 世界! 🌍"
        response = Response(200, body).finalize()
        assert response.get_header("Content-Length") == str(len(body.encode("utf-8")))

    def test_empty_body(self):
        assert Response().finalize().get_header("Content-Length") == "0"

    @pytest.mark.parametrize("code", [204, 304])
    def test_no_length_without_content(self, code):
        assert Response(code).finalize().get_header("Content-Length") is None

    def test_disabled(self):
        assert Response(200, "x").finalize(content_length=False).get_header("Content-Length") is None


class TestBodyCallbacks:
    """Test body transforms applied on finalize."""

    def test_single_callback(self):
        response = Response(200, "test").add_body_callback(rot13).finalize()
        assert response.get_body() == "grfg"

    def test_callbacks_run_in_order(self):
        response = Response(200, "test")
        response.add_body_callback(rot13)
        response.add_body_callback(lambda body: body.replace("g", "G"))
        response.add_body_callback(rot13)
        assert response.finalize().get_body() == "TesT"

    def test_content_length_after_transform(self):
        response = Response(200, "short").add_body_callback(lambda body: body * 3).finalize()
        assert response.get_body() == "shortshortshort"
        assert response.get_header("Content-Length") == "15"

    def test_applied_once_across_finalize_calls(self):
        response = Response(200, "test").add_body_callback(rot13)
        response.finalize()
        response.finalize()
        assert response.get_body() == "grfg"

    def test_clear_keeps_callbacks(self):
        response = Response(200, "old").add_body_callback(rot13)
        response.finalize()
        response.clear().write("test").finalize()
        assert response.get_body() == "grfg"


class TestCaching:
    """Test cache headers and validators."""

    def test_no_cache(self):
        headers = Response().cache(False).headers()
        assert headers["Cache-Control"] == "no-store, no-cache, must-revalidate, max-age=0"
        assert headers["Pragma"] == "no-cache"
        assert headers["Expires"] == "Mon, 26 Jul 1997 05:00:00 GMT"

    def test_cache_seconds(self):
        headers = Response().cache(False).cache(3600).headers()
        assert headers["Cache-Control"] == "max-age=3600"
        assert "Pragma" not in headers
        assert headers["Expires"].endswith("GMT")

    def test_etag(self):
        assert Response().set_etag("abc").get_header("ETag") == '"abc"'
        assert Response().set_etag("abc", weak=True).get_header("ETag") == 'W/"abc"'

    def test_last_modified(self):
        moment = datetime(2009, 2, 13, 23, 31, 30, tzinfo=timezone.utc)
        assert Response().set_last_modified(moment).get_header("Last-Modified") == "Fri, 13 Feb 2009 23:31:30 GMT"


class TestHttpDate:
    """Test HTTP date formatting."""

    def test_timestamp(self):
        assert format_http_date(1234567890) == "Fri, 13 Feb 2009 23:31:30 GMT"

    def test_naive_datetime_is_utc(self):
        assert format_http_date(datetime(2009, 2, 13, 23, 31, 30)) == "Fri, 13 Feb 2009 23:31:30 GMT"
