"""Tests for the requests-based transport, using a fake session."""
from __future__ import annotations

import pytest
import requests

from teamcity_rest.config import ClientSettings
from teamcity_rest.exceptions import TransportError
from teamcity_rest.transport import Transport

_NO_JSON = object()


class FakeResponse:
    def __init__(self, status_code=200, json_data=_NO_JSON, text=""):
        self.status_code = status_code
        self._json = json_data
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)

    def json(self):
        if self._json is _NO_JSON:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._json


class FakeSession:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


def make_transport(*responses, host="tc.example.com"):
    session = FakeSession(*responses)
    return Transport(host=host, token="s3cret", session=session), session


class TestResolve:
    def test_relative_path_goes_to_rest_url(self):
        transport, _ = make_transport()
        assert transport.resolve("/builds/id:1") == "https://tc.example.com/app/rest/latest/builds/id:1"

    def test_next_href_is_not_rerooted(self):
        transport, _ = make_transport()
        next_href = "/app/rest/builds/multiple/state:any,start:100,count:100"
        assert transport.resolve(next_href) == f"https://tc.example.com{next_href}"

    def test_missing_leading_slash(self):
        transport, _ = make_transport()
        assert transport.resolve("changes") == "https://tc.example.com/app/rest/latest/changes"

    def test_host_with_scheme_and_version(self):
        transport = Transport(host="http://localhost:8111/", token="t", version="2023.11", session=FakeSession())
        assert transport.base_url == "http://localhost:8111"
        assert transport.rest_url == "http://localhost:8111/app/rest/2023.11"


class TestGet:
    def test_get_sync_returns_json_with_auth_headers(self):
        transport, session = make_transport(FakeResponse(json_data={"count": 0}))

        assert transport.get_sync("/changes", {"locator": "build:(id:1)"}) == {"count": 0}

        method, url, kwargs = session.requests[0]
        assert method == "GET"
        assert url == "https://tc.example.com/app/rest/latest/changes"
        assert kwargs["params"] == {"locator": "build:(id:1)"}
        assert kwargs["headers"]["Authorization"] == "Bearer s3cret"
        assert kwargs["headers"]["Accept"] == "application/json"
        assert kwargs["headers"]["Origin"] == "https://tc.example.com"
        assert kwargs["timeout"] == 15.0

    @pytest.mark.asyncio
    async def test_get_runs_off_the_event_loop(self):
        transport, session = make_transport(FakeResponse(json_data={"id": 1}))
        assert await transport.get("/builds/id:1") == {"id": 1}
        assert len(session.requests) == 1

    def test_http_error_becomes_transport_error(self):
        transport, _ = make_transport(FakeResponse(status_code=404, text="Not found"))
        with pytest.raises(TransportError) as excinfo:
            transport.get_sync("/builds/id:999")
        assert excinfo.value.status_code == 404
        assert excinfo.value.url.endswith("/builds/id:999")
        assert isinstance(excinfo.value.__cause__, requests.HTTPError)

    def test_connection_error_becomes_transport_error(self):
        transport, _ = make_transport(requests.ConnectionError("connection refused"))
        with pytest.raises(TransportError) as excinfo:
            transport.get_sync("/builds/id:1")
        assert excinfo.value.status_code is None
        assert isinstance(excinfo.value.__cause__, requests.ConnectionError)

    def test_invalid_json_becomes_transport_error(self):
        transport, _ = make_transport(FakeResponse(text="<html>login</html>"))
        with pytest.raises(TransportError) as excinfo:
            transport.get_sync("/builds/id:1")
        assert excinfo.value.status_code == 200


class TestPost:
    @pytest.mark.asyncio
    async def test_post_sends_csrf_token_per_call(self):
        transport, session = make_transport(
            FakeResponse(text="a1b2c3\n"),
            FakeResponse(json_data={"id": 55, "state": "queued"}),
        )

        result = await transport.post("/buildQueue", {"buildType": {"id": "App_Build"}})

        assert result == {"id": 55, "state": "queued"}
        (token_method, token_url, _), (method, url, kwargs) = session.requests
        assert token_method == "GET"
        assert token_url == "https://tc.example.com/authenticationTest.html?csrf"
        assert method == "POST"
        assert url == "https://tc.example.com/app/rest/latest/buildQueue"
        assert kwargs["headers"]["X-TC-CSRF-Token"] == "a1b2c3"
        assert kwargs["headers"]["Authorization"] == "Bearer s3cret"
        assert kwargs["json"] == {"buildType": {"id": "App_Build"}}
        # the shared headers are left untouched
        assert "X-TC-CSRF-Token" not in transport.headers

    def test_shared_headers_are_read_only(self):
        transport, _ = make_transport()
        with pytest.raises(TypeError):
            transport.headers["X-TC-CSRF-Token"] = "x"  # type: ignore[index]


def test_from_settings_and_close():
    settings = ClientSettings(host="tc.example.com", token="t", version="2024.03", timeout=30)
    session = FakeSession()
    transport = Transport.from_settings(settings, session=session)
    assert transport.rest_url == "https://tc.example.com/app/rest/2024.03"
    assert transport.timeout == 30.0
    transport.close()
    assert session.closed
