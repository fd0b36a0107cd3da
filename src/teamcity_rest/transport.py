"""teamcity_rest.transport

Authenticated HTTP access to a TeamCity server using ``requests``.

Requests are blocking; the public coroutines run them in a worker thread so
callers can issue many of them concurrently from one event loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Optional, Protocol

import requests

from .config import ClientSettings
from .exceptions import TransportError

__all__ = ["Transport", "AsyncTransport"]

logger = logging.getLogger(__name__)

REST_SEGMENT = "/app/rest/"
CSRF_PATH = "/authenticationTest.html?csrf"
CSRF_HEADER = "X-TC-CSRF-Token"


class AsyncTransport(Protocol):
    """What :class:`~teamcity_rest.client.TeamCityClient` needs from a transport."""

    async def get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any: ...

    async def post(self, path: str, body: Mapping[str, Any]) -> Any: ...

    def close(self) -> None: ...


class Transport:
    """Sends authenticated requests to the TeamCity REST API.

    Args:
        host: Server host, with or without scheme (``https://`` is assumed).
        token: Access token, sent as ``Authorization: Bearer <token>``.
        version: REST API version segment. Defaults to ``latest``.
        timeout: Per-request timeout in seconds.
        session: ``requests.Session`` to use; one is created when omitted.
    """

    def __init__(
        self,
        host: str,
        token: str,
        version: str = "latest",
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        host = host.rstrip("/")
        self.base_url = host if "://" in host else f"https://{host}"
        self.rest_url = f"{self.base_url}/app/rest/{version}"
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        # shared by every request and never mutated
        self.headers: Mapping[str, str] = MappingProxyType(
            {
                "Accept": "application/json",
                "Origin": self.base_url,
                "Authorization": f"Bearer {token}",
            }
        )

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, session: Optional[requests.Session] = None
    ) -> Transport:
        return cls(
            host=settings.host,
            token=settings.token,
            version=settings.version,
            timeout=settings.timeout,
            session=session,
        )

    # ───────────────────── URL handling ─────────────────────
    def resolve(self, path: str) -> str:
        """Return the absolute URL for ``path``.

        Paths that already contain the REST segment (such as the ``nextHref``
        of a page) are resolved against the server root, other paths against
        the versioned REST URL.
        """
        if path.startswith(("http://", "https://")):
            return path
        if not path.startswith("/"):
            path = f"/{path}"
        if REST_SEGMENT in path:
            return f"{self.base_url}{path}"
        return f"{self.rest_url}{path}"

    # ───────────────────── public coroutines ─────────────────
    async def get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        """GET a REST resource and return the parsed JSON body."""
        return await asyncio.to_thread(self.get_sync, path, params)

    async def get_text(self, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        """GET a page relative to the server root (not the REST API)."""
        return await asyncio.to_thread(self.get_text_sync, path, params)

    async def get_security_token(self) -> str:
        """Fetch the CSRF token required for POST requests (TeamCity 2020.1+)."""
        return await asyncio.to_thread(self.get_security_token_sync)

    async def post(self, path: str, body: Mapping[str, Any]) -> Any:
        """POST a JSON body to a REST resource and return the parsed JSON body."""
        return await asyncio.to_thread(self.post_sync, path, body)

    # ───────────────────── blocking implementation ───────────
    def get_sync(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        url = self.resolve(path)
        response = self._request("GET", url, params=params)
        return self._json(response, url)

    def get_text_sync(self, path: str, params: Optional[Mapping[str, str]] = None) -> str:
        if not path.startswith("/"):
            path = f"/{path}"
        url = f"{self.base_url}{path}"
        return self._request("GET", url, params=params).text

    def get_security_token_sync(self) -> str:
        return self.get_text_sync(CSRF_PATH).strip()

    def post_sync(self, path: str, body: Mapping[str, Any]) -> Any:
        token = self.get_security_token_sync()
        headers = {
            **self.headers,
            CSRF_HEADER: token,
            "Content-Type": "application/json",
        }
        url = self.resolve(path)
        response = self._request("POST", url, headers=headers, json=dict(body))
        return self._json(response, url)

    def close(self) -> None:
        self.session.close()

    def _request(
        self,
        method: str,
        url: str,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        json: Optional[Mapping[str, Any]] = None,
    ) -> requests.Response:
        logger.debug(f"{method} {url} params={dict(params) if params else {}}")
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                headers=dict(headers if headers is not None else self.headers),
                json=json,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            raise TransportError(f"{method} request failed", url=url, status_code=status) from exc
        except requests.exceptions.RequestException as exc:
            raise TransportError(f"{method} request failed: {exc}", url=url) from exc
        return response

    @staticmethod
    def _json(response: requests.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                "Response body is not valid JSON", url=url, status_code=response.status_code
            ) from exc
