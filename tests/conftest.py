"""Shared fixtures: canned TeamCity payloads and an in-memory transport."""
from __future__ import annotations

import asyncio
import copy
from typing import Any, Optional

import pytest

from teamcity_rest.client import TeamCityClient
from teamcity_rest.exceptions import TransportError


class FakeTransport:
    """Answers GET requests from a ``{request key: payload}`` table.

    The request key is the path, plus ``?locator=<value>`` when a locator
    query parameter is sent. A payload that is an exception is raised.
    """

    def __init__(self, routes: Optional[dict[str, Any]] = None):
        self.routes: dict[str, Any] = dict(routes or {})
        self.calls: list[tuple[str, Optional[dict[str, str]]]] = []
        self.posts: list[tuple[str, dict[str, Any]]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    @staticmethod
    def key(path: str, params: Optional[dict[str, str]] = None) -> str:
        return f"{path}?locator={params['locator']}" if params else path

    async def get(self, path, params=None):
        self.calls.append((path, dict(params) if params else None))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            key = self.key(path, params)
            if key not in self.routes:
                raise TransportError("GET request failed", url=key, status_code=404)
            response = self.routes[key]
            if isinstance(response, BaseException):
                raise response
            return copy.deepcopy(response)
        finally:
            self.in_flight -= 1

    async def post(self, path, body):
        self.posts.append((path, dict(body)))
        return {"posted": path}

    def close(self):
        self.closed = True

    def paths(self) -> list[str]:
        return [self.key(path, params) for path, params in self.calls]


def build_payload(build_id: int, build_type: str = "App_Build") -> dict[str, Any]:
    return {
        "id": build_id,
        "buildTypeId": build_type,
        "number": str(build_id),
        "status": "SUCCESS",
        "state": "finished",
        "href": f"/app/rest/builds/id:{build_id}",
        "webUrl": f"https://tc.example.com/viewLog.html?buildId={build_id}",
    }


def build_metadata_payload(build_id: int, change_count: int = 0) -> dict[str, Any]:
    return {
        **build_payload(build_id),
        "statusText": "Tests passed: 12",
        "queuedDate": "20240319T154501+0000",
        "startDate": "20240319T154510+0000",
        "finishDate": "20240319T160000+0000",
        "triggered": {"type": "vcs", "details": "git", "date": "20240319T154501+0000"},
        "changes": {"href": f"/app/rest/changes?locator=build:(id:{build_id})", "count": change_count},
        "snapshot-dependencies": {"count": 1, "build": [build_payload(build_id - 1000, "App_Compile")]},
        "pinned": False,
    }


def change_payload(change_id: int) -> dict[str, Any]:
    return {
        "id": change_id,
        "version": f"c0ffee{change_id}",
        "username": "jdoe",
        "date": "20240319T150000+0000",
        "href": f"/app/rest/changes/id:{change_id}",
        "webUrl": f"https://tc.example.com/viewModification.html?modId={change_id}",
    }


def change_metadata_payload(change_id: int) -> dict[str, Any]:
    return {
        **change_payload(change_id),
        "comment": f"Change number {change_id}",
        "user": {"id": 3, "username": "jdoe", "name": "J. Doe", "href": "/app/rest/users/id:3"},
        "type": "",
        "files": {
            "count": 1,
            "file": [
                {
                    "before-revision": "aaa",
                    "after-revision": "bbb",
                    "changeType": "edited",
                    "file": "src/app.py",
                    "relative-file": "src/app.py",
                }
            ],
        },
        "vcsRootInstance": {
            "id": "7",
            "vcs-root-id": "App_Git",
            "name": "git@example.com:app.git",
            "href": "/app/rest/vcs-root-instances/id:7",
        },
    }


def hydration_routes(changes_by_build: dict[int, list[int]]) -> dict[str, Any]:
    """Routes for hydrating the given builds and their change ids."""
    routes: dict[str, Any] = {}
    for build_id, change_ids in changes_by_build.items():
        routes[f"/builds/id:{build_id}"] = build_metadata_payload(build_id, len(change_ids))
        changes: dict[str, Any] = {"count": len(change_ids), "href": "/app/rest/changes"}
        if change_ids:
            changes["change"] = [change_payload(cid) for cid in change_ids]
        routes[f"/changes?locator=build:(id:{build_id})"] = changes
        for cid in change_ids:
            routes[f"/changes/id:{cid}"] = change_metadata_payload(cid)
    return routes


@pytest.fixture
def payloads():
    """Payload factories, exposed as a namespace."""

    class _Payloads:
        build = staticmethod(build_payload)
        build_metadata = staticmethod(build_metadata_payload)
        change = staticmethod(change_payload)
        change_metadata = staticmethod(change_metadata_payload)
        hydration_routes = staticmethod(hydration_routes)

    return _Payloads


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def client(transport: FakeTransport) -> TeamCityClient:
    return TeamCityClient(transport)
