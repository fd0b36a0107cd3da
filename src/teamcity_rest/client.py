"""teamcity_rest.client

``TeamCityClient``: resource-level operations on top of :mod:`.transport`,
including page-following for build lists and the build/change hydration join.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable, Mapping
from enum import Enum
from typing import Any, Optional, TypeVar, Union
from urllib.parse import quote

import requests

from .config import ClientSettings
from .exceptions import JoinError
from .locators import (
    BuildLocator,
    BuildTypeLocator,
    ChangeLocator,
    locator_to_string,
)
from .models import (
    Build,
    BuildMetadata,
    BuildMetadataWithChangeMetadata,
    Builds,
    BuildType,
    Change,
    ChangeMetadata,
    Changes,
)
from .transport import AsyncTransport, Transport

__all__ = ["TeamCityClient", "JoinPolicy", "HydrationResult"]

logger = logging.getLogger(__name__)

T = TypeVar("T")

#: One entry of a best-effort hydration: the hydrated build or why it failed.
HydrationResult = Union[BuildMetadataWithChangeMetadata, JoinError]

# characters TeamCity expects literally in a locator path segment
_LOCATOR_SAFE = ":,()+*"


class JoinPolicy(str, Enum):
    """How :meth:`TeamCityClient.hydrate_builds_with_changes` handles failures."""

    #: Any failing build fails the whole join; pending requests are cancelled.
    FAIL_FAST = "fail_fast"
    #: Every build is attempted; failures are returned in place as JoinError.
    BEST_EFFORT = "best_effort"


class TeamCityClient:
    """Public client for the TeamCity REST API.

    Every call goes to the server; nothing is cached. Locators may be given as
    dicts, the ``TypedDict`` helpers or :class:`~teamcity_rest.locators.Locator`
    instances, or as already-rendered strings.

    Example:
        >>> async with TeamCityClient.from_env() as tc:
        ...     builds = await tc.list_builds({"buildType": {"id": "App_Build"}, "count": 20})
        ...     full = await tc.hydrate_builds_with_changes(builds)

    Args:
        transport: Performs the HTTP requests.
        max_concurrency: Upper bound on requests in flight during
            :meth:`hydrate_builds_with_changes`.
    """

    def __init__(self, transport: AsyncTransport, max_concurrency: int = 10):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.transport = transport
        self.max_concurrency = max_concurrency

    @classmethod
    def from_settings(
        cls, settings: ClientSettings, session: Optional[requests.Session] = None
    ) -> TeamCityClient:
        return cls(
            Transport.from_settings(settings, session=session),
            max_concurrency=settings.max_concurrency,
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> TeamCityClient:
        """Create a client from ``TEAMCITY_*`` environment variables (and ``.env``)."""
        return cls.from_settings(ClientSettings.from_env(**overrides))

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> TeamCityClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    async def __aenter__(self) -> TeamCityClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.close()

    # ────────────────────── builds ──────────────────────────────
    async def list_builds(
        self, locator: Union[BuildLocator, Mapping[str, Any], str], paginate: bool = True
    ) -> list[Build]:
        """Get a list of builds matching a build locator.

        Follows ``nextHref`` links until the last page unless ``paginate`` is
        False. Builds in the list are summaries; use
        :meth:`get_build_metadata` for all fields.

        Args:
            locator: The build locator. See
                https://www.jetbrains.com/help/teamcity/rest/buildlocator.html
            paginate: Fetch every page instead of only the first one.

        Returns:
            The builds, in page order.
        """
        locator_string = _locator_segment(locator)

        page = Builds.model_validate(
            await self.transport.get(f"/builds/multiple/{locator_string}")
        )
        builds = list(page.build)
        pages = 1

        if paginate:
            while page.next_href:
                page = Builds.model_validate(await self.transport.get(page.next_href))
                builds.extend(page.build)
                pages += 1

        logger.info(f"Fetched {len(builds)} builds in {pages} page(s) for {locator_string}")
        return builds

    async def snapshot_dependency_builds(self, build_id: Union[int, str]) -> list[Build]:
        """Get the snapshot dependency builds of a build, excluding the build itself."""
        locator: BuildLocator = {
            "snapshotDependency": {"to": {"id": build_id}, "includeInitial": False},
            "defaultFilter": False,
        }
        return await self.list_builds(locator)

    async def get_build_metadata(
        self, locator: Union[BuildLocator, Mapping[str, Any], str]
    ) -> BuildMetadata:
        """Get every field of a single build."""
        data = await self.transport.get(f"/builds/{_locator_segment(locator)}")
        return BuildMetadata.model_validate(data)

    # ────────────────────── changes ─────────────────────────────
    async def list_changes(
        self, locator: Union[ChangeLocator, Mapping[str, Any], str], paginate: bool = True
    ) -> list[Change]:
        """Get a list of changes, usually those of a build.

        Follows ``nextHref`` links unless ``paginate`` is False. Returns an
        empty list when the server reports no changes.
        """
        page = Changes.model_validate(
            await self.transport.get("/changes", {"locator": _locator_query(locator)})
        )
        changes = list(page.change or [])

        if paginate:
            while page.next_href:
                page = Changes.model_validate(await self.transport.get(page.next_href))
                changes.extend(page.change or [])

        return changes

    async def get_change_metadata(
        self, locator: Union[ChangeLocator, Mapping[str, Any], str]
    ) -> ChangeMetadata:
        """Get every field of a single change."""
        data = await self.transport.get(f"/changes/{_locator_segment(locator)}")
        return ChangeMetadata.model_validate(data)

    # ────────────────────── hydration ───────────────────────────
    async def hydrate_builds_with_changes(
        self,
        builds: Iterable[Build],
        policy: JoinPolicy = JoinPolicy.FAIL_FAST,
    ) -> list[HydrationResult]:
        """Fetch build and change metadata for each of ``builds``.

        For every build, its metadata and its change list are fetched
        concurrently, then the metadata of each change. All builds are
        processed concurrently, with at most ``max_concurrency`` requests in
        flight.

        Args:
            builds: Builds as returned by :meth:`list_builds`.
            policy: ``FAIL_FAST`` raises on the first failing build;
                ``BEST_EFFORT`` returns a :class:`JoinError` in that build's
                position instead.

        Returns:
            One entry per input build, in input order. Each hydrated entry
            carries the metadata of that build's own changes.

        Raises:
            JoinError: With ``FAIL_FAST``, if any request for any build fails.
        """
        policy = JoinPolicy(policy)
        builds = list(builds)
        bounded = TeamCityClient(
            _BoundedTransport(self.transport, asyncio.Semaphore(self.max_concurrency)),
            max_concurrency=self.max_concurrency,
        )
        logger.info(f"Hydrating {len(builds)} builds ({policy.value})")

        branches = [bounded._hydrate_build(build) for build in builds]

        if policy is JoinPolicy.FAIL_FAST:
            return await _all_or_nothing(branches)

        results = await asyncio.gather(*branches, return_exceptions=True)
        for result in results:
            if isinstance(result, JoinError):
                logger.warning(str(result))
            elif isinstance(result, BaseException):
                raise result
        return results

    async def _hydrate_build(self, build: Build) -> BuildMetadataWithChangeMetadata:
        try:
            metadata, changes = await _all_or_nothing(
                [
                    self.get_build_metadata({"id": build.id}),
                    self._change_metadata_for_build(build.id),
                ]
            )
        except Exception as exc:
            raise JoinError(build.id, exc) from exc
        return metadata.with_changes(changes)

    async def _change_metadata_for_build(self, build_id: int) -> list[ChangeMetadata]:
        # one changes-list fetch per build
        changes = await self.list_changes({"build": {"id": build_id}}, paginate=False)
        return await _all_or_nothing(
            [self.get_change_metadata({"id": change.id}) for change in changes]
        )

    # ────────────────────── build types ─────────────────────────
    async def get_build_type(
        self, locator: Union[BuildTypeLocator, Mapping[str, Any], str]
    ) -> BuildType:
        """Get a build type (build configuration)."""
        data = await self.transport.get(f"/buildTypes/{_locator_segment(locator)}")
        return BuildType.model_validate(data)

    # ────────────────────── raw access ──────────────────────────
    async def post(self, path: str, body: Mapping[str, Any]) -> Any:
        """POST ``body`` as JSON to a REST path, e.g. ``/buildQueue``."""
        return await self.transport.post(path, body)


class _BoundedTransport:
    """Limits the number of requests a transport has in flight."""

    def __init__(self, transport: AsyncTransport, semaphore: asyncio.Semaphore):
        self._transport = transport
        self._semaphore = semaphore

    async def get(self, path: str, params: Optional[Mapping[str, str]] = None) -> Any:
        async with self._semaphore:
            return await self._transport.get(path, params)

    async def post(self, path: str, body: Mapping[str, Any]) -> Any:
        async with self._semaphore:
            return await self._transport.post(path, body)

    def close(self) -> None:
        self._transport.close()


def _locator_query(locator: Union[Mapping[str, Any], str]) -> str:
    locator_string = locator_to_string(locator)
    logger.debug(f"Locator {locator_string}")
    return locator_string


def _locator_segment(locator: Union[Mapping[str, Any], str]) -> str:
    return quote(_locator_query(locator), safe=_LOCATOR_SAFE)


async def _all_or_nothing(aws: Iterable[Awaitable[T]]) -> list[T]:
    """Run awaitables concurrently; on the first failure cancel the rest and raise it.

    Results are returned in input order.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    if not tasks:
        return []
    try:
        _, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
    except asyncio.CancelledError:
        for task in tasks:
            task.cancel()
        raise

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    failed = [
        task
        for task in tasks
        if not task.cancelled() and task.exception() is not None
    ]
    if failed:
        raise failed[0].exception()
    return [task.result() for task in tasks]
