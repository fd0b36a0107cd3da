"""teamcity_rest.models

Pydantic models for the TeamCity REST payloads used by the client.

Fields are exposed in snake_case; the wire names (camelCase, or hyphenated
such as ``snapshot-dependencies``) are kept as aliases, so
``model_dump(by_alias=True)`` reproduces the server's JSON. Unknown fields
returned by the server are kept as extras.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .utils import parse_teamcity_date

__all__ = [
    "Build",
    "Builds",
    "BuildMetadata",
    "BuildMetadataWithChangeMetadata",
    "BuildType",
    "Change",
    "ChangeMetadata",
    "Changes",
]


class TeamCityModel(BaseModel):
    """Base for every payload model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


def _parse_optional_date(value: Optional[str]) -> Optional[datetime]:
    return parse_teamcity_date(value) if value else None


# ────────────────────── shared fragments ────────────────────────
class Link(TeamCityModel):
    href: str


class CountedLink(TeamCityModel):
    """A collection that is only referenced, e.g. ``changes`` on a build."""

    count: int = 0
    href: Optional[str] = None


class CountedItems(TeamCityModel):
    """A counted collection embedded in a payload, with its items kept raw."""

    count: int = 0


class VcsRootInstance(TeamCityModel):
    id: str
    vcs_root_id: Optional[str] = Field(None, alias="vcs-root-id")
    name: str
    href: str


class User(TeamCityModel):
    id: int
    username: str
    name: Optional[str] = None
    href: str


# ────────────────────── builds ──────────────────────────────────
class Build(TeamCityModel):
    """Build information returned in lists of builds.

    Not every field is present here; use ``TeamCityClient.get_build_metadata``
    for the full record.
    """

    id: int
    build_type_id: str
    number: Optional[str] = None
    status: Optional[str] = None
    state: str
    href: str
    web_url: str
    finish_on_agent_date: Optional[str] = None


class Builds(TeamCityModel):
    """One page of builds."""

    count: int = 0
    href: Optional[str] = None
    next_href: Optional[str] = None
    prev_href: Optional[str] = None
    build: list[Build] = Field(default_factory=list)


class BuildTypeSummary(TeamCityModel):
    id: str
    name: str
    project_name: str
    project_id: str
    href: str
    web_url: str


class Triggered(TeamCityModel):
    type: str
    details: Optional[str] = None
    date: str


class LastChanges(CountedItems):
    change: list[dict[str, Any]] = Field(default_factory=list)


class Revisions(CountedItems):
    revision: list[dict[str, Any]] = Field(default_factory=list)


class VersionedSettingsRevision(TeamCityModel):
    version: str
    vcs_root_instance: Optional[VcsRootInstance] = Field(None, alias="vcs-root-instance")


class Agent(TeamCityModel):
    name: str
    type_id: Optional[Union[int, str]] = None
    web_url: Optional[str] = None


class Properties(CountedItems):
    property: list[dict[str, Any]] = Field(default_factory=list)


class SnapshotDependencyBuilds(CountedItems):
    build: list[Build] = Field(default_factory=list)


class _BuildDetails(Build):
    """Fields shared by :class:`BuildMetadata` and its hydrated variant."""

    status_text: Optional[str] = None
    build_type: Optional[BuildTypeSummary] = None
    queued_date: Optional[str] = None
    start_date: Optional[str] = None
    finish_date: Optional[str] = None
    triggered: Optional[Triggered] = None
    last_changes: Optional[LastChanges] = None
    revisions: Optional[Revisions] = None
    versioned_settings_revision: Optional[VersionedSettingsRevision] = None
    agent: Optional[Agent] = None
    problem_occurrences: Optional[CountedLink] = None
    artifacts: Optional[CountedLink] = None
    related_issues: Optional[Link] = None
    properties: Optional[Properties] = None
    statistics: Optional[Link] = None
    snapshot_dependencies: Optional[SnapshotDependencyBuilds] = Field(
        None, alias="snapshot-dependencies"
    )
    vcs_labels: Optional[list[dict[str, Any]]] = None
    customization: Optional[dict[str, Any]] = None

    @property
    def queued_at(self) -> Optional[datetime]:
        return _parse_optional_date(self.queued_date)

    @property
    def started_at(self) -> Optional[datetime]:
        return _parse_optional_date(self.start_date)

    @property
    def finished_at(self) -> Optional[datetime]:
        return _parse_optional_date(self.finish_date)


class BuildMetadata(_BuildDetails):
    """The full record of a single build.

    ``changes`` only links to the build's changes; see
    :class:`BuildMetadataWithChangeMetadata` for the resolved form.
    """

    changes: Optional[CountedLink] = None

    def with_changes(self, changes: Iterable[ChangeMetadata]) -> BuildMetadataWithChangeMetadata:
        """Return a copy whose ``changes`` link is replaced by ``changes``."""
        data = {
            name: getattr(self, name)
            for name in type(self).model_fields
            if name != "changes"
        }
        data.update(self.model_extra or {})
        return BuildMetadataWithChangeMetadata(**data, changes=list(changes))


class BuildMetadataWithChangeMetadata(_BuildDetails):
    """A :class:`BuildMetadata` with every change resolved to its metadata."""

    changes: list[ChangeMetadata] = Field(default_factory=list)


# ────────────────────── changes ─────────────────────────────────
class Change(TeamCityModel):
    """Change information returned in lists of changes."""

    id: int
    version: str
    username: Optional[str] = None
    date: str
    href: str
    web_url: str

    @property
    def changed_at(self) -> datetime:
        return parse_teamcity_date(self.date)


class Changes(TeamCityModel):
    """A list of changes. The server may paginate, but rarely does."""

    count: int = 0
    href: Optional[str] = None
    next_href: Optional[str] = None
    prev_href: Optional[str] = None
    change: Optional[list[Change]] = None


class ChangeFile(TeamCityModel):
    before_revision: Optional[str] = Field(None, alias="before-revision")
    after_revision: Optional[str] = Field(None, alias="after-revision")
    change_type: Optional[str] = None
    file: str
    relative_file: Optional[str] = Field(None, alias="relative-file")


class ChangeFiles(CountedItems):
    file: list[ChangeFile] = Field(default_factory=list)


class ChangeMetadata(Change):
    """The full record of a single change."""

    comment: Optional[str] = None
    user: Optional[User] = None
    type: Optional[str] = None
    files: Optional[ChangeFiles] = None
    vcs_root_instance: Optional[VcsRootInstance] = None


# ────────────────────── build types ─────────────────────────────
class ProjectSummary(TeamCityModel):
    id: str
    name: str
    parent_project_id: Optional[str] = None
    href: str
    web_url: str


class BuildType(TeamCityModel):
    """A build configuration."""

    id: str
    name: str
    project_name: str
    project_id: str
    href: str
    web_url: str
    project: Optional[ProjectSummary] = None
    templates: Optional[CountedItems] = None
    vcs_root_entries: Optional[CountedItems] = Field(None, alias="vcs-root-entries")
    settings: Optional[CountedItems] = None
    parameters: Optional[CountedItems] = None
    steps: Optional[CountedItems] = None
    features: Optional[CountedItems] = None
    triggers: Optional[CountedItems] = None
    snapshot_dependencies: Optional[CountedItems] = Field(None, alias="snapshot-dependencies")
    artifact_dependencies: Optional[CountedItems] = Field(None, alias="artifact-dependencies")
    builds: Optional[Link] = None
    investigations: Optional[Link] = None
    compatible_agents: Optional[Link] = None


BuildMetadataWithChangeMetadata.model_rebuild()
