"""teamcity_rest.locators

Locators are TeamCity's query language: ``field:value`` pairs separated by
commas, with nested groups in parentheses, e.g.::

    project:(id:Foo),defaultFilter:false,queuedDate:(date:20240319T154501+0000,condition:after)

Callers describe a locator as a mapping (a plain ``dict``, one of the
``TypedDict`` helpers below, or an immutable :class:`Locator`) and
:func:`locator_to_string` renders it. Field order in the output follows the
mapping's insertion order.

See https://www.jetbrains.com/help/teamcity/rest/locators.html
"""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from typing import Any, Literal, TypedDict, Union

from .exceptions import LocatorFieldUndefinedError, LocatorValueError
from .utils import format_teamcity_date

__all__ = [
    "LocatorValue",
    "Locator",
    "BuildLocator",
    "BuildTypeLocator",
    "ChangeLocator",
    "ProjectLocator",
    "SnapshotDependencyLocator",
    "TeamCityDateLocator",
    "locator_to_string",
]


#: A single locator value: scalar, boolean, timestamp or nested locator.
LocatorValue = Union[str, int, float, bool, datetime, Mapping[str, Any]]

_SCALARS = (str, int, float)


# =============================================================================
# TYPED LOCATORS
# =============================================================================


class ProjectLocator(TypedDict, total=False):
    """Locator for TeamCity projects."""

    id: str
    name: str


class BuildTypeLocator(TypedDict, total=False):
    """Locator for TeamCity build types (build configurations)."""

    id: str
    name: str
    project: ProjectLocator


class TeamCityDateLocator(TypedDict, total=False):
    """A point in time: either a date or a reference build, plus a condition."""

    date: datetime
    build: BuildLocator
    condition: Literal["before", "after"]


#: Locator for the snapshot dependency graph of a build.
SnapshotDependencyLocator = TypedDict(
    "SnapshotDependencyLocator",
    {
        "to": "BuildLocator",
        "from": "BuildLocator",
        "includeInitial": bool,
        "recursive": bool,
    },
    total=False,
)


class BuildLocator(TypedDict, total=False):
    """Locator for TeamCity builds.

    See https://www.jetbrains.com/help/teamcity/rest/buildlocator.html
    """

    id: int
    number: str
    project: ProjectLocator
    buildType: BuildTypeLocator
    branch: str
    status: Literal["SUCCESS", "FAILURE", "UNKNOWN"]
    state: Literal["queued", "running", "finished", "any"]
    defaultFilter: bool
    queuedDate: TeamCityDateLocator
    startDate: TeamCityDateLocator
    finishDate: TeamCityDateLocator
    snapshotDependency: SnapshotDependencyLocator
    count: int
    start: int


class ChangeLocator(TypedDict, total=False):
    """Locator for TeamCity changes (VCS commits).

    See https://www.jetbrains.com/help/teamcity/rest/changelocator.html
    """

    id: int
    build: BuildLocator
    buildType: BuildTypeLocator
    project: ProjectLocator
    version: str
    username: str
    count: int


# =============================================================================
# IMMUTABLE LOCATOR
# =============================================================================


class Locator(Mapping[str, Any]):
    """Immutable, ordered locator.

    Holds an explicit tuple of ``(field, value)`` pairs; nested mappings are
    converted to nested :class:`Locator` instances. Values are checked when
    the locator is built, so an undefined field fails at construction rather
    than when the request is made.

    Example:
        >>> str(Locator(project=Locator(id="Foo"), defaultFilter=False))
        'project:(id:Foo),defaultFilter:false'
    """

    __slots__ = ("_fields",)

    _fields: tuple[tuple[str, Any], ...]

    def __init__(self, **fields: Any) -> None:
        self._fields = _freeze(fields.items(), "")

    @classmethod
    def from_pairs(cls, pairs: Iterable[tuple[str, Any]]) -> Locator:
        """Build a locator from ``(field, value)`` pairs.

        Use this for field names that are not valid Python identifiers.
        """
        locator = cls.__new__(cls)
        locator._fields = _freeze(pairs, "")
        return locator

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> Locator:
        """Build a locator from any mapping, keeping its key order."""
        if isinstance(mapping, Locator):
            return mapping
        return cls.from_pairs(mapping.items())

    @property
    def pairs(self) -> tuple[tuple[str, Any], ...]:
        return self._fields

    def __getitem__(self, key: str) -> Any:
        for field, value in self._fields:
            if field == key:
                return value
        raise KeyError(key)

    def __iter__(self) -> Iterator[str]:
        return (field for field, _ in self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def __repr__(self) -> str:
        inner = ", ".join(f"{field}={value!r}" for field, value in self._fields)
        return f"Locator({inner})"

    def __str__(self) -> str:
        return locator_to_string(self)


def _freeze(pairs: Iterable[tuple[str, Any]], parent: str) -> tuple[tuple[str, Any], ...]:
    frozen: list[tuple[str, Any]] = []
    seen: set[str] = set()
    for field, value in pairs:
        if not isinstance(field, str):
            raise TypeError(f"Locator field names must be str, got {field!r}")
        if field in seen:
            raise ValueError(f"Duplicate locator field {field!r}")
        seen.add(field)

        path = _join_path(parent, field)
        if value is None:
            raise LocatorFieldUndefinedError(path)
        if isinstance(value, Mapping):
            nested = Locator.__new__(Locator)
            nested._fields = _freeze(value.items(), path)
            value = nested
        elif not isinstance(value, (datetime, bool) + _SCALARS):
            raise LocatorValueError(path, value)
        frozen.append((field, value))
    return tuple(frozen)


# =============================================================================
# COMPILER
# =============================================================================


def locator_to_string(locator: Mapping[str, Any] | str) -> str:
    """Render a locator into the string passed to the TeamCity API.

    A string is returned unchanged, so hand-written locators can be passed
    wherever a locator is expected.

    Args:
        locator: The locator fields, in the order they should be rendered.

    Returns:
        The locator string, e.g. ``project:(id:Foo),defaultFilter:false``.

    Raises:
        LocatorFieldUndefinedError: If any field (at any depth) is ``None``.
        LocatorValueError: If a field holds an unsupported value type.
    """
    if isinstance(locator, str):
        return locator
    return _compile(locator, "")


def _compile(locator: Mapping[str, Any], parent: str) -> str:
    return ",".join(
        f"{field}:{_render(_join_path(parent, field), value)}"
        for field, value in locator.items()
    )


def _render(path: str, value: Any) -> str:
    if value is None:
        raise LocatorFieldUndefinedError(path)
    if isinstance(value, datetime):
        return format_teamcity_date(value)
    if isinstance(value, Mapping):
        return f"({_compile(value, path)})"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, _SCALARS):
        return str(value)
    raise LocatorValueError(path, value)


def _join_path(parent: str, field: str) -> str:
    return f"{parent}.{field}" if parent else field
