"""teamcity_rest.exceptions

Error taxonomy for the TeamCity REST client. Every error raised by this
package derives from :class:`TeamCityError`.
"""
from __future__ import annotations

from typing import Any

__all__ = [
    "TeamCityError",
    "LocatorError",
    "LocatorFieldUndefinedError",
    "LocatorValueError",
    "DateParseError",
    "TransportError",
    "JoinError",
]


class TeamCityError(Exception):
    """Base exception for all client errors."""

    pass


class LocatorError(TeamCityError):
    """Raised when a locator cannot be compiled."""

    pass


class LocatorFieldUndefinedError(LocatorError):
    """Raised when a locator field is bound to ``None``.

    Attributes:
        field: Dotted path of the offending field, e.g. ``project.id``.
    """

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"Locator {field} is not defined")


class LocatorValueError(LocatorError, TypeError):
    """Raised when a locator field holds a value of an unsupported type."""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value
        super().__init__(
            f"Locator {field} has unsupported value {value!r} ({type(value).__name__})"
        )


class DateParseError(TeamCityError, ValueError):
    """Raised when a string is not a TeamCity date."""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"{value!r} is not a TeamCity date (expected yyyyMMdd'T'HHmmss+ZZZZ)")


class TransportError(TeamCityError):
    """Raised when a request to the server fails.

    Covers connection errors, timeouts, non-success status codes and bodies
    that are not valid JSON. The underlying exception is chained as
    ``__cause__``.

    Attributes:
        url: The requested URL, when known.
        status_code: The HTTP status code, when a response was received.
    """

    def __init__(
        self,
        details: str,
        url: str | None = None,
        status_code: int | None = None,
        cause: BaseException | None = None,
    ):
        self.details = details
        self.url = url
        self.status_code = status_code
        status_info = f" [{status_code}]" if status_code is not None else ""
        url_info = f" ({url})" if url else ""
        super().__init__(f"{details}{status_info}{url_info}")
        if cause is not None:
            self.__cause__ = cause


class JoinError(TeamCityError):
    """Raised when one branch of a build/change hydration fails.

    Attributes:
        build_id: Id of the build whose branch failed.
    """

    def __init__(self, build_id: Any, cause: BaseException):
        self.build_id = build_id
        super().__init__(
            f"Hydration failed for build {build_id}: {type(cause).__name__}: {cause}"
        )
        self.__cause__ = cause
