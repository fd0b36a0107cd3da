# noqa: D104
"""Top-level package for teamcity_rest."""
from __future__ import annotations

from .exceptions import (
    DateParseError,
    JoinError,
    LocatorError,
    LocatorFieldUndefinedError,
    LocatorValueError,
    TeamCityError,
    TransportError,
)
from .locators import Locator, locator_to_string
from .utils import format_teamcity_date, parse_teamcity_date

__version__ = "0.1.0"
__all__ = [
    "TeamCityClient",
    "JoinPolicy",
    "ClientSettings",
    "Transport",
    "Locator",
    "locator_to_string",
    "format_teamcity_date",
    "parse_teamcity_date",
    "TeamCityError",
    "LocatorError",
    "LocatorFieldUndefinedError",
    "LocatorValueError",
    "DateParseError",
    "TransportError",
    "JoinError",
]

_LAZY = {
    "TeamCityClient": ".client",
    "JoinPolicy": ".client",
    "ClientSettings": ".config",
    "Transport": ".transport",
}


def __getattr__(name):  # type: ignore[override]
    # keep `import teamcity_rest` free of requests/pydantic until needed
    if name in _LAZY:
        from importlib import import_module

        return getattr(import_module(_LAZY[name], __name__), name)
    raise AttributeError(name)
