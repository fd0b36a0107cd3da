"""teamcity_rest.config

Client settings, read from the environment (and a ``.env`` file when present).
"""
from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Optional

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field

__all__ = ["ClientSettings", "ENV_VARS"]


#: Environment variable for each settings field.
ENV_VARS = {
    "host": "TEAMCITY_HOST",
    "token": "TEAMCITY_TOKEN",
    "version": "TEAMCITY_API_VERSION",
    "timeout": "TEAMCITY_TIMEOUT",
    "max_concurrency": "TEAMCITY_MAX_CONCURRENCY",
}


class ClientSettings(BaseModel):
    """Configuration options for the TeamCity client."""

    host: str = Field(
        ...,
        min_length=1,
        description="TeamCity server host, e.g. 'teamcity.example.com'. "
        "'https://' is assumed when no scheme is given.",
    )
    token: str = Field(
        ...,
        min_length=1,
        repr=False,
        description="TeamCity access token, sent as a Bearer token",
    )
    version: str = Field(
        default="latest",
        description="REST API version segment, e.g. 'latest' or '2023.11'",
    )
    timeout: float = Field(
        default=15.0,
        gt=0,
        description="Per-request timeout in seconds",
    )
    max_concurrency: int = Field(
        default=10,
        ge=1,
        description="Maximum number of requests in flight during fan-out joins",
    )

    @classmethod
    def from_env(
        cls,
        env: Optional[Mapping[str, str]] = None,
        dotenv: bool = True,
        **overrides: Any,
    ) -> ClientSettings:
        """Build settings from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ``.
            dotenv: First load a ``.env`` file from the working directory
                (or its parents) into ``os.environ``. Ignored when ``env``
                is given.
            **overrides: Explicit values; ``None`` values are ignored.

        Raises:
            pydantic.ValidationError: If a required value is missing or invalid.
        """
        if dotenv and env is None:
            load_dotenv(find_dotenv(usecwd=True))
        source = os.environ if env is None else env

        values: dict[str, Any] = {}
        for field, var in ENV_VARS.items():
            raw = source.get(var)
            if raw:
                values[field] = raw
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
