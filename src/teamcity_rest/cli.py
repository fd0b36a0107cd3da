"""CLI entry point for teamcity_rest package."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Iterable
from typing import Any, Optional

import click
from pydantic import BaseModel, ValidationError

from .client import JoinPolicy, TeamCityClient
from .config import ClientSettings
from .exceptions import JoinError, TeamCityError
from .locators import locator_to_string

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

locator_option = click.option(
    "--locator",
    "-l",
    "locator_options",
    multiple=True,
    metavar="KEY=VALUE",
    help="Locator field; repeat for more. Dotted keys nest: -l project.id=Foo",
)


def parse_locator_options(options: Iterable[str]) -> dict[str, Any]:
    """Turn ``key=value`` options into a (nested) locator dict.

    ``a.b=c`` becomes ``{"a": {"b": "c"}}``; ``true``/``false`` become booleans.
    Option order is kept.
    """
    locator: dict[str, Any] = {}
    for option in options:
        key, sep, value = option.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {option!r}", param_hint="--locator")

        *parents, leaf = key.split(".")
        node = locator
        for parent in parents:
            node = node.setdefault(parent, {})
            if not isinstance(node, dict):
                raise click.BadParameter(f"{parent!r} is set to a value and used as a group", param_hint="--locator")
        if leaf in node:
            raise click.BadParameter(f"{key!r} given more than once", param_hint="--locator")

        if value.lower() in ("true", "false"):
            node[leaf] = value.lower() == "true"
        else:
            node[leaf] = value
    return locator


def _dump(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json", by_alias=True, exclude_none=True)
    if isinstance(data, JoinError):
        return {"buildId": data.build_id, "error": str(data)}
    if isinstance(data, list):
        return [_dump(item) for item in data]
    return data


def _run(ctx: click.Context, action) -> None:
    """Create a client, run ``action(client)`` and print its result as JSON."""
    try:
        client: TeamCityClient = ctx.obj["client_factory"]()
    except ValidationError as exc:
        raise click.ClickException(
            f"Incomplete settings (set TEAMCITY_HOST and TEAMCITY_TOKEN or use --host/--token):\n{exc}"
        ) from exc

    async def _go():
        with client:
            return await action(client)

    try:
        result = asyncio.run(_go())
    except TeamCityError as exc:
        raise click.ClickException(str(exc)) from exc
    except ValidationError as exc:
        raise click.ClickException(f"Unexpected response from server:\n{exc}") from exc
    click.echo(json.dumps(_dump(result), indent=2))


@click.group()
@click.option("--host", help="TeamCity host (default: $TEAMCITY_HOST).")
@click.option("--token", help="Access token (default: $TEAMCITY_TOKEN).")
@click.option("--api-version", help="REST API version (default: $TEAMCITY_API_VERSION or 'latest').")
@click.option("--verbose", "-v", is_flag=True, help="Log every request.")
@click.pass_context
def main(
    ctx: click.Context,
    host: Optional[str],
    token: Optional[str],
    api_version: Optional[str],
    verbose: bool,
) -> None:
    """TeamCity REST API command-line tool."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj.setdefault(
        "client_factory",
        lambda: TeamCityClient.from_settings(
            ClientSettings.from_env(host=host, token=token, version=api_version)
        ),
    )


@main.command("locator")
@locator_option
def locator_cmd(locator_options: tuple[str, ...]) -> None:
    """Print the locator string for the given fields (no request is made)."""
    try:
        click.echo(locator_to_string(parse_locator_options(locator_options)))
    except TeamCityError as exc:
        raise click.ClickException(str(exc)) from exc


@main.command("builds")
@locator_option
@click.option("--paginate/--no-paginate", default=True, show_default=True, help="Follow next-page links.")
@click.pass_context
def builds_cmd(ctx: click.Context, locator_options: tuple[str, ...], paginate: bool) -> None:
    """List builds matching a build locator."""
    locator = parse_locator_options(locator_options)
    _run(ctx, lambda tc: tc.list_builds(locator, paginate=paginate))


@main.command("snapshot-deps")
@click.argument("build_id")
@click.pass_context
def snapshot_deps_cmd(ctx: click.Context, build_id: str) -> None:
    """List the snapshot dependency builds of BUILD_ID."""
    _run(ctx, lambda tc: tc.snapshot_dependency_builds(build_id))


@main.command("build")
@locator_option
@click.pass_context
def build_cmd(ctx: click.Context, locator_options: tuple[str, ...]) -> None:
    """Show every field of a single build."""
    locator = parse_locator_options(locator_options)
    _run(ctx, lambda tc: tc.get_build_metadata(locator))


@main.command("changes")
@locator_option
@click.pass_context
def changes_cmd(ctx: click.Context, locator_options: tuple[str, ...]) -> None:
    """List changes matching a change locator, e.g. -l build.id=42."""
    locator = parse_locator_options(locator_options)
    _run(ctx, lambda tc: tc.list_changes(locator))


@main.command("change")
@locator_option
@click.pass_context
def change_cmd(ctx: click.Context, locator_options: tuple[str, ...]) -> None:
    """Show every field of a single change."""
    locator = parse_locator_options(locator_options)
    _run(ctx, lambda tc: tc.get_change_metadata(locator))


@main.command("build-type")
@locator_option
@click.pass_context
def build_type_cmd(ctx: click.Context, locator_options: tuple[str, ...]) -> None:
    """Show a build configuration."""
    locator = parse_locator_options(locator_options)
    _run(ctx, lambda tc: tc.get_build_type(locator))


@main.command("hydrate")
@locator_option
@click.option("--paginate/--no-paginate", default=True, show_default=True, help="Follow next-page links.")
@click.option("--best-effort", is_flag=True, help="Report failing builds instead of aborting.")
@click.pass_context
def hydrate_cmd(
    ctx: click.Context, locator_options: tuple[str, ...], paginate: bool, best_effort: bool
) -> None:
    """List builds, then resolve each build's metadata and changes."""
    locator = parse_locator_options(locator_options)
    policy = JoinPolicy.BEST_EFFORT if best_effort else JoinPolicy.FAIL_FAST

    async def action(tc: TeamCityClient):
        builds = await tc.list_builds(locator, paginate=paginate)
        return await tc.hydrate_builds_with_changes(builds, policy=policy)

    _run(ctx, action)


if __name__ == "__main__":
    main()
