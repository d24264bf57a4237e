"""Command line entry point: ``cysic-fleet``.

Without a subcommand the interactive menu starts. Every subcommand maps to
one LifecycleCommands workflow.
"""

from __future__ import annotations

import functools
import json
import sys

import click

from fleet.commands import LifecycleCommands
from fleet.config import Settings, load_settings
from fleet.engine import EngineInstaller
from fleet.errors import FatalSetupError, FleetError, UserInputError
from fleet.logging_config import setup_logging
from fleet.runtime.docker import DockerRuntimeClient
from fleet.shell import (
    OperatorShell,
    describe_install,
    describe_uninstall,
    describe_update,
    follow_logs,
    render_table,
)
from fleet.state import NodeStateStore

EXIT_ERROR = 1
EXIT_USAGE = 2


def build_commands(settings: Settings) -> LifecycleCommands:
    """Wire the Docker-backed components from one settings value."""
    runtime = DockerRuntimeClient(settings)
    return LifecycleCommands(
        settings=settings,
        engine=EngineInstaller(runtime, auto_install=settings.auto_install_engine),
        runtime=runtime,
        state=NodeStateStore(settings.data_root, settings.log_root),
    )


def report_errors(func):
    """Turn FleetErrors into an error message and a non-zero exit status."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except FleetError as e:
            click.echo(f"Error: {e.message}", err=True)
            for suggestion in e.suggestions:
                click.echo(f"  - {suggestion}", err=True)
            code = EXIT_USAGE if isinstance(e, UserInputError) else EXIT_ERROR
            sys.exit(code)

    return wrapper


@click.group(invoke_without_command=True)
@click.option("--log-level", default=None, help="Override CYSIC_FLEET_LOG_LEVEL")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Override CYSIC_FLEET_LOG_FORMAT",
)
@click.pass_context
def main(ctx: click.Context, log_level: str | None, log_format: str | None) -> None:
    """Run and manage Cysic verifier nodes in Docker containers."""
    if ctx.obj is None:
        overrides = {}
        if log_level:
            overrides["log_level"] = log_level
        if log_format:
            overrides["log_format"] = log_format
        settings = load_settings(**overrides)
        setup_logging(settings)
        ctx.obj = build_commands(settings)

    if ctx.invoked_subcommand is None:
        ctx.invoke(menu)


@main.command()
@click.pass_obj
def menu(commands: LifecycleCommands) -> None:
    """Interactive numbered menu."""
    try:
        OperatorShell(commands).run()
    except FatalSetupError as e:
        click.echo(f"Fatal: {e.message}", err=True)
        sys.exit(EXIT_ERROR)


@main.command()
@click.argument("address")
@click.pass_obj
@report_errors
def install(commands: LifecycleCommands, address: str) -> None:
    """Build the image and start a node for ADDRESS."""
    click.echo("Building image and starting node...")
    for line in describe_install(commands.install(address)):
        click.echo(line)


@main.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print nodes as JSON")
@click.pass_obj
@report_errors
def list_nodes(commands: LifecycleCommands, as_json: bool) -> None:
    """Show all nodes with address, resource usage and status."""
    nodes = commands.list()
    if as_json:
        click.echo(json.dumps([node.to_dict() for node in nodes], indent=2))
    else:
        click.echo(render_table(nodes))


@main.command()
@click.argument("name")
@click.argument("new_address")
@click.pass_obj
@report_errors
def update(commands: LifecycleCommands, name: str, new_address: str) -> None:
    """Change the reward address of node NAME and re-provision it."""
    for line in describe_update(commands.update(name, new_address)):
        click.echo(line)


@main.command()
@click.argument("name")
@click.option(
    "--tail",
    type=click.IntRange(min=0),
    default=None,
    help="Show only the last N lines before following",
)
@click.pass_obj
@report_errors
def logs(commands: LifecycleCommands, name: str, tail: int | None) -> None:
    """Follow the log of node NAME until Ctrl+C."""
    follow_logs(commands, name, click.echo, tail="all" if tail is None else tail)


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
@report_errors
def uninstall(commands: LifecycleCommands, name: str, yes: bool) -> None:
    """Remove node NAME's container and its data and log directories."""
    if not yes and not click.confirm(f"Really uninstall node {name}?", default=False):
        click.echo("Cancelled")
        return
    result = commands.uninstall(name)
    for line in describe_uninstall(result):
        click.echo(line)
    if not result.success:
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
