"""Interactive operator menu and table rendering.

The menu is a thin loop over LifecycleCommands: it prompts, dispatches one
workflow, reports the result and returns to the menu. Errors from a single
workflow are reported and never end the loop, except FatalSetupError.
"""

from __future__ import annotations

from typing import Callable

import click

from fleet.commands import InstallResult, LifecycleCommands, UninstallResult, UpdateResult
from fleet.errors import FatalSetupError, FleetError, UserInputError
from fleet.registry import NodeInstance

PLACEHOLDER = "N/A"

TABLE_COLUMNS = [
    ("#", 4),
    ("NAME", 20),
    ("REWARD ADDRESS", 45),
    ("CPU", 10),
    ("MEM USED", 10),
    ("MEM LIMIT", 10),
    ("STATUS", 10),
]

MENU = """\
===== Cysic node manager =====
1. Install and start a new node
2. Show all nodes
3. Update a node's reward address
4. View node logs
5. Stop and uninstall a node
6. Exit
=============================="""


def _row(values: list[str]) -> str:
    return " ".join(f"{value:<{width}}" for value, (_, width) in zip(values, TABLE_COLUMNS)).rstrip()


def render_table(nodes: list[NodeInstance]) -> str:
    """Render nodes as a fixed-width table, N/A where stats are unavailable."""
    header = _row([title for title, _ in TABLE_COLUMNS])
    rule = "-" * len(header)
    lines = [rule, header, rule]
    for index, node in enumerate(nodes, start=1):
        usage = node.usage
        lines.append(_row([
            str(index),
            node.name,
            node.address,
            usage.cpu_display if usage else PLACEHOLDER,
            usage.mem_used_display if usage else PLACEHOLDER,
            usage.mem_limit_display if usage else PLACEHOLDER,
            node.status.value,
        ]))
    if not nodes:
        lines.append("No nodes installed")
    lines.append(rule)
    return "\n".join(lines)


def describe_install(result: InstallResult) -> list[str]:
    lines = [f"Node {result.name} started with reward address {result.address}"]
    if result.replaced_address:
        lines.append(f"Warning: replaced node previously bound to {result.replaced_address}")
    lines.append(f"Data directory: {result.data_dir}")
    lines.append(f"Log directory: {result.log_dir}")
    return lines


def describe_update(result: UpdateResult) -> list[str]:
    lines = [f"Reward address of {result.name} updated to {result.address}"]
    lines.extend(f"Warning: {warning}" for warning in result.warnings)
    return lines


def describe_uninstall(result: UninstallResult) -> list[str]:
    lines = []
    if result.container_removed:
        lines.append(f"Removed container {result.name}")
    if result.data_removed:
        lines.append("Removed data directory")
    if result.logs_removed:
        lines.append("Removed log directory")
    lines.extend(f"Warning: {warning}" for warning in result.warnings)
    lines.extend(f"Error: {error}" for error in result.errors)
    if result.success:
        lines.append(f"Node {result.name} uninstalled")
    else:
        lines.append(f"Node {result.name} uninstalled with errors")
    return lines


def follow_logs(
    commands: LifecycleCommands,
    name: str,
    echo: Callable[[str], None],
    tail: int | str = "all",
) -> None:
    """Print the node's log until the operator presses Ctrl+C."""
    lines = commands.logs(name, tail=tail)
    echo(f"Following logs of {name}, press Ctrl+C to stop")
    try:
        for line in lines:
            echo(line)
    except KeyboardInterrupt:
        echo("")
    finally:
        close = getattr(lines, "close", None)
        if close is not None:
            close()


class OperatorShell:
    """Numbered menu driving the five workflows."""

    def __init__(
        self,
        commands: LifecycleCommands,
        prompt: Callable[..., str] = click.prompt,
        echo: Callable[[str], None] = click.echo,
    ):
        self.commands = commands
        self._prompt = prompt
        self._echo = echo
        self._actions: dict[str, Callable[[], None]] = {
            "1": self.install,
            "2": self.show,
            "3": self.update,
            "4": self.logs,
            "5": self.uninstall,
        }

    def ask(self, text: str) -> str:
        return self._prompt(text, default="", show_default=False).strip()

    def run(self) -> None:
        """Loop until the operator picks exit.

        Raises:
            FatalSetupError: if the container engine cannot be set up.
        """
        while True:
            self._echo(MENU)
            choice = self.ask("Choose an option (1-6)")
            if choice == "6":
                self._echo("Bye")
                return
            action = self._actions.get(choice)
            if action is None:
                self._echo("Invalid option")
                continue
            try:
                action()
            except FatalSetupError:
                raise
            except FleetError as e:
                self._echo(f"Error: {e.message}")
                for suggestion in e.suggestions:
                    self._echo(f"  - {suggestion}")

    def select_node(self) -> str:
        """List node containers and let the operator pick one by number.

        Raises:
            UserInputError: if there are no nodes or the choice is invalid.
        """
        names = self.commands.registry.names()
        if not names:
            raise UserInputError("There are no nodes")
        self._echo("Select a node:")
        for index, name in enumerate(names, start=1):
            self._echo(f"{index}. {name}")
        choice = self.ask(f"Enter a number (1-{len(names)})")
        if not choice.isdigit() or not 1 <= int(choice) <= len(names):
            raise UserInputError(f"Invalid selection: {choice!r}")
        return names[int(choice) - 1]

    def install(self) -> None:
        address = self.ask("Enter your reward address")
        if not address:
            raise UserInputError("Reward address must not be empty")
        self._echo("Building image and starting node...")
        for line in describe_install(self.commands.install(address)):
            self._echo(line)

    def show(self) -> None:
        self._echo(render_table(self.commands.list()))

    def update(self) -> None:
        name = self.select_node()
        address = self.ask("Enter the new reward address")
        for line in describe_update(self.commands.update(name, address)):
            self._echo(line)

    def logs(self) -> None:
        name = self.select_node()
        follow_logs(self.commands, name, self._echo)

    def uninstall(self) -> None:
        name = self.select_node()
        confirm = self.ask(f"Really uninstall node {name}? (y/N)")
        if confirm.lower() != "y":
            self._echo("Cancelled")
            return
        for line in describe_uninstall(self.commands.uninstall(name)):
            self._echo(line)
