"""Operator workflows: install, list, update, logs, uninstall.

Each workflow is a short sequence of individually idempotent steps; when
one is interrupted the operator re-runs it. Results are plain dataclasses
so the shell can render them and tests can assert on them without a
terminal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Iterator, Protocol

from fleet import identity
from fleet.errors import NodeNotFoundError, UserInputError
from fleet.registry import NodeInstance, NodeRegistry
from fleet.runtime.base import Mount, NodeStatus, RuntimeClient
from fleet.runtime.image import DATA_DIR_ENV, ImageSpec
from fleet.state import NodeStateStore

if TYPE_CHECKING:
    from fleet.config import Settings


logger = logging.getLogger(__name__)


class Engine(Protocol):
    def ensure(self) -> None: ...


@dataclass
class InstallResult:
    name: str
    address: str
    container_id: str
    data_dir: Path
    log_dir: Path
    # Address previously persisted under the same name, if it differed
    replaced_address: str | None = None


@dataclass
class UpdateResult:
    name: str
    address: str
    previous_address: str | None = None
    warnings: list[str] = field(default_factory=list)


@dataclass
class UninstallResult:
    name: str
    container_removed: bool = False
    data_removed: bool = False
    logs_removed: bool = False
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


def _require_address(address: str | None) -> str:
    address = (address or "").strip()
    if not address:
        raise UserInputError("Reward address must not be empty")
    return address


class LifecycleCommands:
    """The five operator workflows, composed from the fleet components."""

    def __init__(
        self,
        settings: Settings,
        engine: Engine,
        runtime: RuntimeClient,
        state: NodeStateStore,
        registry: NodeRegistry | None = None,
    ):
        self.settings = settings
        self.engine = engine
        self.runtime = runtime
        self.state = state
        self.registry = registry or NodeRegistry(runtime, state, settings.name_prefix)

    def resolve_name(self, address: str) -> str:
        try:
            return identity.resolve(
                address,
                self.settings.base_name,
                self.settings.name_suffix_length,
            )
        except ValueError as e:
            raise UserInputError(str(e)) from e

    def install(self, address: str) -> InstallResult:
        """Build the image and (re)create the node for ``address``.

        Re-installing the same address replaces the container and keeps
        the node's directories.
        """
        address = _require_address(address)
        name = self.resolve_name(address)

        self.engine.ensure()

        spec = ImageSpec.from_settings(self.settings)
        image = self.runtime.build_image(spec)

        replaced = self._previous_address(name)
        if replaced is not None and identity.same_address(replaced, address):
            replaced = None
        if replaced is not None:
            logger.warning(
                f"Address {address} resolves to existing node {name} "
                f"which belongs to {replaced}; the node will be replaced",
                extra={"node": name},
            )

        data_dir, log_dir = self.state.ensure(name)
        if replaced is not None:
            # The container prefers a persisted address over its environment
            self.state.clear_address(name)
            self.state.clear_initialized(name)
        container_id = self.runtime.run(
            name,
            image,
            env={
                self.settings.address_env_var: address,
                DATA_DIR_ENV: self.settings.container_data_path,
            },
            mounts=[
                Mount(source=data_dir, target=self.settings.container_data_path),
                Mount(source=log_dir, target=self.settings.container_log_path),
            ],
        )
        logger.info(f"Installed node {name} for {address}", extra={"node": name})

        return InstallResult(
            name=name,
            address=address,
            container_id=container_id,
            data_dir=data_dir,
            log_dir=log_dir,
            replaced_address=replaced,
        )

    def _previous_address(self, name: str) -> str | None:
        try:
            return self.state.read_address(name)
        except NodeNotFoundError:
            return None

    def list(self) -> list[NodeInstance]:
        return self.registry.list()

    def update(self, name: str, new_address: str) -> UpdateResult:
        """Point an existing node at a new address and force re-provisioning.

        Raises:
            NodeNotFoundError: if the node has no data directory.
        """
        new_address = _require_address(new_address)
        if not self.state.exists(name):
            raise NodeNotFoundError(name, f"Data directory for {name} not found")

        result = UpdateResult(
            name=name,
            address=new_address,
            previous_address=self._previous_address(name),
        )

        stopped = self.runtime.stop(name)
        if not stopped.success:
            result.warnings.append(f"stop: {stopped.error}")

        self.state.write_address(name, new_address)
        self.state.clear_initialized(name)

        started = self.runtime.start(name)
        if not started.success:
            result.warnings.append(f"start: {started.error}")

        logger.info(f"Updated reward address of {name} to {new_address}", extra={"node": name})
        return result

    def logs(self, name: str, tail: int | str = "all") -> Iterator[str]:
        """Follow the node's log. Iterate in the foreground, stop with Ctrl+C.

        ``tail`` is the number of past lines to show first, or "all".

        Raises:
            NodeNotFoundError: if no container of that name exists.
        """
        if name not in self.registry.names():
            raise NodeNotFoundError(name, f"Container {name} does not exist")
        return self.runtime.stream_logs(name, tail=tail)

    def uninstall(self, name: str) -> UninstallResult:
        """Remove the container and both directories.

        Both steps always run; a container or directory that is already
        gone counts as removed.
        """
        result = UninstallResult(name=name)

        removed = self.runtime.remove(name)
        if removed.success:
            result.container_removed = True
        elif removed.new_status == NodeStatus.ABSENT:
            result.warnings.append(f"container: {removed.error}")
        else:
            result.errors.append(f"container: {removed.error}")

        removal = self.state.remove(name)
        result.data_removed = removal.data_removed
        result.logs_removed = removal.logs_removed
        result.errors.extend(removal.errors)

        if result.success:
            logger.info(f"Uninstalled node {name}", extra={"node": name})
        else:
            logger.warning(f"Uninstall of {name} finished with errors", extra={"node": name})
        return result
