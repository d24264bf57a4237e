"""Shared pytest fixtures for fleet tests."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator
from unittest.mock import MagicMock

import pytest

from fleet.commands import LifecycleCommands
from fleet.config import Settings
from fleet.errors import ImageBuildError, NodeNotFoundError
from fleet.runtime.base import (
    Mount,
    NodeActionResult,
    NodeStatus,
    ResourceUsage,
    RuntimeClient,
)
from fleet.runtime.image import ImageSpec
from fleet.state import NodeStateStore


@dataclass
class FakeContainer:
    name: str
    image: str
    env: dict[str, str]
    mounts: list[Mount]
    status: NodeStatus = NodeStatus.RUNNING
    log_lines: list[str] = field(default_factory=list)


class FakeRuntimeClient(RuntimeClient):
    """In-memory container engine for testing without Docker."""

    def __init__(self):
        self.containers: dict[str, FakeContainer] = {}
        self.builds: list[ImageSpec] = []
        self.calls: list[tuple[str, str]] = []
        self.fail_build = False
        self.stats_unavailable: set[str] = set()
        self._run_count = 0

    def build_image(self, spec: ImageSpec) -> str:
        self.calls.append(("build", spec.tag))
        if self.fail_build:
            raise ImageBuildError("Image build failed: apt-get returned 100")
        self.builds.append(spec)
        return f"sha256:{len(self.builds):04d}"

    def run(self, name, image, env, mounts) -> str:
        self.calls.append(("run", name))
        self.containers.pop(name, None)
        self._run_count += 1
        self.containers[name] = FakeContainer(name=name, image=image, env=dict(env), mounts=list(mounts))
        return f"container-{self._run_count}"

    def stop(self, name: str) -> NodeActionResult:
        self.calls.append(("stop", name))
        container = self.containers.get(name)
        if container is None:
            return NodeActionResult(False, name, NodeStatus.ABSENT, f"Container {name} not found")
        container.status = NodeStatus.STOPPED
        return NodeActionResult(True, name, NodeStatus.STOPPED)

    def start(self, name: str) -> NodeActionResult:
        self.calls.append(("start", name))
        container = self.containers.get(name)
        if container is None:
            return NodeActionResult(False, name, NodeStatus.ABSENT, f"Container {name} not found")
        container.status = NodeStatus.RUNNING
        return NodeActionResult(True, name, NodeStatus.RUNNING)

    def remove(self, name: str) -> NodeActionResult:
        self.calls.append(("remove", name))
        if self.containers.pop(name, None) is None:
            return NodeActionResult(False, name, NodeStatus.ABSENT, f"Container {name} not found")
        return NodeActionResult(True, name, NodeStatus.ABSENT)

    def list_by_prefix(self, prefix: str) -> list[str]:
        return [name for name in self.containers if name.startswith(prefix)]

    def status(self, name: str) -> NodeStatus:
        container = self.containers.get(name)
        return container.status if container else NodeStatus.UNKNOWN

    def resource_usage(self, name: str) -> ResourceUsage | None:
        container = self.containers.get(name)
        if container is None or container.status != NodeStatus.RUNNING or name in self.stats_unavailable:
            return None
        return ResourceUsage(cpu_percent=1.5, mem_used=64 * 1024 * 1024, mem_limit=2 * 1024 ** 3)

    def stream_logs(self, name: str, tail: int | str = "all") -> Iterator[str]:
        self.calls.append(("logs", name))
        container = self.containers.get(name)
        if container is None:
            raise NodeNotFoundError(name)
        if tail == "all":
            return iter(container.log_lines)
        return iter(container.log_lines[max(len(container.log_lines) - tail, 0):])


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings pointing the data and log roots into tmp_path."""
    return Settings(
        data_root=tmp_path / "data",
        log_root=tmp_path / "logs",
        auto_install_engine=False,
    )


@pytest.fixture
def state(settings) -> NodeStateStore:
    return NodeStateStore(settings.data_root, settings.log_root)


@pytest.fixture
def runtime() -> FakeRuntimeClient:
    return FakeRuntimeClient()


@pytest.fixture
def engine() -> MagicMock:
    return MagicMock()


@pytest.fixture
def commands(settings, engine, runtime, state) -> LifecycleCommands:
    return LifecycleCommands(settings=settings, engine=engine, runtime=runtime, state=state)
