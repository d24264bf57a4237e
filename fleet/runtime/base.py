"""Base runtime client interface for the container engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from fleet.runtime.image import ImageSpec


class NodeStatus(str, Enum):
    """Status of a node's container."""
    ABSENT = "absent"  # Data directory only, no container
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


_UNITS = ["B", "KiB", "MiB", "GiB", "TiB"]


def format_bytes(value: int) -> str:
    """Render a byte count the way ``docker stats`` does (e.g. 12.3MiB)."""
    size = float(value)
    for unit in _UNITS:
        if size < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(size)}B"
            return f"{size:.1f}{unit}"
        size /= 1024
    return f"{value}B"


@dataclass
class ResourceUsage:
    """One sample of a container's resource usage."""
    cpu_percent: float
    mem_used: int  # bytes
    mem_limit: int  # bytes

    @property
    def cpu_display(self) -> str:
        return f"{self.cpu_percent:.2f}%"

    @property
    def mem_used_display(self) -> str:
        return format_bytes(self.mem_used)

    @property
    def mem_limit_display(self) -> str:
        return format_bytes(self.mem_limit)


@dataclass
class Mount:
    """A host directory bound into the container."""
    source: Path
    target: str
    read_only: bool = False


@dataclass
class NodeActionResult:
    """Result of a stop/start/remove action."""
    success: bool
    node_name: str
    new_status: NodeStatus = NodeStatus.UNKNOWN
    error: str | None = None


class RuntimeClient(ABC):
    """Abstract container engine used by the lifecycle commands.

    stop/start/remove never raise for missing containers; they report
    the failure in the returned NodeActionResult instead.
    """

    @abstractmethod
    def build_image(self, spec: ImageSpec) -> str:
        """Build the worker image without cache.

        Returns:
            Image id

        Raises:
            ImageBuildError: if the build fails
        """
        ...

    @abstractmethod
    def run(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        mounts: list[Mount],
    ) -> str:
        """Replace any container called ``name`` with a new detached one.

        Returns:
            Container id
        """
        ...

    @abstractmethod
    def stop(self, name: str) -> NodeActionResult:
        ...

    @abstractmethod
    def start(self, name: str) -> NodeActionResult:
        ...

    @abstractmethod
    def remove(self, name: str) -> NodeActionResult:
        """Force-remove a container, stopping it first if needed."""
        ...

    @abstractmethod
    def list_by_prefix(self, prefix: str) -> list[str]:
        """Names of all containers (any status) starting with ``prefix``."""
        ...

    @abstractmethod
    def status(self, name: str) -> NodeStatus:
        """Container status, UNKNOWN if it cannot be inspected."""
        ...

    @abstractmethod
    def resource_usage(self, name: str) -> ResourceUsage | None:
        """Live stats, or None when not running or unavailable."""
        ...

    @abstractmethod
    def stream_logs(self, name: str, tail: int | str = "all") -> Iterator[str]:
        """Follow the container log line by line until the caller stops.

        ``tail`` limits the history printed before following: a line count
        or "all".

        Raises:
            NodeNotFoundError: if the container does not exist
        """
        ...
