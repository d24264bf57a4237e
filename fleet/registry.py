"""Reconciled view of the node fleet.

Joins the containers the engine knows about with the persisted state on the
host. Listing never fails because of one broken node: a missing address
file shows the "unknown" sentinel and unavailable stats show as None.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from fleet.errors import EngineError, NodeNotFoundError
from fleet.runtime.base import NodeStatus, ResourceUsage, RuntimeClient
from fleet.state import NodeStateStore

logger = logging.getLogger(__name__)

UNKNOWN_ADDRESS = "unknown"


@dataclass
class NodeInstance:
    """A node: container plus persisted identity, data and log state."""
    name: str
    address: str
    data_dir: Path
    log_dir: Path
    initialized: bool
    status: NodeStatus
    usage: ResourceUsage | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "name": self.name,
            "address": self.address,
            "data_dir": str(self.data_dir),
            "log_dir": str(self.log_dir),
            "initialized": self.initialized,
            "status": self.status.value,
            "cpu_percent": self.usage.cpu_percent if self.usage else None,
            "mem_used": self.usage.mem_used if self.usage else None,
            "mem_limit": self.usage.mem_limit if self.usage else None,
        }


class NodeRegistry:
    """Enumerates node instances by name prefix."""

    def __init__(self, runtime: RuntimeClient, state: NodeStateStore, prefix: str):
        self._runtime = runtime
        self._state = state
        self._prefix = prefix

    def names(self) -> list[str]:
        """Container names in engine enumeration order."""
        return self._runtime.list_by_prefix(self._prefix)

    def list(self) -> list[NodeInstance]:
        """All nodes: containers first in engine order, then orphaned state dirs.

        Nodes whose container is gone but whose data directory remains are
        reported with status ABSENT. When the engine cannot list containers
        the persisted nodes are still returned, with status UNKNOWN.
        """
        orphan_status = NodeStatus.ABSENT
        try:
            container_names = self.names()
        except EngineError as e:
            logger.warning(f"Listing persisted nodes only: {e.message}")
            container_names = []
            orphan_status = NodeStatus.UNKNOWN

        seen = set(container_names)
        orphaned = [
            name for name in self._state.list_names()
            if name.startswith(self._prefix) and name not in seen
        ]

        nodes = [self._instance(name) for name in container_names]
        nodes.extend(self._instance(name, status=orphan_status) for name in orphaned)
        return nodes

    def get(self, name: str) -> NodeInstance:
        return self._instance(name)

    def _instance(self, name: str, status: NodeStatus | None = None) -> NodeInstance:
        try:
            address = self._state.read_address(name)
        except NodeNotFoundError:
            logger.debug(f"No persisted address for {name}", extra={"node": name})
            address = UNKNOWN_ADDRESS

        if status is None:
            status = self._runtime.status(name)

        usage = None
        if status == NodeStatus.RUNNING:
            usage = self._runtime.resource_usage(name)

        return NodeInstance(
            name=name,
            address=address,
            data_dir=self._state.data_dir(name),
            log_dir=self._state.log_dir(name),
            initialized=self._state.is_initialized(name),
            status=status,
            usage=usage,
        )
