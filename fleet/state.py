"""Host-side node state: data/log directories and marker files.

Layout per node:
    <data_root>/<name>/reward_address   single-line address
    <data_root>/<name>/initialized      presence-only marker
    <log_root>/<name>/                  written by the worker

The directories outlive the container and are the durable record of a
node's address. No locking is done; one operator owns the roots.
"""
from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from fleet.errors import NodeNotFoundError

logger = logging.getLogger(__name__)

ADDRESS_FILE = "reward_address"
INITIALIZED_MARKER = "initialized"

# The container runs as an arbitrary internal user
DIR_MODE = 0o777


@dataclass
class RemovalResult:
    """Outcome of removing a node's directories."""
    data_removed: bool = False
    logs_removed: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class NodeStateStore:
    """Owns the per-node directory pair under the data and log roots."""

    def __init__(self, data_root: Path, log_root: Path):
        self.data_root = Path(data_root).expanduser()
        self.log_root = Path(log_root).expanduser()

    def data_dir(self, name: str) -> Path:
        return self.data_root / name

    def log_dir(self, name: str) -> Path:
        return self.log_root / name

    def ensure(self, name: str) -> tuple[Path, Path]:
        """Create both directories if absent and make them world-writable."""
        dirs = (self.data_dir(name), self.log_dir(name))
        for path in dirs:
            path.mkdir(parents=True, exist_ok=True)
            # mkdir's mode is masked by umask
            os.chmod(path, DIR_MODE)
            logger.debug(f"Ensured directory {path}", extra={"node": name})
        return dirs

    def exists(self, name: str) -> bool:
        return self.data_dir(name).is_dir()

    def read_address(self, name: str) -> str:
        """Read the persisted address.

        Raises:
            NodeNotFoundError: if the address file is missing or empty.
        """
        path = self.data_dir(name) / ADDRESS_FILE
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            raise NodeNotFoundError(name, f"No persisted address for {name}") from None
        lines = content.strip().splitlines()
        if not lines:
            raise NodeNotFoundError(name, f"Persisted address for {name} is empty")
        return lines[0].strip()

    def write_address(self, name: str, address: str) -> None:
        """Overwrite the persisted address."""
        path = self.data_dir(name) / ADDRESS_FILE
        path.write_text(f"{address}\n", encoding="utf-8")
        logger.info(f"Wrote reward address for {name}", extra={"node": name})

    def clear_address(self, name: str) -> None:
        """Forget the persisted address; the container writes it again on start."""
        try:
            (self.data_dir(name) / ADDRESS_FILE).unlink()
        except FileNotFoundError:
            pass

    def is_initialized(self, name: str) -> bool:
        return (self.data_dir(name) / INITIALIZED_MARKER).exists()

    def clear_initialized(self, name: str) -> None:
        """Remove the initialized marker so the container provisions again on start."""
        marker = self.data_dir(name) / INITIALIZED_MARKER
        try:
            marker.unlink()
            logger.info(f"Cleared initialized marker for {name}", extra={"node": name})
        except FileNotFoundError:
            logger.debug(f"No initialized marker for {name}", extra={"node": name})

    def remove(self, name: str) -> RemovalResult:
        """Delete both directories. Missing directories are not errors."""
        result = RemovalResult()
        result.data_removed = self._remove_tree(self.data_dir(name), name, result)
        result.logs_removed = self._remove_tree(self.log_dir(name), name, result)
        return result

    def _remove_tree(self, path: Path, name: str, result: RemovalResult) -> bool:
        if not path.exists():
            logger.debug(f"Directory {path} already gone", extra={"node": name})
            return False
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Failed to remove {path}: {e}", extra={"node": name})
            result.errors.append(f"Failed to remove {path}: {e}")
            return False
        logger.info(f"Removed directory {path}", extra={"node": name})
        return True

    def list_names(self) -> list[str]:
        """Names of all nodes that have a data directory, sorted."""
        if not self.data_root.is_dir():
            return []
        return sorted(p.name for p in self.data_root.iterdir() if p.is_dir())
