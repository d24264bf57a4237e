"""Docker runtime client.

Drives the Docker engine through the Docker SDK and returns typed results
(NodeStatus, ResourceUsage, NodeActionResult) instead of formatted text.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Iterator

import docker
from docker.errors import BuildError, DockerException, NotFound

from fleet.errors import EngineError, ImageBuildError, NodeNotFoundError
from fleet.runtime.base import (
    Mount,
    NodeActionResult,
    NodeStatus,
    ResourceUsage,
    RuntimeClient,
)
from fleet.runtime.image import ENTRYPOINT_NAME, ImageSpec

if TYPE_CHECKING:
    from fleet.config import Settings


logger = logging.getLogger(__name__)

# Label keys for container metadata
LABEL_MANAGED = "cysic-fleet.managed"
LABEL_NODE_NAME = "cysic-fleet.node_name"


def map_container_status(docker_status: str) -> NodeStatus:
    """Map a Docker container status string to NodeStatus."""
    status = docker_status.lower()
    if status in ("running", "restarting"):
        return NodeStatus.RUNNING
    elif status == "created":
        return NodeStatus.CREATED
    elif status in ("exited", "dead", "paused"):
        return NodeStatus.STOPPED
    else:
        return NodeStatus.UNKNOWN


def usage_from_stats(stats: dict[str, Any]) -> ResourceUsage | None:
    """Compute CPU and memory figures from one ``stats(stream=False)`` sample.

    Mirrors the docker CLI: CPU percent from the cpu/precpu deltas scaled by
    online CPUs, memory used excluding page cache.
    """
    cpu_stats = stats.get("cpu_stats") or {}
    precpu_stats = stats.get("precpu_stats") or {}
    memory_stats = stats.get("memory_stats") or {}

    if "usage" not in memory_stats:
        return None

    cpu_delta = (cpu_stats.get("cpu_usage", {}).get("total_usage", 0)
                 - precpu_stats.get("cpu_usage", {}).get("total_usage", 0))
    system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get("system_cpu_usage", 0)
    online_cpus = cpu_stats.get("online_cpus") or len(
        cpu_stats.get("cpu_usage", {}).get("percpu_usage") or [None]
    )
    cpu_percent = (cpu_delta / system_delta) * online_cpus * 100.0 if system_delta > 0 else 0.0

    # cgroup v2 reports inactive_file, v1 reports cache
    mem_detail = memory_stats.get("stats") or {}
    cache = mem_detail.get("inactive_file", mem_detail.get("cache", 0))
    mem_used = max(memory_stats["usage"] - cache, 0)

    return ResourceUsage(
        cpu_percent=round(max(cpu_percent, 0.0), 2),
        mem_used=mem_used,
        mem_limit=memory_stats.get("limit", 0),
    )


class DockerRuntimeClient(RuntimeClient):
    """RuntimeClient backed by the Docker SDK."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._docker: docker.DockerClient | None = None

    @property
    def docker(self) -> docker.DockerClient:
        """Lazy-initialize Docker client with extended timeout for slow builds."""
        if self._docker is None:
            timeout = self._settings.docker_client_timeout
            if self._settings.docker_base_url:
                self._docker = docker.DockerClient(
                    base_url=self._settings.docker_base_url,
                    timeout=timeout,
                )
            else:
                self._docker = docker.from_env(timeout=timeout)
        return self._docker

    def build_image(self, spec: ImageSpec) -> str:
        with tempfile.TemporaryDirectory(prefix="cysic-fleet-build-") as workdir:
            context = Path(workdir)
            (context / "Dockerfile").write_text(spec.render_dockerfile(), encoding="utf-8")
            (context / ENTRYPOINT_NAME).write_text(spec.render_entrypoint(), encoding="utf-8")

            logger.info(f"Building image {spec.tag} from {spec.base_image}")
            try:
                image, build_logs = self.docker.images.build(
                    path=str(context),
                    tag=spec.tag,
                    nocache=True,
                    rm=True,
                    pull=True,
                )
            except BuildError as e:
                build_log = "".join(
                    chunk.get("stream", "") for chunk in (e.build_log or []) if isinstance(chunk, dict)
                )
                raise ImageBuildError(f"Image build failed: {e.msg}", build_log=build_log) from e
            except DockerException as e:
                raise ImageBuildError(f"Docker API error during build: {e}") from e

        for chunk in build_logs:
            line = chunk.get("stream", "").rstrip() if isinstance(chunk, dict) else ""
            if line:
                logger.debug(line)

        logger.info(f"Built image {spec.tag} ({image.short_id})")
        return image.id

    def run(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        mounts: list[Mount],
    ) -> str:
        try:
            self._remove_existing(name)
        except DockerException as e:
            raise EngineError(f"Cannot replace existing container {name}: {e}") from e

        volumes = {
            str(mount.source): {
                "bind": mount.target,
                "mode": "ro" if mount.read_only else "rw",
            }
            for mount in mounts
        }

        logger.info(f"Creating container {name} with image {image}", extra={"node": name})
        try:
            container = self.docker.containers.run(
                image,
                name=name,
                detach=True,
                environment=env,
                volumes=volumes,
                labels={LABEL_MANAGED: "true", LABEL_NODE_NAME: name},
            )
        except DockerException as e:
            raise EngineError(
                f"Failed to start container {name}: {e}",
                suggestions=["Check that the Docker daemon is running", "Re-run install"],
            ) from e
        logger.info(f"Started container {name} ({container.short_id})", extra={"node": name})
        return container.id

    def _remove_existing(self, name: str) -> None:
        try:
            existing = self.docker.containers.get(name)
        except NotFound:
            return
        logger.info(f"Removing existing container {name}", extra={"node": name})
        existing.remove(force=True)

    def stop(self, name: str) -> NodeActionResult:
        return self._node_action(
            name,
            "stop",
            lambda c: c.stop(timeout=self._settings.container_stop_timeout),
        )

    def start(self, name: str) -> NodeActionResult:
        return self._node_action(name, "start", lambda c: c.start())

    def _node_action(self, name: str, verb: str, action) -> NodeActionResult:
        try:
            container = self.docker.containers.get(name)
            action(container)
            container.reload()
            return NodeActionResult(
                success=True,
                node_name=name,
                new_status=map_container_status(container.status),
            )
        except NotFound:
            logger.warning(f"Cannot {verb} {name}: container not found", extra={"node": name})
            return NodeActionResult(
                success=False,
                node_name=name,
                new_status=NodeStatus.ABSENT,
                error=f"Container {name} not found",
            )
        except DockerException as e:
            logger.warning(f"Cannot {verb} {name}: {e}", extra={"node": name})
            return NodeActionResult(
                success=False,
                node_name=name,
                error=f"Docker API error: {e}",
            )

    def remove(self, name: str) -> NodeActionResult:
        try:
            container = self.docker.containers.get(name)
            container.remove(force=True, v=True)  # v=True removes anonymous volumes
            logger.info(f"Removed container {name}", extra={"node": name})
            return NodeActionResult(success=True, node_name=name, new_status=NodeStatus.ABSENT)
        except NotFound:
            logger.warning(f"Container {name} does not exist or was already removed", extra={"node": name})
            return NodeActionResult(
                success=False,
                node_name=name,
                new_status=NodeStatus.ABSENT,
                error=f"Container {name} not found",
            )
        except DockerException as e:
            logger.warning(f"Failed to remove {name}: {e}", extra={"node": name})
            return NodeActionResult(
                success=False,
                node_name=name,
                error=f"Docker API error: {e}",
            )

    def list_by_prefix(self, prefix: str) -> list[str]:
        # The name filter matches substrings, so check the prefix again here
        try:
            containers = self.docker.containers.list(all=True, filters={"name": prefix})
        except DockerException as e:
            raise EngineError(f"Cannot list containers: {e}") from e
        return [c.name for c in containers if c.name.startswith(prefix)]

    def status(self, name: str) -> NodeStatus:
        try:
            container = self.docker.containers.get(name)
        except DockerException as e:
            logger.debug(f"Cannot inspect {name}: {e}", extra={"node": name})
            return NodeStatus.UNKNOWN
        return map_container_status(container.status)

    def resource_usage(self, name: str) -> ResourceUsage | None:
        try:
            container = self.docker.containers.get(name)
            if container.status != "running":
                return None
            return usage_from_stats(container.stats(stream=False))
        except (DockerException, KeyError, TypeError, AttributeError) as e:
            logger.debug(f"Stats unavailable for {name}: {e}", extra={"node": name})
            return None

    def stream_logs(self, name: str, tail: int | str = "all") -> Iterator[str]:
        try:
            container = self.docker.containers.get(name)
            stream = container.logs(stream=True, follow=True, tail=tail)
        except NotFound:
            raise NodeNotFoundError(name, f"Container {name} not found") from None
        except DockerException as e:
            raise EngineError(f"Cannot read logs of {name}: {e}") from e
        return self._iter_lines(stream)

    @staticmethod
    def _iter_lines(stream) -> Iterator[str]:
        """Re-split raw log chunks into lines, holding only a partial line."""
        pending = b""
        try:
            for chunk in stream:
                pending += chunk
                *lines, pending = pending.split(b"\n")
                for line in lines:
                    yield line.decode("utf-8", errors="replace")
            if pending:
                yield pending.decode("utf-8", errors="replace")
        finally:
            close = getattr(stream, "close", None)
            if close is not None:
                close()
