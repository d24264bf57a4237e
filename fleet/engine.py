"""Ensure the Docker engine is available before installing a node.

When the ``docker`` binary is missing and auto-install is enabled, Docker CE
is installed from the upstream apt repository (Ubuntu hosts only).
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from typing import TYPE_CHECKING

from docker.errors import DockerException

from fleet.errors import FatalSetupError

if TYPE_CHECKING:
    from fleet.runtime.docker import DockerRuntimeClient


logger = logging.getLogger(__name__)

INSTALL_TIMEOUT = 1800  # seconds, per step

INSTALL_STEPS: list[list[str]] = [
    ["apt-get", "update"],
    ["apt-get", "install", "-y", "ca-certificates", "curl"],
    ["install", "-m", "0755", "-d", "/etc/apt/keyrings"],
    [
        "curl", "-fsSL", "https://download.docker.com/linux/ubuntu/gpg",
        "-o", "/etc/apt/keyrings/docker.asc",
    ],
    [
        "sh", "-c",
        'echo "deb [arch=$(dpkg --print-architecture) signed-by=/etc/apt/keyrings/docker.asc] '
        'https://download.docker.com/linux/ubuntu $(. /etc/os-release && echo $VERSION_CODENAME) stable" '
        "> /etc/apt/sources.list.d/docker.list",
    ],
    ["apt-get", "update"],
    ["apt-get", "install", "-y", "docker-ce", "docker-ce-cli", "containerd.io"],
    ["systemctl", "enable", "--now", "docker"],
]


class EngineInstaller:
    """Checks for the Docker engine and installs it when allowed."""

    def __init__(self, runtime: DockerRuntimeClient, auto_install: bool = True):
        self._runtime = runtime
        self._auto_install = auto_install

    def is_installed(self) -> bool:
        return shutil.which("docker") is not None

    def ensure(self) -> None:
        """Make sure the engine is installed and answering.

        Raises:
            FatalSetupError: if the engine is missing and cannot be installed,
                or the daemon does not respond.
        """
        if not self.is_installed():
            if not self._auto_install:
                raise FatalSetupError(
                    "Docker is not installed",
                    suggestions=["Install Docker or set CYSIC_FLEET_AUTO_INSTALL_ENGINE=true"],
                )
            logger.warning("Docker not found, installing Docker CE")
            self.install()

        try:
            self._runtime.docker.ping()
        except DockerException as e:
            raise FatalSetupError(
                f"Docker daemon is not reachable: {e}",
                suggestions=["Check that the docker service is running and you can access its socket"],
            ) from e

    def install(self) -> None:
        for step in INSTALL_STEPS:
            logger.info(f"Running: {' '.join(step)}")
            try:
                result = subprocess.run(
                    step,
                    capture_output=True,
                    text=True,
                    timeout=INSTALL_TIMEOUT,
                )
            except (OSError, subprocess.TimeoutExpired) as e:
                raise FatalSetupError(f"Docker installation failed: {e}") from e
            if result.returncode != 0:
                raise FatalSetupError(
                    f"Docker installation step failed ({result.returncode}): {' '.join(step)}\n"
                    f"{result.stderr.strip()}",
                    suggestions=["Install Docker manually and retry"],
                )
        logger.info("Docker installed")
