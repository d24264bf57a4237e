"""Declarative description of the verifier worker image.

The image is rendered into a throwaway build context: a Dockerfile plus an
entrypoint script that provisions the node on first start.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from textwrap import dedent
from typing import TYPE_CHECKING

from fleet.state import ADDRESS_FILE, INITIALIZED_MARKER

if TYPE_CHECKING:
    from fleet.config import Settings


ENTRYPOINT_NAME = "entrypoint.sh"
DATA_DIR_ENV = "DATA_DIR"
LOG_DIR_ENV = "LOG_DIR"


@dataclass
class ImageSpec:
    """What goes into the worker image."""
    tag: str
    base_image: str = "ubuntu:24.04"
    packages: list[str] = field(default_factory=lambda: ["curl", "bash", "ca-certificates"])
    data_path: str = "/cysic-data"
    log_path: str = "/var/log/cysic"
    address_env: str = "REWARD_ADDRESS"
    setup_script_url: str = ""
    env: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> ImageSpec:
        return cls(
            tag=settings.image_name,
            base_image=settings.base_image,
            data_path=settings.container_data_path,
            log_path=settings.container_log_path,
            address_env=settings.address_env_var,
            setup_script_url=settings.setup_script_url,
        )

    @property
    def environment(self) -> dict[str, str]:
        """Image environment defaults; explicit ``env`` entries win."""
        env = {
            "DEBIAN_FRONTEND": "noninteractive",
            self.address_env: "",
            DATA_DIR_ENV: self.data_path,
            LOG_DIR_ENV: self.log_path,
        }
        env.update(self.env)
        return env

    def render_dockerfile(self) -> str:
        env_lines = "\n".join(f'ENV {key}="{value}"' for key, value in self.environment.items())
        packages = " ".join(self.packages)
        return (
            f"FROM {self.base_image}\n"
            f"\n"
            f"{env_lines}\n"
            f"\n"
            f"RUN apt-get update && apt-get install -y {packages} \\\n"
            f"    && rm -rf /var/lib/apt/lists/*\n"
            f"\n"
            f"RUN mkdir -p ${DATA_DIR_ENV} ${LOG_DIR_ENV}\n"
            f"\n"
            f"COPY {ENTRYPOINT_NAME} /{ENTRYPOINT_NAME}\n"
            f"RUN chmod +x /{ENTRYPOINT_NAME}\n"
            f"\n"
            f'ENTRYPOINT ["/{ENTRYPOINT_NAME}"]\n'
        )

    def render_entrypoint(self) -> str:
        # The persisted address file wins over the environment so that an
        # address update takes effect on a plain restart.
        script = dedent(
            """\
            #!/bin/bash
            set -e

            ADDRESS_FILE="$DATA_DIR/{address_file}"
            if [ -s "$ADDRESS_FILE" ]; then
                {address_env}=$(head -n 1 "$ADDRESS_FILE")
            elif [ -n "${address_env}" ]; then
                echo "${address_env}" > "$ADDRESS_FILE"
            fi

            if [ -z "${address_env}" ]; then
                echo "error: {address_env} is not set" >&2
                exit 1
            fi

            echo "Using reward address: ${address_env}"

            if [ ! -f "$DATA_DIR/{marker}" ]; then
                echo "First run, provisioning node..."
                curl -fL {url} -o "$DATA_DIR/setup_linux.sh"
                chmod +x "$DATA_DIR/setup_linux.sh"
                "$DATA_DIR/setup_linux.sh" "${address_env}"
                touch "$DATA_DIR/{marker}"
                echo "Provisioning complete"
            fi

            echo "Starting verifier..."
            cd "$DATA_DIR/cysic-verifier"
            bash start.sh 2>&1 | tee -a "$LOG_DIR/verifier.log"

            # Keep the container alive if the verifier exits
            tail -f /dev/null
            """
        )
        return script.format(
            address_file=ADDRESS_FILE,
            address_env=self.address_env,
            marker=INITIALIZED_MARKER,
            url=self.setup_script_url,
        )
