"""Fleet configuration."""

from __future__ import annotations

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Fleet settings loaded from environment variables.

    A single instance is built at startup by load_settings() and passed
    into every component explicitly.
    """

    # Node naming
    base_name: str = "cysic-node"
    name_suffix_length: int = Field(default=6, gt=0)

    # Image
    image_name: str = "cysic-node:latest"
    base_image: str = "ubuntu:24.04"
    setup_script_url: str = (
        "https://github.com/cysic-labs/cysic-phase3/releases/download/v1.0.0/setup_linux.sh"
    )

    # Host-side state roots, one subdirectory per node
    data_root: Path = Path.home() / "cysic_data"
    log_root: Path = Path.home() / "cysic_logs"

    # Container-side layout
    container_data_path: str = "/cysic-data"
    container_log_path: str = "/var/log/cysic"
    address_env_var: str = "REWARD_ADDRESS"

    # Docker settings
    docker_base_url: str = ""  # Empty means docker.from_env()
    docker_client_timeout: int = 300  # Builds can be slow
    container_stop_timeout: int = 10

    # Install Docker through apt when it is missing
    auto_install_engine: bool = True

    # Logging configuration
    log_format: str = "text"  # "json" or "text"
    log_level: str = "INFO"

    class Config:
        env_prefix = "CYSIC_FLEET_"

    @property
    def name_prefix(self) -> str:
        """Prefix shared by every managed container name."""
        return f"{self.base_name}-"


def load_settings(**overrides) -> Settings:
    """Build the settings value from the environment plus explicit overrides."""
    return Settings(**overrides)
