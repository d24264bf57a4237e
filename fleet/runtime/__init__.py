"""Container runtime clients."""

from fleet.runtime.base import (
    Mount,
    NodeActionResult,
    NodeStatus,
    ResourceUsage,
    RuntimeClient,
    format_bytes,
)
from fleet.runtime.image import ImageSpec

__all__ = [
    # Base classes and types
    "RuntimeClient",
    "Mount",
    "NodeActionResult",
    "NodeStatus",
    "ResourceUsage",
    "format_bytes",
    # Image
    "ImageSpec",
]
