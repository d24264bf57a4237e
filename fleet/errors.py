"""Error types for the fleet lifecycle commands.

Every error raised towards the operator derives from FleetError and carries
an ErrorCategory, so the shell can decide whether to abort the whole run,
re-prompt, or just report the failed operation.
"""
from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Categories of errors for structured error handling."""
    # Setup errors
    FATAL_SETUP = "fatal_setup"  # Engine missing and could not be installed
    IMAGE_BUILD = "image_build"  # Image build failed

    # Operator errors
    USER_INPUT = "user_input"  # Empty address, bad selection

    # Resource errors
    NOT_FOUND = "not_found"  # Node data dir or container absent

    # Runtime errors
    ENGINE = "engine"  # Docker daemon rejected or failed a request


class FleetError(Exception):
    """Base class for all fleet errors."""

    category: ErrorCategory = ErrorCategory.FATAL_SETUP

    def __init__(self, message: str, *, suggestions: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.suggestions = suggestions or []

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON output."""
        return {
            "category": self.category.value,
            "message": self.message,
            "suggestions": self.suggestions,
        }


class FatalSetupError(FleetError):
    """The container engine is unusable; the whole run must stop."""

    category = ErrorCategory.FATAL_SETUP


class ImageBuildError(FleetError):
    """Building the worker image failed."""

    category = ErrorCategory.IMAGE_BUILD

    def __init__(self, message: str, *, build_log: str = ""):
        super().__init__(message)
        self.build_log = build_log


class UserInputError(FleetError):
    """Operator input was rejected; the workflow can be re-prompted."""

    category = ErrorCategory.USER_INPUT


class NodeNotFoundError(FleetError):
    """The target node has no data directory or no container."""

    category = ErrorCategory.NOT_FOUND

    def __init__(self, name: str, message: str | None = None):
        super().__init__(message or f"Node {name} not found")
        self.name = name


class EngineError(FleetError):
    """A Docker request failed; the current operation is aborted."""

    category = ErrorCategory.ENGINE
