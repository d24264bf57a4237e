"""Derive node names from reward addresses.

Format: {base}-{last N address characters}, e.g. cysic-node-123456.
The name doubles as the container name and the host directory key, so it
must stay a pure function of the address.
"""

from __future__ import annotations

import re

DEFAULT_SUFFIX_LENGTH = 6

# Characters Docker accepts in container names (minus '.')
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def strip_hex_prefix(address: str) -> str:
    """Remove surrounding whitespace and a leading 0x/0X."""
    address = address.strip()
    if address[:2].lower() == "0x":
        return address[2:]
    return address


def same_address(a: str, b: str) -> bool:
    """Whether two spellings denote the same address (0x prefix and hex case ignored)."""
    return strip_hex_prefix(a).lower() == strip_hex_prefix(b).lower()


def name_prefix(base: str) -> str:
    """Prefix shared by every node name derived from ``base``."""
    return f"{base}-"


def resolve(address: str, base: str, suffix_length: int = DEFAULT_SUFFIX_LENGTH) -> str:
    """Resolve a reward address to its node name.

    Addresses sharing the same trailing characters resolve to the same
    name; install detects and reports that case.

    Raises:
        ValueError: if the address has no usable characters or the suffix
            length is not positive.
    """
    if suffix_length <= 0:
        raise ValueError(f"Suffix length must be positive, got {suffix_length}")
    safe = _UNSAFE_CHARS.sub("", strip_hex_prefix(address))
    if not safe:
        raise ValueError(f"Cannot derive a node name from address {address!r}")
    return f"{name_prefix(base)}{safe[-suffix_length:]}"
