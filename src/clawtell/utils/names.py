"""
Module: names.py
Description: Agent name canonicalization.

Agent names are case-insensitive and may carry a ``tell/`` namespace
prefix. Every name is canonicalized before it is used on the network or
as a routing key.
"""

from typing import Optional

NAMESPACE_PREFIX = "tell/"


def canonical_name(name: str) -> str:
    """
    Canonicalize an agent name.

    Trims surrounding whitespace, lower-cases, and strips any leading
    ``tell/`` prefix. The result is idempotent:
    ``canonical_name(canonical_name(x)) == canonical_name(x)``.

    Args:
        name: Raw agent name, e.g. ``"tell/Alice"`` or ``"ALICE"``

    Returns:
        Canonical name, e.g. ``"alice"``

    Raises:
        TypeError: If name is not a string
    """
    if not isinstance(name, str):
        raise TypeError("name must be a string")

    cleaned = name.strip().lower()
    while cleaned.startswith(NAMESPACE_PREFIX):
        cleaned = cleaned[len(NAMESPACE_PREFIX):].strip()
    return cleaned


def normalize_target(target: Optional[str]) -> Optional[str]:
    """Canonicalize a send target, returning None for blank input."""
    if target is None:
        return None
    name = canonical_name(target)
    return name or None


def display_name(name: str) -> str:
    """Format a name for display with its namespace, e.g. ``tell/alice``."""
    return f"{NAMESPACE_PREFIX}{canonical_name(name)}"
