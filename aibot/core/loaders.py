"""
aibot/core/loaders.py
Process-wide serialization loaders.

Encoders are registered once at startup and consulted by the JSON log
renderer and by health payloads for values the json module can't handle.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from threading import Lock
from typing import Any, Callable, Dict, Type
from uuid import UUID

import structlog

logger = structlog.get_logger(__name__)

_encoders: Dict[Type, Callable[[Any], Any]] = {}
_lock = Lock()
_registered = False


def register_encoder(type_: Type, encoder: Callable[[Any], Any]) -> None:
    """Register (or replace) the JSON encoder for a type."""
    with _lock:
        _encoders[type_] = encoder


def register_loaders() -> bool:
    """
    Register the default encoders.

    Safe to call more than once; only the first call registers anything.

    Returns:
        True if this call performed the registration
    """
    global _registered
    with _lock:
        if _registered:
            return False
        _encoders.update({
            datetime: lambda v: v.isoformat(),
            date: lambda v: v.isoformat(),
            Enum: lambda v: v.value,
            UUID: str,
            PurePath: str,
            Decimal: str,
            BaseException: lambda v: f"{type(v).__name__}: {v}",
            set: sorted,
            frozenset: sorted,
        })
        _registered = True

    logger.debug("serialization_loaders_registered", count=len(_encoders))
    return True


def loaders_registered() -> bool:
    return _registered


def json_default(value: Any) -> Any:
    """`default=` hook for json.dumps / structlog's JSONRenderer."""
    # datetime is a date subclass; walk the MRO so the most specific wins
    for klass in type(value).__mro__:
        encoder = _encoders.get(klass)
        if encoder is not None:
            return encoder(value)
    return repr(value)


def reset_loaders() -> None:
    """Clear all registrations (for testing only)."""
    global _registered
    with _lock:
        _encoders.clear()
        _registered = False


__all__ = [
    "register_loaders",
    "register_encoder",
    "loaders_registered",
    "json_default",
    "reset_loaders",
]
