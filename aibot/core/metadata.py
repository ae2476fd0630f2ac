"""
aibot/core/metadata.py
Process-wide platform metadata.

The lifecycle driver applies the static settings here once on startup;
collaborators (account provisioning, controller) read what they need instead
of holding on to the whole settings object.
"""

from enum import Enum
from threading import RLock
from typing import Any, Dict, Optional

import structlog

from .config import Settings
from .exceptions import ConfigurationError

logger = structlog.get_logger(__name__)


class Metadata(str, Enum):
    """Known metadata keys."""
    SERVER_SECRET = "server.secret"
    SUPPORT_WORKSPACE_ID = "aibot.support_workspace_id"
    USER_AGENT = "client.user_agent"
    ACCOUNTS_ENDPOINT = "client.accounts_endpoint"


_values: Dict[Metadata, Any] = {}
_lock = RLock()


def set_metadata(key: Metadata, value: Any) -> None:
    with _lock:
        _values[key] = value


def get_metadata(key: Metadata, default: Optional[Any] = None) -> Any:
    """
    Read a metadata value.

    Raises:
        ConfigurationError: if the key was never set and no default is given
    """
    with _lock:
        if key in _values:
            return _values[key]
    if default is not None:
        return default
    raise ConfigurationError(key.value)


def apply_settings(settings: Settings) -> None:
    """Publish the static settings record to downstream collaborators."""
    set_metadata(Metadata.SERVER_SECRET, settings.SERVER_SECRET)
    set_metadata(Metadata.SUPPORT_WORKSPACE_ID, settings.SUPPORT_WORKSPACE)
    set_metadata(Metadata.USER_AGENT, settings.SERVICE_ID)
    set_metadata(Metadata.ACCOUNTS_ENDPOINT, settings.ACCOUNTS_URL)

    logger.debug(
        "metadata_applied",
        keys=[key.value for key in Metadata],
        accounts_endpoint=settings.ACCOUNTS_URL,
    )


def clear_metadata() -> None:
    """Clear all metadata (for testing only)."""
    with _lock:
        _values.clear()


__all__ = ["Metadata", "set_metadata", "get_metadata", "apply_settings", "clear_metadata"]
