"""
aibot/core/exceptions.py
Custom exceptions for the AI bot service
"""

from typing import Optional


class AIBotServiceException(Exception):
    """Base exception for all AI bot service errors"""

    def __init__(
        self,
        message: str,
        error_code: str = "UNKNOWN_ERROR",
        details: Optional[dict] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for logging/response"""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details
        }


# ============================================================================
# Configuration Exceptions
# ============================================================================

class ConfigurationError(AIBotServiceException):
    """Required process metadata or setting is missing"""

    def __init__(self, key: str, reason: str = "not configured"):
        super().__init__(
            message=f"Configuration '{key}' {reason}",
            error_code="CONFIGURATION_ERROR",
            details={"key": key, "reason": reason}
        )


# ============================================================================
# Lifecycle Exceptions
# ============================================================================

class AcquisitionError(AIBotServiceException):
    """A long-lived resource could not be acquired; fatal for startup"""

    def __init__(self, resource: str, reason: str):
        super().__init__(
            message=f"Failed to acquire '{resource}': {reason}",
            error_code="ACQUISITION_FAILED",
            details={"resource": resource, "reason": reason}
        )
        self.resource = resource


class ProvisioningError(AIBotServiceException):
    """One bootstrap provisioning attempt failed"""

    def __init__(self, reason: str, details: Optional[dict] = None):
        super().__init__(
            message=f"Provisioning failed: {reason}",
            error_code="PROVISIONING_FAILED",
            details=details
        )


class TeardownError(AIBotServiceException):
    """Releasing a resource failed; recorded, never re-raised by teardown"""

    def __init__(self, resource: str, reason: str):
        super().__init__(
            message=f"Failed to release '{resource}': {reason}",
            error_code="TEARDOWN_FAILED",
            details={"resource": resource, "reason": reason}
        )
        self.resource = resource


# ============================================================================
# Export
# ============================================================================

__all__ = [
    "AIBotServiceException",
    "ConfigurationError",
    "AcquisitionError",
    "ProvisioningError",
    "TeardownError",
]
