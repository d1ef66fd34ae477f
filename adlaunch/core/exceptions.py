# adlaunch/core/exceptions.py
"""
Error taxonomy for campaign provisioning.

Every error carries the HTTP status the API layer answers with and whether a
failure of this kind may be re-attempted through ``retry_step``.
"""
from typing import Any, Dict, Optional


class OrchestrationError(Exception):
    """Base class for all provisioning errors"""

    status_code: int = 500
    retryable: bool = True

    def __init__(self, message: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details or {}

    @property
    def code(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        data = {"success": False, "error": self.code, "detail": self.message}
        if self.details:
            data["details"] = self.details
        return data


# ────────────────────────────────────────────
# Caller input problems
# ────────────────────────────────────────────

class ValidationError(OrchestrationError):
    status_code = 400
    retryable = False


class UnrecognizedLocation(ValidationError):
    def __init__(self, value: str):
        super().__init__(f"Unrecognized location: {value!r}", {"location": value})
        self.value = value


class NoValidLocations(ValidationError):
    pass


class InsufficientAdContent(ValidationError):
    pass


class MissingPixelConfiguration(ValidationError):
    pass


class MissingPageConfiguration(ValidationError):
    pass


class UnknownStep(ValidationError):
    pass


# ────────────────────────────────────────────
# Out-of-order or conflicting invocations
# ────────────────────────────────────────────

class PreconditionFailed(OrchestrationError):
    status_code = 409
    retryable = False


class StepInProgress(PreconditionFailed):
    pass


class ConcurrentModification(PreconditionFailed):
    pass


class AdAccountNotReady(PreconditionFailed):
    pass


class RecordNotFound(OrchestrationError):
    status_code = 404
    retryable = False


class RetryLimitExceeded(OrchestrationError):
    status_code = 429
    retryable = False


# ────────────────────────────────────────────
# External platform failures
# ────────────────────────────────────────────

class PlatformError(OrchestrationError):
    """Raised by platform clients; carries the platform's own error code"""

    status_code = 502

    def __init__(
        self,
        message: str = "",
        platform_code: Any = None,
        http_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.platform_code = platform_code
        self.http_status = http_status


class AuthError(PlatformError):
    status_code = 401
    retryable = False


class PlatformValidationError(PlatformError, ValidationError):
    status_code = 400
    retryable = False


class DuplicateNameError(PlatformError, ValidationError):
    status_code = 409
    retryable = False


class TransientPlatformError(PlatformError):
    status_code = 503
    retryable = True


class QuotaOrPermissionError(TransientPlatformError):
    pass


class TransientNetworkError(TransientPlatformError):
    pass
