"""
Adaptive Learning Engine - Error Kinds
Exception hierarchy shared by services, repositories and the API layer
"""
from typing import Optional


class EngineError(Exception):
    """Base exception for all engine errors."""

    status_code: int = 500
    code: str = "engine_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(EngineError):
    """Referenced entity does not exist."""
    status_code = 404
    code = "not_found"


class ValidationError(EngineError):
    """Input violates a documented constraint."""
    status_code = 422
    code = "validation_error"


class PermissionDeniedError(EngineError):
    """Actor lacks the capability for the operation."""
    status_code = 403
    code = "permission_denied"


class ConfigurationError(EngineError):
    """Engine data is misconfigured (cyclic graph, missing question bank...)."""
    status_code = 409
    code = "configuration_error"


class ResourceExhaustedError(EngineError):
    """A bounded computation exceeded its budget."""
    status_code = 422
    code = "resource_exhausted"


class ExternalServiceError(EngineError):
    """An external (AI) service failed."""
    status_code = 502
    code = "external_service_error"


class RateLimitedError(ExternalServiceError):
    """External service or local limiter refused the call; retry later."""
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ServiceUnavailableError(ExternalServiceError):
    """External service unreachable or rejected our credentials."""
    status_code = 503
    code = "service_unavailable"
