"""Application error taxonomy.

Every error a route can surface is an AppError subclass carrying the HTTP
status and a stable error_code. server.py turns them into
{"detail": {"error_code", "message", "request_id"}} responses.
"""
from typing import Dict, List, Optional


class AppError(Exception):
    """Base class for errors with a defined HTTP mapping."""
    status_code = 500
    error_code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def public_detail(self) -> Dict:
        return {"error_code": self.error_code, "message": self.message}


class Unauthorized(AppError):
    status_code = 401
    error_code = "UNAUTHORIZED"
    default_message = "Not authenticated"


class Forbidden(AppError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Forbidden"


class NotFound(AppError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Not found"


class ValidationFailed(AppError):
    """Payload failed schema rules. Carries one entry per invalid field."""
    status_code = 422
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(self, field_errors: List[Dict[str, str]], message: Optional[str] = None):
        self.field_errors = field_errors
        super().__init__(message)

    @property
    def fields(self) -> List[str]:
        return [e["field"] for e in self.field_errors]

    def public_detail(self) -> Dict:
        detail = super().public_detail()
        detail["field_errors"] = self.field_errors
        return detail


class Conflict(AppError):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "Conflict"


class ExternalProviderError(AppError):
    """Identity or payment provider call failed. The provider detail is logged, never returned."""
    status_code = 500
    error_code = "EXTERNAL_PROVIDER_ERROR"
    default_message = "Upstream provider request failed"

    def __init__(self, provider: str, detail: Optional[str] = None):
        self.provider = provider
        self.detail = detail
        super().__init__()


class InternalError(AppError):
    pass


class WebhookSignatureError(AppError):
    status_code = 400
    error_code = "INVALID_SIGNATURE"
    default_message = "Invalid signature"


class WebhookPayloadError(AppError):
    status_code = 400
    error_code = "INVALID_PAYLOAD"
    default_message = "Invalid payload"
