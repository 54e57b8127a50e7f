"""
Optima AI - Custom Exceptions
=============================
Centralized exception hierarchy for structured error handling.
"""

from typing import Optional, Dict, Any


class OptimaBaseException(Exception):
    """Base exception for all Optima AI errors."""

    status_code: int = 500

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/API responses."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }
        if self.original_error:
            result["original_error"] = str(self.original_error)
        return result


# =============================================================================
# Request Errors
# =============================================================================

class ValidationError(OptimaBaseException):
    """Input validation failure."""

    status_code = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None
    ):
        context = {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = str(value)[:100]
        super().__init__(message, context)


class InvalidTokenError(OptimaBaseException):
    """JWT failed verification, expired, or carries a malformed payload."""

    status_code = 400

    def __init__(self, message: str = "Invalid or expired token", original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)


class UserNotFoundError(OptimaBaseException):
    """No account matches the given email or id."""

    status_code = 404

    def __init__(self, message: str = "User not found", email: Optional[str] = None):
        # Email is PII; only record whether one was given
        super().__init__(message, {"email_given": bool(email)})


class DocumentNotFoundError(OptimaBaseException):
    """No stored document has the given id."""

    status_code = 404

    def __init__(self, document_id: str):
        super().__init__("Document not found", {"document_id": document_id})


class ModelAccessError(OptimaBaseException):
    """Caller's user type is not entitled to the requested model."""

    status_code = 403

    def __init__(self, model_id: str, user_type: str):
        super().__init__(
            "You don't have access to this model",
            {"model_id": model_id, "user_type": user_type},
        )


class QuotaExceededError(OptimaBaseException):
    """Daily message quota exhausted."""

    status_code = 429

    def __init__(self, user_id: str, limit: int, retry_after: float):
        super().__init__(
            "You have exceeded your maximum number of messages for the day",
            {"user_id": user_id, "limit": limit, "retry_after": round(retry_after, 1)},
        )


# =============================================================================
# Model & Artifact Errors
# =============================================================================

class UnknownModelError(OptimaBaseException):
    """Model id is not present in the provider registry."""

    status_code = 400

    def __init__(self, model_id: str):
        super().__init__(f"Invalid model: {model_id}", {"model_id": model_id})


class ProviderError(OptimaBaseException):
    """Language-model provider failure (HTTP error, bad payload, missing key)."""

    status_code = 502

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        status: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if provider:
            context["provider"] = provider
        if model:
            context["model"] = model
        if status is not None:
            context["status"] = status
        super().__init__(message, context, original_error)


class ProviderBusyError(ProviderError):
    """Provider answered 429 or 503; safe to retry."""
    pass


class ImageGenerationError(OptimaBaseException):
    """Image provider failure."""

    status_code = 502

    def __init__(self, message: str, provider: Optional[str] = None, original_error: Optional[Exception] = None):
        context = {"provider": provider} if provider else {}
        super().__init__(message, context, original_error)


class DocumentHandlerNotFoundError(OptimaBaseException):
    """No document handler registered for an artifact kind."""

    status_code = 400

    def __init__(self, kind: str):
        super().__init__(f"No document handler found for kind: {kind}", {"kind": kind})


# =============================================================================
# Third-party Service Errors
# =============================================================================

class ExternalServiceError(OptimaBaseException):
    """Failure talking to Deepgram, VoiceRSS, anyapi.io or similar."""

    status_code = 502

    def __init__(
        self,
        message: str,
        service: Optional[str] = None,
        status: Optional[int] = None,
        original_error: Optional[Exception] = None
    ):
        context = {}
        if service:
            context["service"] = service
        if status is not None:
            context["status"] = status
        super().__init__(message, context, original_error)


class EmailDeliveryError(OptimaBaseException):
    """SMTP send failure."""

    status_code = 500

    def __init__(self, message: str = "Failed to send email", original_error: Optional[Exception] = None):
        super().__init__(message, original_error=original_error)
