"""
Password Reset Router
=====================
Forgot-password flow for accounts.

Endpoints:
- POST /api/forgot-password         - Email a reset link
- PUT  /api/forgot-password         - Set a new password with the link's token
- POST /api/forgot-password/verify  - Acknowledge an email (never reveals accounts)
- POST /api/forgot-password/reset   - Set a new password with email + code
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_documents, get_email_service, get_token_service
from exceptions import OptimaBaseException
from logging_config import get_logger
from schemas import (
    ForgotPasswordRequest,
    MessageResponse,
    ResetPasswordRequest,
    ResetWithCodeRequest,
    SuccessResponse,
    VerifyEmailRequest,
)
from services.auth_tokens import TokenService
from services.document_service import DocumentService
from services.email_service import EmailService
from services.password_reset import PasswordResetService

logger = get_logger(__name__)

router = APIRouter()


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _reset_service(
    documents: DocumentService = Depends(get_documents),
    tokens: TokenService = Depends(get_token_service),
    mailer: EmailService = Depends(get_email_service),
) -> PasswordResetService:
    return PasswordResetService(documents, tokens=tokens, mailer=mailer)


@router.post("", response_model=MessageResponse)
async def request_password_reset(
    request: ForgotPasswordRequest,
    flow: PasswordResetService = Depends(_reset_service),
):
    """Issue a one-hour reset token and email the reset link."""
    if not request.email:
        return _error("Email is required", 400)

    try:
        await flow.request_reset(request.email)
    except OptimaBaseException as e:
        if e.status_code == 404:
            return _error(e.message, 404)
        logger.error("Error in forgot password route", error=e.message)
        return _error("Internal server error", 500)

    return MessageResponse(message="Password reset email sent")


@router.put("", response_model=MessageResponse)
async def reset_password(
    request: ResetPasswordRequest,
    flow: PasswordResetService = Depends(_reset_service),
):
    """Verify the reset token and store the new password."""
    if not request.token or not request.newPassword:
        return _error("Token and new password are required", 400)

    try:
        await flow.reset_with_token(request.token, request.newPassword)
    except OptimaBaseException as e:
        if e.status_code in (400, 404):
            return _error(e.message, e.status_code)
        logger.error("Error updating password", error=e.message)
        return _error("Internal server error", 500)

    return MessageResponse(message="Password updated successfully")


@router.api_route("", methods=["GET", "PATCH", "DELETE"], include_in_schema=False)
async def forgot_password_method_not_allowed():
    return _error("Method not allowed", 405)


@router.post("/verify", response_model=SuccessResponse)
async def verify_email(
    request: VerifyEmailRequest,
    flow: PasswordResetService = Depends(_reset_service),
):
    """
    Acknowledge a reset email address.

    The answer is the same whether or not an account exists.
    """
    try:
        if request.email:
            exists = await flow.account_exists(request.email)
            logger.debug("Reset email verified", account_found=exists)
    except Exception as e:
        logger.error("Email verification failed", error=str(e))
        return _error("Internal server error", 500)

    return SuccessResponse()


@router.post("/reset", response_model=SuccessResponse)
async def reset_with_code(
    request: ResetWithCodeRequest,
    flow: PasswordResetService = Depends(_reset_service),
):
    """Set a new password for ``email`` given the emailed code."""
    if not request.email or not request.code or not request.newPassword:
        return _error("Missing required fields", 400)

    try:
        await flow.reset_for_email(request.email, request.code, request.newPassword)
    except OptimaBaseException as e:
        if e.status_code in (400, 404):
            return _error(e.message, e.status_code)
        logger.error("Password reset error", error=e.message)
        return _error("Internal server error", 500)

    return SuccessResponse()
