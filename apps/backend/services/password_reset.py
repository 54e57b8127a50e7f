"""
Optima AI - Password Reset
==========================
Request token -> emailed link -> verify token -> update password.
"""

from typing import Optional

from exceptions import InvalidTokenError, UserNotFoundError
from logging_config import get_logger
from services.auth_tokens import TokenService
from services.document_service import DocumentService
from services.email_service import EmailService

logger = get_logger(__name__)


class PasswordResetService:
    """
    Orchestrates the reset flow over the user store, token signer and mailer.

    Example:
        ```python
        async with DocumentService() as documents:
            flow = PasswordResetService(documents)
            await flow.request_reset("someone@example.com")
        ```
    """

    def __init__(
        self,
        documents: DocumentService,
        tokens: Optional[TokenService] = None,
        mailer: Optional[EmailService] = None,
    ):
        self.documents = documents
        self.tokens = tokens or TokenService()
        self.mailer = mailer or EmailService()

    async def request_reset(self, email: str) -> None:
        """
        Issue a reset token for ``email`` and mail the link.

        Raises:
            UserNotFoundError: No account for this email
            EmailDeliveryError: The mail could not be sent
        """
        users = await self.documents.get_user(email)
        if not users:
            raise UserNotFoundError(email=email)

        user = users[0]
        token = self.tokens.create_reset_token(user.id)
        await self.mailer.send_reset_password_email(email, token)
        logger.info("Password reset requested", user_id=user.id)

    async def account_exists(self, email: str) -> bool:
        return bool(await self.documents.get_user(email))

    async def reset_with_token(self, token: str, new_password: str) -> str:
        """
        Verify ``token`` and set the new password.

        Returns:
            The id of the updated user

        Raises:
            InvalidTokenError: Token invalid or expired
            UserNotFoundError: Token refers to a deleted account
        """
        user_id = self.tokens.verify_reset_token(token)
        await self.documents.update_user_password(user_id, new_password)
        logger.info("Password reset completed", user_id=user_id)
        return user_id

    async def reset_for_email(self, email: str, code: str, new_password: str) -> str:
        """
        Reset using the emailed code, checking it was issued for ``email``.

        Raises:
            UserNotFoundError: No account for this email
            InvalidTokenError: Code invalid, expired, or issued for another account
        """
        users = await self.documents.get_user(email)
        if not users:
            raise UserNotFoundError(email=email)

        user = users[0]
        if self.tokens.verify_reset_token(code) != user.id:
            raise InvalidTokenError()

        await self.documents.update_user_password(user.id, new_password)
        logger.info("Password reset completed", user_id=user.id)
        return user.id
