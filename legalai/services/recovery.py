"""
Password recovery: request -> OTP issued -> OTP verified (reset token issued) -> completed.

Only digests of codes and tokens are stored. Issuing a code of either kind
invalidates every earlier unused code of that kind for the account, so at most
one OTP and one reset token are live per account at any time.
"""
from datetime import timedelta

from legalai.errors import InvalidOrExpired, NoActiveRequest, NotFound, UpstreamFailure, ValidationError
from legalai.services.credential_store import Account, CredentialStore, ResetToken, TokenKind
from legalai.services.notifier import Notifier
from legalai.utils.clock import Clock, utcnow
from legalai.utils.logger import logger
from legalai.utils.security import (
    digest_code, generate_otp, generate_reset_token, hash_password, mask_email, normalize_email,
)

MIN_NEW_PASSWORD_LENGTH = 8


class CredentialRecoveryService:
    def __init__(
        self,
        store: CredentialStore,
        notifier: Notifier,
        clock: Clock = utcnow,
        otp_ttl: timedelta = timedelta(minutes=10),
        reset_ttl: timedelta = timedelta(hours=1),
    ):
        self.store = store
        self.notifier = notifier
        self.clock = clock
        self.otp_ttl = otp_ttl
        self.reset_ttl = reset_ttl

    def _account(self, email: str) -> Account:
        account = self.store.find_by_email(normalize_email(email))
        if account is None:
            raise NotFound("User not found")
        return account

    def _issue(self, account: Account, kind: TokenKind, code: str, ttl: timedelta) -> ResetToken:
        invalidated = self.store.invalidate_tokens(account.id, kind)
        if invalidated:
            logger.info(f"Invalidated {invalidated} earlier {kind.value} token(s) for {mask_email(account.email)}")
        token = ResetToken(
            user_id=account.id,
            code_hash=digest_code(code),
            kind=kind,
            expires_at=self.clock() + ttl,
        )
        return self.store.insert_token(token)

    async def _issue_and_send_otp(self, account: Account):
        otp = generate_otp()
        self._issue(account, TokenKind.OTP, otp, self.otp_ttl)
        ttl_minutes = int(self.otp_ttl.total_seconds() // 60)
        delivered = await self.notifier.send(account.email, "otp", {"otp": otp, "ttl_minutes": ttl_minutes})
        if not delivered:
            raise UpstreamFailure("Could not send the verification code. Please try again.")
        logger.info(f"OTP issued for {mask_email(account.email)}")

    async def request_reset(self, email: str):
        """Starts a reset cycle for the account and emails it a fresh OTP."""
        account = self._account(email)
        await self._issue_and_send_otp(account)

    async def resend_otp(self, email: str):
        """Replaces the live OTP with a new one. Requires a live OTP to exist."""
        account = self._account(email)
        if self.store.find_active_token(account.id, TokenKind.OTP, self.clock()) is None:
            raise NoActiveRequest()
        await self._issue_and_send_otp(account)

    def verify_otp(self, email: str, code: str) -> str:
        """Consumes the OTP and returns a reset token for complete_reset()."""
        account = self._account(email)
        code = (code or "").strip()
        if not code:
            raise InvalidOrExpired("Invalid or expired OTP")

        token = self.store.find_token(account.id, TokenKind.OTP, digest_code(code))
        if token is None or not token.is_valid(self.clock()):
            logger.info(f"OTP verification failed for {mask_email(account.email)}")
            raise InvalidOrExpired("Invalid or expired OTP")

        self.store.mark_token_used(token.id)
        reset_token = generate_reset_token()
        self._issue(account, TokenKind.RESET, reset_token, self.reset_ttl)
        logger.info(f"OTP verified for {mask_email(account.email)}; reset token issued")
        return reset_token

    async def complete_reset(self, email: str, reset_token: str, new_password: str):
        """Sets the new password if the reset token is live and belongs to the account."""
        if not new_password or len(new_password) < MIN_NEW_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_NEW_PASSWORD_LENGTH} characters")

        account = self._account(email)
        reset_token = (reset_token or "").strip()
        token = self.store.find_token(account.id, TokenKind.RESET, digest_code(reset_token)) if reset_token else None
        if token is None or not token.is_valid(self.clock()):
            logger.info(f"Password reset rejected for {mask_email(account.email)}")
            raise InvalidOrExpired("Invalid or expired reset token")

        self.store.update_credential_hash(account.id, hash_password(new_password))
        self.store.mark_token_used(token.id)
        logger.info(f"Password reset completed for {mask_email(account.email)}")

        # The password is already changed; a failed notice must not undo that
        try:
            notified = await self.notifier.send(account.email, "password_changed", {"name": account.name})
        except Exception as e:
            logger.error(f"Password change notice raised: {str(e)}")
            notified = False
        if not notified:
            logger.warning(f"Password changed but confirmation email failed for {mask_email(account.email)}")
