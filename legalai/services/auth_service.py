import re
import secrets
from typing import Optional, Tuple

import httpx

from legalai.config import settings
from legalai.errors import Unauthorized, UpstreamFailure, ValidationError
from legalai.services.credential_store import Account, CredentialStore
from legalai.utils.clock import Clock, utcnow
from legalai.utils.logger import logger
from legalai.utils.security import (
    create_access_token, hash_password, mask_email, normalize_email, sanitize_text, verify_password,
)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)")


class AuthService:
    """Registration, password login and Google login. All paths end in a signed access token."""

    def __init__(
        self,
        store: CredentialStore,
        secret: str = settings.JWT_SECRET,
        algorithm: str = settings.JWT_ALGORITHM,
        expires_minutes: int = settings.JWT_EXPIRE_MINUTES,
        google_userinfo_url: str = settings.GOOGLE_USERINFO_URL,
        clock: Clock = utcnow,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.store = store
        self.secret = secret
        self.algorithm = algorithm
        self.expires_minutes = expires_minutes
        self.google_userinfo_url = google_userinfo_url
        self.clock = clock
        self.http_client = http_client

    def issue_token(self, account: Account) -> str:
        return create_access_token(account.id, self.secret, self.algorithm, self.expires_minutes, now=self.clock())

    def register(self, name: str, email: str, password: str) -> Account:
        name = sanitize_text(name, max_length=50)
        email = normalize_email(email)

        if len(name) < 2:
            raise ValidationError("Name must be at least 2 characters")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Invalid email address")
        if not password or len(password) < 6:
            raise ValidationError("Password must be at least 6 characters")
        if not PASSWORD_PATTERN.match(password):
            raise ValidationError("Password must contain at least one letter and one number")

        account = self.store.create_account(name, email, hash_password(password))
        logger.info(f"Registered {mask_email(email)}")
        return account

    def login(self, email: str, password: str) -> Tuple[str, Account]:
        account = self.store.find_by_email(normalize_email(email))
        if account is None:
            raise ValidationError("User not found")
        if not verify_password(password or "", account.password_hash):
            logger.info(f"Failed login for {mask_email(account.email)}")
            raise ValidationError("Invalid credentials")
        return self.issue_token(account), account

    async def _fetch_google_profile(self, access_token: str) -> dict:
        headers = {"Authorization": f"Bearer {access_token}"}
        try:
            if self.http_client is not None:
                response = await self.http_client.get(self.google_userinfo_url, headers=headers, timeout=10.0)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(self.google_userinfo_url, headers=headers, timeout=10.0)
        except httpx.HTTPError as e:
            logger.error(f"Google userinfo request failed: {str(e)}")
            raise UpstreamFailure("Google login is temporarily unavailable.") from e

        if response.status_code in (400, 401, 403):
            raise Unauthorized("Invalid Google credential")
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Google userinfo error: {e.response.text}")
            raise UpstreamFailure("Google login is temporarily unavailable.") from e
        return response.json()

    async def google_login(self, access_token: str) -> Tuple[str, Account, bool]:
        """Signs in with a Google OAuth access token. Returns (token, account, created)."""
        if not access_token:
            raise ValidationError("Google access token is required")

        profile = await self._fetch_google_profile(access_token)
        email = normalize_email(profile.get("email"))
        if not email:
            raise Unauthorized("Google account has no email")
        if profile.get("email_verified") is not True:
            raise Unauthorized("Google email is not verified")

        account = self.store.find_by_email(email)
        created = False
        if account is None:
            name = sanitize_text(profile.get("name"), max_length=50) or email.split("@")[0]
            # Google accounts get an unusable random password until they reset it
            account = self.store.create_account(name, email, hash_password(secrets.token_urlsafe(32)), auth_provider="google")
            created = True
            logger.info(f"Created Google account for {mask_email(email)}")

        return self.issue_token(account), account, created
