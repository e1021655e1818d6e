"""
Account and password-reset token storage.

`InMemoryCredentialStore` backs development and tests. When SUPABASE_URL and
SUPABASE_KEY are configured, `SupabaseCredentialStore` keeps the same data in
the `users` and `password_reset_tokens` tables.
"""
import hmac
import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from legalai.errors import Conflict, UpstreamFailure
from legalai.utils.clock import utcnow
from legalai.utils.logger import logger


class TokenKind(str, Enum):
    OTP = "otp"
    RESET = "reset"


@dataclass
class Account:
    id: str
    name: str
    email: str
    password_hash: Optional[str]
    auth_provider: str = "password"
    created_at: datetime = field(default_factory=utcnow)

    def public(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}


@dataclass
class ResetToken:
    user_id: str
    code_hash: str
    kind: TokenKind
    expires_at: datetime
    used: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)

    def is_valid(self, now: datetime) -> bool:
        return not self.used and now <= self.expires_at


class CredentialStore:
    """Interface the auth and recovery services depend on."""

    def find_by_email(self, email: str) -> Optional[Account]:
        raise NotImplementedError

    def create_account(self, name: str, email: str, password_hash: Optional[str], auth_provider: str = "password") -> Account:
        raise NotImplementedError

    def update_credential_hash(self, user_id: str, password_hash: str) -> None:
        raise NotImplementedError

    def insert_token(self, token: ResetToken) -> ResetToken:
        raise NotImplementedError

    def find_token(self, user_id: str, kind: TokenKind, code_hash: str) -> Optional[ResetToken]:
        """Newest unused token of `kind` for the user whose hash matches, expired or not."""
        raise NotImplementedError

    def find_active_token(self, user_id: str, kind: TokenKind, now: datetime) -> Optional[ResetToken]:
        raise NotImplementedError

    def mark_token_used(self, token_id: str) -> None:
        raise NotImplementedError

    def invalidate_tokens(self, user_id: str, kind: TokenKind) -> int:
        """Marks every unused token of `kind` for the user as used. Returns how many changed."""
        raise NotImplementedError


class InMemoryCredentialStore(CredentialStore):
    def __init__(self):
        self._accounts: Dict[str, Account] = {}
        self._tokens: List[ResetToken] = []
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> Optional[Account]:
        with self._lock:
            for account in self._accounts.values():
                if account.email == email:
                    return replace(account)
        return None

    def create_account(self, name: str, email: str, password_hash: Optional[str], auth_provider: str = "password") -> Account:
        with self._lock:
            if any(a.email == email for a in self._accounts.values()):
                raise Conflict("An account with this email already exists")
            account = Account(
                id=uuid.uuid4().hex, name=name, email=email,
                password_hash=password_hash, auth_provider=auth_provider,
            )
            self._accounts[account.id] = account
            return replace(account)

    def update_credential_hash(self, user_id: str, password_hash: str) -> None:
        with self._lock:
            self._accounts[user_id].password_hash = password_hash

    def insert_token(self, token: ResetToken) -> ResetToken:
        with self._lock:
            self._tokens.append(replace(token))
        return token

    def find_token(self, user_id: str, kind: TokenKind, code_hash: str) -> Optional[ResetToken]:
        with self._lock:
            for token in reversed(self._tokens):
                if token.user_id == user_id and token.kind == kind and not token.used \
                        and hmac.compare_digest(token.code_hash, code_hash):
                    return replace(token)
        return None

    def find_active_token(self, user_id: str, kind: TokenKind, now: datetime) -> Optional[ResetToken]:
        with self._lock:
            for token in reversed(self._tokens):
                if token.user_id == user_id and token.kind == kind and token.is_valid(now):
                    return replace(token)
        return None

    def mark_token_used(self, token_id: str) -> None:
        with self._lock:
            for token in self._tokens:
                if token.id == token_id:
                    token.used = True

    def invalidate_tokens(self, user_id: str, kind: TokenKind) -> int:
        changed = 0
        with self._lock:
            for token in self._tokens:
                if token.user_id == user_id and token.kind == kind and not token.used:
                    token.used = True
                    changed += 1
        return changed


def _parse_dt(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class SupabaseCredentialStore(CredentialStore):
    """Supabase (PostgREST) backed store. Every client error surfaces as UpstreamFailure."""

    USERS = "users"
    TOKENS = "password_reset_tokens"

    def __init__(self, client):
        self.client = client

    def _run(self, action: str, query):
        try:
            return query.execute().data or []
        except Exception as e:
            logger.error(f"Supabase {action} failed: {str(e)}")
            raise UpstreamFailure("The account service is temporarily unavailable.") from e

    @staticmethod
    def _account(row: dict) -> Account:
        return Account(
            id=str(row["id"]),
            name=row.get("name") or "",
            email=row["email"],
            password_hash=row.get("password"),
            auth_provider=row.get("auth_provider") or "password",
            created_at=_parse_dt(row["created_at"]) if row.get("created_at") else utcnow(),
        )

    @staticmethod
    def _token(row: dict) -> ResetToken:
        return ResetToken(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            code_hash=row["code_hash"],
            kind=TokenKind(row["kind"]),
            expires_at=_parse_dt(row["expires_at"]),
            used=bool(row.get("used")),
            created_at=_parse_dt(row["created_at"]),
        )

    def find_by_email(self, email: str) -> Optional[Account]:
        rows = self._run("user lookup", self.client.table(self.USERS).select("*").eq("email", email).limit(1))
        return self._account(rows[0]) if rows else None

    def create_account(self, name: str, email: str, password_hash: Optional[str], auth_provider: str = "password") -> Account:
        if self.find_by_email(email):
            raise Conflict("An account with this email already exists")
        account = Account(id=uuid.uuid4().hex, name=name, email=email,
                          password_hash=password_hash, auth_provider=auth_provider)
        self._run("user insert", self.client.table(self.USERS).insert({
            "id": account.id,
            "name": account.name,
            "email": account.email,
            "password": account.password_hash,
            "auth_provider": account.auth_provider,
            "created_at": account.created_at.isoformat(),
        }))
        return account

    def update_credential_hash(self, user_id: str, password_hash: str) -> None:
        self._run("password update", self.client.table(self.USERS).update({"password": password_hash}).eq("id", user_id))

    def insert_token(self, token: ResetToken) -> ResetToken:
        self._run("token insert", self.client.table(self.TOKENS).insert({
            "id": token.id,
            "user_id": token.user_id,
            "code_hash": token.code_hash,
            "kind": token.kind.value,
            "expires_at": token.expires_at.isoformat(),
            "used": token.used,
            "created_at": token.created_at.isoformat(),
        }))
        return token

    def find_token(self, user_id: str, kind: TokenKind, code_hash: str) -> Optional[ResetToken]:
        rows = self._run("token lookup", (
            self.client.table(self.TOKENS).select("*")
            .eq("user_id", user_id).eq("kind", kind.value).eq("code_hash", code_hash).eq("used", False)
            .order("created_at", desc=True).limit(1)
        ))
        return self._token(rows[0]) if rows else None

    def find_active_token(self, user_id: str, kind: TokenKind, now: datetime) -> Optional[ResetToken]:
        rows = self._run("token lookup", (
            self.client.table(self.TOKENS).select("*")
            .eq("user_id", user_id).eq("kind", kind.value).eq("used", False)
            .gte("expires_at", now.isoformat())
            .order("created_at", desc=True).limit(1)
        ))
        return self._token(rows[0]) if rows else None

    def mark_token_used(self, token_id: str) -> None:
        self._run("token update", self.client.table(self.TOKENS).update({"used": True}).eq("id", token_id))

    def invalidate_tokens(self, user_id: str, kind: TokenKind) -> int:
        rows = self._run("token invalidation", (
            self.client.table(self.TOKENS).update({"used": True})
            .eq("user_id", user_id).eq("kind", kind.value).eq("used", False)
        ))
        return len(rows)
