"""
Service container for the FastAPI app.

All mutable state (quota counters, stores) hangs off one `Services` instance
on `app.state`, so tests and multiple app instances never share counters.
"""
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Request

from legalai.config import Settings, settings as default_settings
from legalai.errors import Unauthorized
from legalai.services.auth_service import AuthService
from legalai.services.credential_store import CredentialStore, InMemoryCredentialStore, SupabaseCredentialStore
from legalai.services.document_processor import DocumentProcessorService
from legalai.services.document_store import DocumentStore, InMemoryDocumentStore, SupabaseDocumentStore
from legalai.services.identity import IdentityResolver
from legalai.services.llm_service import LLMService
from legalai.services.notifier import EmailNotifier, Notifier
from legalai.services.recovery import CredentialRecoveryService
from legalai.utils.clock import Clock, utcnow
from legalai.utils.logger import logger
from legalai.utils.rate_limit import Identity, QuotaPolicy, QuotaTracker


@dataclass
class Services:
    settings: Settings
    clock: Clock
    identity: IdentityResolver
    upload_quota: QuotaTracker
    reset_request_quota: QuotaTracker
    otp_attempt_quota: QuotaTracker
    credentials: CredentialStore
    documents: DocumentStore
    notifier: Notifier
    auth: AuthService
    recovery: CredentialRecoveryService
    processor: DocumentProcessorService
    analyzer: LLMService

    @property
    def quota_trackers(self):
        return (self.upload_quota, self.reset_request_quota, self.otp_attempt_quota)


def _supabase_client(cfg: Settings):
    if not (cfg.SUPABASE_URL and cfg.SUPABASE_KEY):
        return None
    from supabase import create_client
    client = create_client(cfg.SUPABASE_URL, cfg.SUPABASE_KEY)
    logger.info("Supabase client initialized.")
    return client


def build_services(
    cfg: Settings = default_settings,
    clock: Clock = utcnow,
    credentials: Optional[CredentialStore] = None,
    documents: Optional[DocumentStore] = None,
    notifier: Optional[Notifier] = None,
    analyzer: Optional[LLMService] = None,
) -> Services:
    """Wires every service from settings. Explicit arguments replace the configured defaults."""
    if credentials is None or documents is None:
        client = _supabase_client(cfg)
        if client is not None:
            credentials = credentials or SupabaseCredentialStore(client)
            documents = documents or SupabaseDocumentStore(client)
        else:
            logger.warning("Supabase not configured; using in-memory stores.")
            credentials = credentials or InMemoryCredentialStore()
            documents = documents or InMemoryDocumentStore()

    notifier = notifier or EmailNotifier(
        host=cfg.EMAIL_HOST, port=cfg.EMAIL_PORT, user=cfg.EMAIL_USER, password=cfg.EMAIL_PASSWORD,
        sender=cfg.EMAIL_FROM, use_tls=cfg.EMAIL_USE_TLS, enabled=cfg.EMAIL_ENABLED,
        timeout=cfg.EMAIL_TIMEOUT_SECONDS, app_url=cfg.APP_URL, clock=clock,
    )

    upload_quota = QuotaTracker(
        anonymous=QuotaPolicy(
            limit=cfg.ANON_UPLOAD_LIMIT,
            window=timedelta(minutes=cfg.ANON_WINDOW_MINUTES),
            wait_unit=timedelta(minutes=1),
            label="anonymous users",
        ),
        authenticated=QuotaPolicy(
            limit=cfg.AUTH_UPLOAD_LIMIT,
            window=timedelta(hours=cfg.AUTH_WINDOW_HOURS),
            wait_unit=timedelta(hours=1),
            label="authorized users",
        ),
        clock=clock,
    )
    reset_policy = QuotaPolicy(
        limit=cfg.RESET_REQUEST_LIMIT,
        window=timedelta(minutes=cfg.RESET_REQUEST_WINDOW_MINUTES),
        wait_unit=timedelta(minutes=1),
        label="password reset",
        action="Request",
    )
    reset_request_quota = QuotaTracker(anonymous=reset_policy, authenticated=reset_policy, clock=clock)
    otp_policy = QuotaPolicy(
        limit=cfg.OTP_ATTEMPT_LIMIT,
        window=timedelta(minutes=cfg.OTP_ATTEMPT_WINDOW_MINUTES),
        wait_unit=timedelta(minutes=1),
        label="code verification",
        action="Attempt",
    )
    otp_attempt_quota = QuotaTracker(anonymous=otp_policy, authenticated=otp_policy, clock=clock)

    return Services(
        settings=cfg,
        clock=clock,
        identity=IdentityResolver(cfg.JWT_SECRET, cfg.JWT_ALGORITHM),
        upload_quota=upload_quota,
        reset_request_quota=reset_request_quota,
        otp_attempt_quota=otp_attempt_quota,
        credentials=credentials,
        documents=documents,
        notifier=notifier,
        auth=AuthService(
            credentials, secret=cfg.JWT_SECRET, algorithm=cfg.JWT_ALGORITHM,
            expires_minutes=cfg.JWT_EXPIRE_MINUTES, google_userinfo_url=cfg.GOOGLE_USERINFO_URL, clock=clock,
        ),
        recovery=CredentialRecoveryService(
            credentials, notifier, clock=clock,
            otp_ttl=timedelta(minutes=cfg.OTP_TTL_MINUTES),
            reset_ttl=timedelta(minutes=cfg.RESET_TOKEN_TTL_MINUTES),
        ),
        processor=DocumentProcessorService(max_file_size_mb=cfg.MAX_UPLOAD_MB),
        analyzer=analyzer or LLMService(
            gemini_key=cfg.GEMINI_API_KEY, groq_key=cfg.GROQ_API_KEY, char_limit=cfg.ANALYSIS_CHAR_LIMIT,
            gemini_model=cfg.GEMINI_MODEL, groq_model=cfg.GROQ_MODEL,
        ),
    )


# ==================== FASTAPI DEPENDENCIES ====================

def get_services(request: Request) -> Services:
    return request.app.state.services


def client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def get_identity(request: Request) -> Identity:
    """Anonymous (by IP) or authenticated (by user id). A bad bearer token is a 401."""
    services = get_services(request)
    return services.identity.resolve(request.headers.get("Authorization"), client_ip(request))


def require_user(request: Request) -> Identity:
    identity = get_identity(request)
    if not identity.authenticated:
        raise Unauthorized("Unauthorized. Please log in.")
    return identity
