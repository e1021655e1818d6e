from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

class Settings(BaseSettings):
    ENVIRONMENT: str = "development"
    PORT: int = 5000
    HOST: str = "0.0.0.0"
    APP_URL: str = "http://localhost:5173"
    CORS_ORIGINS: List[str] = ["*"]

    # Auth Conf
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60
    GOOGLE_USERINFO_URL: str = "https://www.googleapis.com/oauth2/v3/userinfo"

    # Multi-LLM Conf
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-2.5-flash"
    GROQ_API_KEY: Optional[str] = None
    GROQ_MODEL: str = "llama3-70b-8192"

    # Optional DB Conf (in-memory stores are used when unset)
    SUPABASE_URL: Optional[str] = None
    SUPABASE_KEY: Optional[str] = None

    # Email Conf
    EMAIL_ENABLED: bool = False
    EMAIL_HOST: str = "smtp.gmail.com"
    EMAIL_PORT: int = 587
    EMAIL_USER: Optional[str] = None
    EMAIL_PASSWORD: Optional[str] = None
    EMAIL_FROM: Optional[str] = None
    EMAIL_USE_TLS: bool = True
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    # Upload quotas
    ANON_UPLOAD_LIMIT: int = 3
    ANON_WINDOW_MINUTES: int = 120
    AUTH_UPLOAD_LIMIT: int = 10
    AUTH_WINDOW_HOURS: int = 24
    QUOTA_SWEEP_INTERVAL_SECONDS: int = 3600

    # Password reset
    OTP_TTL_MINUTES: int = 10
    RESET_TOKEN_TTL_MINUTES: int = 60
    RESET_REQUEST_LIMIT: int = 5
    RESET_REQUEST_WINDOW_MINUTES: int = 15
    OTP_ATTEMPT_LIMIT: int = 5
    OTP_ATTEMPT_WINDOW_MINUTES: int = 15

    # Uploads
    MAX_UPLOAD_MB: int = 10
    ANALYSIS_CHAR_LIMIT: int = 3200
    MAX_TEXT_FIELD_LENGTH: int = 254

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

settings = Settings()
