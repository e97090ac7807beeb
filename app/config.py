from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # ─── Application ───────────────────────────────────────────────────────────
    APP_NAME: str = "Huntier Auth API"
    APP_ENV:  str = "development"
    APP_DEBUG: bool = True
    APP_HOST:  str = "0.0.0.0"
    APP_PORT:  int = 8000
    API_PREFIX: str = ""

    # ─── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL:          str
    DATABASE_POOL_SIZE:    int  = 10
    DATABASE_MAX_OVERFLOW: int  = 20
    DATABASE_POOL_TIMEOUT: int  = 30
    DATABASE_ECHO:         bool = False

    # ─── JWT ───────────────────────────────────────────────────────────────────
    SECRET_KEY:                    str
    REFRESH_SECRET_KEY:            Optional[str] = None
    ALGORITHM:                     str = "HS256"
    JWT_ISSUER:                    str = "huntier-job-app"
    JWT_AUDIENCE:                  str = "huntier-users"
    ACCESS_TOKEN_EXPIRE_MINUTES:   int = 15
    REFRESH_TOKEN_EXPIRE_DAYS:     int = 7
    ACCESS_TOKEN_COOKIE:           str = "access-token"
    REFRESH_TOKEN_COOKIE:          str = "refresh-token"

    # ─── OTP ───────────────────────────────────────────────────────────────────
    OTP_EXPIRE_MINUTES:        int = 10
    OTP_MAX_VERIFY_ATTEMPTS:   int = 3
    OTP_MAX_RESENDS:           int = 5
    OTP_RESEND_WINDOW_MINUTES: int = 60

    # ─── Send Rate Limit ───────────────────────────────────────────────────────
    OTP_SEND_RATE_LIMIT:          int = 3
    OTP_SEND_RATE_WINDOW_SECONDS: int = 300

    # ─── Blacklist ─────────────────────────────────────────────────────────────
    BLACKLIST_MAX_ATTEMPTS_MINUTES: int = 1
    BLACKLIST_MAX_RESENDS_MINUTES:  int = 5

    # ─── Contact ───────────────────────────────────────────────────────────────
    PHONE_DEFAULT_COUNTRY_CODE: str = "1"

    # ─── Cleanup Retention ─────────────────────────────────────────────────────
    OTP_RETENTION_DAYS:           int = 3
    BLACKLIST_RETENTION_DAYS:     int = 7
    SEND_COUNTER_RETENTION_HOURS: int = 24

    # ─── Delivery ──────────────────────────────────────────────────────────────
    EMAIL_FROM:               str = "Huntier <no-reply@huntier.local>"
    SMTP_HOST:                Optional[str] = None
    SMTP_PORT:                int = 587
    SMTP_USER:                Optional[str] = None
    SMTP_PASSWORD:            Optional[str] = None
    SMS_PROVIDER_URL:         Optional[str] = None
    SMS_PROVIDER_TOKEN:       Optional[str] = None
    SMS_SENDER_NAME:          Optional[str] = "Huntier"
    DELIVERY_TIMEOUT_SECONDS: float = 10.0

    # ─── Admin ─────────────────────────────────────────────────────────────────
    ADMIN_API_KEY: Optional[str] = None

    # ─── CORS ──────────────────────────────────────────────────────────────────
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    def get_cors_origins(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def refresh_secret_key(self) -> str:
        return self.REFRESH_SECRET_KEY or self.SECRET_KEY

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"

    model_config = {"env_file": ".env.example", "case_sensitive": True, "extra": "ignore"}


settings = Settings()
