from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Pre-Market Access API"
    ENV: str = "development"

    # -------------------------------------------------
    # Frontend Domains
    # -------------------------------------------------
    CLIENT_URL: str = Field("https://app.beforelisted.com", env="CLIENT_URL")

    FRONTEND_DOMAINS: List[str] = [
        "https://beforelisted.com",
        "https://www.beforelisted.com",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB & Auth)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # SMTP Email Notifications
    # -------------------------------------------------
    SMTP_HOST: Optional[str] = Field(None, env="SMTP_HOST")
    SMTP_PORT: Optional[int] = Field(None, env="SMTP_PORT")
    SMTP_USER: Optional[str] = Field(None, env="SMTP_USER")
    SMTP_PASS: Optional[str] = Field(None, env="SMTP_PASS")

    # Admin inbox + in-app recipient for grant access requests
    ADMIN_NOTIFICATION_EMAIL: Optional[str] = Field(None, env="ADMIN_NOTIFICATION_EMAIL")
    ADMIN_NOTIFICATION_USER_ID: Optional[str] = Field(None, env="ADMIN_NOTIFICATION_USER_ID")
    SUPPORT_EMAIL: str = Field("support@beforelisted.com", env="SUPPORT_EMAIL")

    # -------------------------------------------------
    # Ops alerts (Discord, Slack, etc.)
    # -------------------------------------------------
    ALERT_WEBHOOK_URL: Optional[str] = Field(None, env="ALERT_WEBHOOK_URL")

    # -------------------------------------------------
    # Stripe Payment Processing
    # -------------------------------------------------
    STRIPE_SECRET_KEY: Optional[str] = Field(None, env="STRIPE_SECRET_KEY")
    STRIPE_WEBHOOK_SECRET: Optional[str] = Field(None, env="STRIPE_WEBHOOK_SECRET")

    # -------------------------------------------------
    # Grant Access Policy
    # -------------------------------------------------
    GRANT_ACCESS_CURRENCY: str = Field("USD", env="GRANT_ACCESS_CURRENCY", description="ISO currency code for all access charges")
    MAX_PAYMENT_ATTEMPTS: int = Field(3, env="MAX_PAYMENT_ATTEMPTS", description="Failed payments allowed before intent creation is refused")
    BULK_DELETE_LIMIT: int = Field(100, env="BULK_DELETE_LIMIT", description="Maximum ids accepted by a bulk payment delete")
    PAYMENT_LINK_VALID_DAYS: int = Field(7, env="PAYMENT_LINK_VALID_DAYS", description="Deadline shown in the payment link email")

    # -------------------------------------------------
    # Payment reconciliation sweep
    # -------------------------------------------------
    PAYMENT_RECONCILE_ENABLED: bool = Field(False, env="PAYMENT_RECONCILE_ENABLED")
    PAYMENT_RECONCILE_STALE_MINUTES: int = Field(30, env="PAYMENT_RECONCILE_STALE_MINUTES")
    PAYMENT_RECONCILE_INTERVAL_MINUTES: int = Field(15, env="PAYMENT_RECONCILE_INTERVAL_MINUTES")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

# 1) add the client app
if settings.CLIENT_URL:
    domain = settings.CLIENT_URL
    if not domain.startswith("http"):
        domain = f"https://{domain}"
    cors_origins.append(domain.rstrip("/"))

# 2) add marketing domains
cors_origins.extend([d.rstrip("/") for d in settings.FRONTEND_DOMAINS])

# 3) remove duplicates
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
