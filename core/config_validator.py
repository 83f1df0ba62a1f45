# core/config_validator.py

from typing import List
from core.config import settings
from core.logging_config import logger


def validate_required_config() -> List[str]:
    """
    Validate that all required environment variables are set.
    Returns list of missing required variables.
    """
    missing = []

    # Required for core functionality
    if not settings.SUPABASE_URL:
        missing.append("SUPABASE_URL")
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        missing.append("SUPABASE_SERVICE_ROLE_KEY")
    if not settings.STRIPE_SECRET_KEY:
        missing.append("STRIPE_SECRET_KEY")

    # Webhooks can only be trusted with a signing secret outside development
    if settings.ENV != "development" and not settings.STRIPE_WEBHOOK_SECRET:
        missing.append("STRIPE_WEBHOOK_SECRET")

    return missing


def validate_optional_config() -> List[str]:
    """
    Validate optional but recommended configuration.
    Returns list of missing optional variables (warnings only).
    """
    warnings = []

    if not settings.ADMIN_NOTIFICATION_EMAIL:
        warnings.append("ADMIN_NOTIFICATION_EMAIL (admin will not be emailed about access requests)")
    if not settings.ADMIN_NOTIFICATION_USER_ID:
        warnings.append("ADMIN_NOTIFICATION_USER_ID (admin in-app notices are role-addressed only)")
    if not all([settings.SMTP_HOST, settings.SMTP_PORT, settings.SMTP_USER, settings.SMTP_PASS]):
        warnings.append("SMTP_HOST/SMTP_PORT/SMTP_USER/SMTP_PASS (emails disabled)")
    if not settings.ALERT_WEBHOOK_URL:
        warnings.append("ALERT_WEBHOOK_URL (payment anomalies only reach the logs)")

    return warnings


def validate_config_on_startup(strict: bool = True):
    """
    Validate configuration on application startup.
    Raises RuntimeError if critical config is missing (strict), otherwise
    only logs it so local runs and tests still boot.
    Logs warnings for optional config.
    """
    missing_required = validate_required_config()
    missing_optional = validate_optional_config()

    if missing_required:
        error_msg = f"Missing required environment variables: {', '.join(missing_required)}"
        logger.error(error_msg)
        if strict:
            raise RuntimeError(error_msg)

    if missing_optional:
        for warning in missing_optional:
            logger.warning(f"Optional configuration missing: {warning}")

    if settings.MAX_PAYMENT_ATTEMPTS < 1:
        raise RuntimeError("MAX_PAYMENT_ATTEMPTS must be at least 1")

    if not missing_required:
        logger.info("Configuration validation passed")
