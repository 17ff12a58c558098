"""Startup-time helpers for safe config logging."""

from merchantpay.common.config import Settings
from merchantpay.common.logging import logger

SECRET_MARKERS = ("key", "secret", "password", "token", "dsn")


def redacted_settings(settings: Settings) -> dict:
    """Return settings as a dict with secret-looking values masked."""

    redacted = {}
    for name, value in settings.model_dump().items():
        if value is not None and any(marker in name for marker in SECRET_MARKERS):
            redacted[name] = "<redacted>"
        else:
            redacted[name] = value
    return redacted


def log_startup_config(settings: Settings) -> None:
    """Log effective configuration once when the app is built."""

    logger.info("startup_config=%s", redacted_settings(settings))
