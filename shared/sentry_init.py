"""
Sentry initialization for the client core.
"""
import logging

import sentry_sdk
from sentry_sdk.integrations.httpx import HttpxIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

from shared.config import settings

logger = logging.getLogger(__name__)


def init_sentry(dsn: str = None) -> bool:
    """Initialize Sentry if a DSN is provided. Returns True when tracking is active."""
    dsn = settings.SENTRY_DSN if dsn is None else dsn
    if not dsn:
        logger.info("ℹ️ Sentry DSN not provided. Error tracking disabled.")
        return False

    logging_integration = LoggingIntegration(
        level=logging.INFO,         # Capture info and above as breadcrumbs
        event_level=logging.ERROR   # Send errors as events
    )

    sentry_sdk.init(
        dsn=dsn,
        environment=settings.SENTRY_ENVIRONMENT,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        integrations=[
            HttpxIntegration(),
            logging_integration,
        ],
        release=settings.APP_VERSION,
        send_default_pii=False,  # Bearer tokens and emails stay on device
        max_breadcrumbs=50,
    )
    logger.info("✅ Sentry initialized")
    return True
