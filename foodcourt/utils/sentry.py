"""
Sentry integration for error tracking
"""

import logging

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from foodcourt.core.config import Config


logger = logging.getLogger(__name__)


def init_sentry(dsn: str | None = None, environment: str | None = None) -> str | None:
    """
    Initialise Sentry error tracking (no-op without a DSN)

    Returns:
        Sentry DSN when enabled, None otherwise
    """
    sentry_dsn = dsn or Config.SENTRY_DSN
    environment = environment or Config.ENVIRONMENT

    if not sentry_dsn:
        logger.info("Sentry DSN not configured, error tracking disabled")
        return None

    logging_integration = LoggingIntegration(
        level=logging.INFO,  # Breadcrumbs
        event_level=logging.ERROR,  # Events
    )

    sentry_sdk.init(
        dsn=sentry_dsn,
        environment=environment,
        traces_sample_rate=0.1,
        integrations=[logging_integration],
        send_default_pii=False,
        attach_stacktrace=True,
        max_breadcrumbs=50,
    )

    logger.info("Sentry initialised (environment: %s)", environment)
    return sentry_dsn


def capture_dispatch_failure(error: Exception, **context: object) -> None:
    """
    Report a notification that could not be delivered

    Sentry drops the event silently when it was never initialised.

    Args:
        error: DispatchFailedError (or its cause)
        **context: Extra tags (user_id, template, order id)
    """
    with sentry_sdk.new_scope() as scope:
        scope.set_tag("component", "notification_dispatcher")
        for key, value in context.items():
            scope.set_extra(key, value)
        sentry_sdk.capture_exception(error)
