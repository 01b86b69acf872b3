"""Error reporting to the log and to Sentry."""

import logging

import sentry_sdk

from fundhost.config import get_settings

logger = logging.getLogger(__name__)


def init_error_reporting() -> bool:
    """Initialize Sentry when a DSN is configured. Returns True if enabled."""
    dsn = get_settings().sentry_dsn
    if not dsn:
        return False
    sentry_sdk.init(dsn=dsn, traces_sample_rate=0.1, send_default_pii=False)
    return True


def report_error(exc: BaseException, message: str | None = None, **context) -> None:
    """Log ``exc`` and forward it to Sentry with ``context`` as extras.

    Without an initialized Sentry client the capture is a no-op.
    """
    logger.error("%s: %s", message or "Reported error", exc, exc_info=exc)
    with sentry_sdk.new_scope() as scope:
        for key, value in context.items():
            scope.set_extra(key, value)
        if message:
            scope.set_extra("message", message)
        sentry_sdk.capture_exception(exc)


__all__ = ["init_error_reporting", "report_error"]
