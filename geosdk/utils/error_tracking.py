"""Error tracking and monitoring setup."""
import logging
import os
import re
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

REDACTED = "***REDACTED***"

_SENSITIVE_ENV_VARS = ("API_KEY", "SECRET", "PASSWORD", "TOKEN", "AUTH", "CREDENTIAL")

# user:password@ in URLs and signed-URL query parameters
_URL_CREDENTIALS_RE = re.compile(r"(?P<scheme>[a-z][a-z0-9+.-]*://)[^/@\s]+@", re.IGNORECASE)
_URL_SIGNATURE_RE = re.compile(
    r"(?P<key>[?&](?:X-Amz-Signature|X-Amz-Credential|X-Amz-Security-Token|sig|token)=)[^&\s'\"]+",
    re.IGNORECASE
)

logger = logging.getLogger("geosdk")

_initialized = False


def redact_url(text: str) -> str:
    """Strip embedded credentials and signatures from URLs inside a string."""
    if not isinstance(text, str):
        return text
    text = _URL_CREDENTIALS_RE.sub(lambda m: m.group("scheme") + REDACTED + "@", text)
    return _URL_SIGNATURE_RE.sub(lambda m: m.group("key") + REDACTED, text)


def filter_sensitive_data(event, hint):
    """Filter sensitive data from Sentry events."""
    # Filter environment variables that might contain secrets
    env = event.get("environment_variables") or event.get("extra", {}).get("environment")
    if isinstance(env, dict):
        for key in list(env.keys()):
            if any(sensitive in key.upper() for sensitive in _SENSITIVE_ENV_VARS):
                env[key] = REDACTED

    # Partition sources are URLs; private mirrors may carry credentials
    for exception in (event.get("exception") or {}).get("values", []):
        if "value" in exception:
            exception["value"] = redact_url(exception["value"])
    if isinstance(event.get("message"), str):
        event["message"] = redact_url(event["message"])
    for context in (event.get("contexts") or {}).values():
        if isinstance(context, dict):
            for key, value in list(context.items()):
                context[key] = redact_url(value)

    return event


def setup_error_tracking(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    release: Optional[str] = None,
    traces_sample_rate: float = 0.0
) -> bool:
    """
    Setup Sentry error tracking.

    Args:
        dsn: Sentry DSN (if None, will try to get from SENTRY_DSN env var)
        environment: Environment name (development, staging, production)
        release: Release version
        traces_sample_rate: Percentage of transactions to trace (0.0 to 1.0)

    Returns:
        True if Sentry was initialized, False otherwise
    """
    global _initialized

    dsn = dsn or os.getenv("SENTRY_DSN")
    if not dsn:
        logger.debug("Sentry DSN not provided. Error tracking disabled.")
        return False

    environment = environment or os.getenv("ENVIRONMENT", "development")
    release = release or os.getenv("RELEASE", "unknown")

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            integrations=[
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            traces_sample_rate=traces_sample_rate,
            before_send=filter_sensitive_data,
            attach_stacktrace=True,
            send_default_pii=False,
            debug=os.getenv("SENTRY_DEBUG", "false").lower() == "true",
        )
    except Exception as e:  # malformed DSN
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    _initialized = True
    logger.info(f"Sentry error tracking initialized for environment: {environment}")
    return True


def capture_exception(error: BaseException, context: Optional[dict] = None) -> bool:
    """Capture exception and send to Sentry if tracking was set up."""
    if not _initialized:
        return False

    with sentry_sdk.new_scope() as scope:
        if context:
            for key, value in context.items():
                scope.set_context(key, {"value": redact_url(str(value))})
        sentry_sdk.capture_exception(error)
    return True
