import logging

logger = logging.getLogger(__name__)

# Substring of the lower-cased exception text -> operator hint
FAILURE_HINTS = [
    ("permission denied", "check the service account's IAM roles for Firestore"),
    ("permission_denied", "check the service account's IAM roles for Firestore"),
    ("api key", "check the provider API key configured for CHAT_PROVIDER"),
    ("api_key", "check the provider API key configured for CHAT_PROVIDER"),
    ("requires an index", "create the Firestore composite index linked in the error"),
    ("composite index", "a Firestore composite index may be missing"),
    ("resource exhausted", "provider or Firestore quota exhausted"),
    ("quota", "provider or Firestore quota exhausted"),
    ("deadline", "upstream call timed out; check LLM_TIMEOUT and provider latency"),
    ("timeout", "upstream call timed out; check LLM_TIMEOUT and provider latency"),
    ("timed out", "upstream call timed out; check LLM_TIMEOUT and provider latency"),
]

EXPIRED_TOKEN_MARKERS = ("token expired", "id-token-expired", "token has expired")


def diagnose(exc: BaseException):
    """Map an unexpected exception to `(status, public_message, hint)`."""
    text = str(exc).lower()
    if any(marker in text for marker in EXPIRED_TOKEN_MARKERS):
        return 401, "Token expired, please refresh.", "client must refresh its ID token"
    for needle, hint in FAILURE_HINTS:
        if needle in text:
            return 500, "Internal server error", hint
    return 500, "Internal server error", None


def log_failure(context: str, exc: BaseException):
    status, message, hint = diagnose(exc)
    if hint:
        logger.error("%s: %s (hint: %s)", context, exc, hint, exc_info=exc)
    else:
        logger.error("%s: %s", context, exc, exc_info=exc)
    return status, message
