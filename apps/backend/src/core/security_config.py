"""Log redaction and error-exposure rules.

Centralizes which log field names are redacted by ``StructuredLogger`` and
which error body fields each environment may return to clients.
"""

# Matched as substrings of a lower-cased field name, so "db_password" and
# "x-api-key" are both caught.
SENSITIVE_KEYS: set[str] = {
    "password",
    "secret",
    "token",
    "authorization",
    "api_key",
    "x-api-key",
    "cookie",
    "session_id",
    "credential",
    "database_url",
    "dsn",
}

# In production, error responses only carry these fields
PRODUCTION_ERROR_FIELDS: set[str] = {
    "correlation_id",
    "type",
}

# Additional diagnostics allowed outside production
DEVELOPMENT_ERROR_FIELDS: set[str] = PRODUCTION_ERROR_FIELDS | {
    "details",
    "traceback",
    "exception_type",
    "validation_errors",
}


def get_allowed_error_fields(environment: str) -> set[str]:
    """Return the error body fields allowed for ``environment``."""
    if environment == "production":
        return PRODUCTION_ERROR_FIELDS.copy()
    return DEVELOPMENT_ERROR_FIELDS.copy()


def is_sensitive_key(key: str) -> bool:
    """Check if a field name should be redacted from logs."""
    key_lower = key.lower()
    return any(sensitive in key_lower for sensitive in SENSITIVE_KEYS)
