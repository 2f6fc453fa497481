"""
Error taxonomy shared by handlers, the ingestion pipeline and the WFM client.

Every error carries a machine readable ``code`` and the HTTP status it maps to,
so the exception handlers can render it without knowing the concrete type.
"""
from typing import Any, Optional


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AppError):
    """Bad client input. Never retried."""
    code = "validation_error"
    status_code = 400


class NotFound(AppError):
    code = "not_found"
    status_code = 404


class AlreadyExists(AppError):
    code = "already_exists"
    status_code = 409


class ConfigurationError(AppError):
    code = "configuration_error"
    status_code = 500


# ----------- Keyed store -----------

class StoreError(AppError):
    code = "store_error"
    status_code = 500
    transient = False


class StoreUnavailable(StoreError):
    """Table missing or connection failure. Safe to retry."""
    code = "store_unavailable"
    status_code = 503
    transient = True


class InvalidKey(StoreError):
    """Malformed partition/sort key. Retrying cannot help."""
    code = "invalid_key"
    status_code = 400


class ConditionFailed(StoreError):
    """A conditional write lost against the current state of ``key``."""
    code = "condition_failed"
    status_code = 409

    def __init__(self, key, message: Optional[str] = None):
        super().__init__(message or f"Conditional write failed for {key}")
        self.key = key


# ----------- External job system -----------

class ExternalSyncError(AppError):
    code = "external_sync_error"
    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None, details: Optional[Any] = None):
        super().__init__(message, details)
        self.status = status


class AuthExpired(ExternalSyncError):
    code = "external_auth_expired"


class ExternalRejected(ExternalSyncError):
    code = "external_rejected"


class ExternalUnavailable(ExternalSyncError):
    code = "external_unavailable"
    status_code = 503


# ----------- Ingestion -----------

class ParseError(AppError):
    """A single malformed row. Collected per file, never fatal."""
    code = "parse_error"
    status_code = 422

    def __init__(self, message: str, row: Optional[int] = None):
        super().__init__(message)
        self.row = row


class ObjectMissing(AppError):
    code = "object_missing"
    status_code = 404
