"""Message keys returned to API clients and their default texts.

Clients receive the key as ``errorCode`` and the text as ``message``; texts can
be overridden through ``Settings.messages``.
"""

from enum import Enum

from apitoolbox.core.config import settings


class Alert(str, Enum):
    TOKEN_NOT_FOUND = "token_not_found"
    USER_NOT_FOUND = "user_not_found"
    JWT_NOT_FOUND = "jwt_auth_not_found"
    ACCESS_DENIED = "access_denied"
    PERMISSIONS_DENIED = "insufficient_permissions"
    RECORD_NOT_FOUND = "record_not_found"
    RECORDS_NOT_FOUND = "records_not_found"
    RECORD_UPDATED = "record_updated"
    RECORD_CREATED = "record_created"
    RECORD_DELETED = "record_deleted"
    RECORD_NOT_DELETED = "record_not_deleted"
    RECORD_NOT_UPDATED = "record_not_updated"
    RECORD_NOT_CREATED = "record_not_created"
    RECORD_CONFLICT = "record_conflict"
    VALIDATION_FAILED = "validation_failed"


def tr(key: str | Alert) -> str:
    """Translate a message key: configured override, else the key in plain words."""
    key = key.value if isinstance(key, Alert) else key
    return settings.messages.get(key, key.replace("_", " "))
