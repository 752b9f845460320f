"""
Domain errors raised by the translation services.

Each error carries a kind (its class), a machine-readable code and the
offending ids/fields, so the HTTP layer can render a stable payload.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    # not found
    PROJECT_NOT_FOUND = "PROJECT_NOT_FOUND"
    KEY_NOT_FOUND = "KEY_NOT_FOUND"
    LANGUAGE_NOT_FOUND = "LANGUAGE_NOT_FOUND"
    TRANSLATION_NOT_FOUND = "TRANSLATION_NOT_FOUND"
    COMMENT_NOT_FOUND = "COMMENT_NOT_FOUND"
    ORGANIZATION_NOT_FOUND = "ORGANIZATION_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"

    # reference to an entity of another project
    TRANSLATION_NOT_FROM_PROJECT = "TRANSLATION_NOT_FROM_PROJECT"
    KEY_NOT_FROM_PROJECT = "KEY_NOT_FROM_PROJECT"
    LANGUAGE_NOT_FROM_PROJECT = "LANGUAGE_NOT_FROM_PROJECT"

    # permissions
    OPERATION_NOT_PERMITTED = "OPERATION_NOT_PERMITTED"
    LANGUAGE_NOT_PERMITTED = "LANGUAGE_NOT_PERMITTED"
    CAN_EDIT_ONLY_OWN_COMMENT = "CAN_EDIT_ONLY_OWN_COMMENT"

    # validation
    INVALID_STRUCTURE_DELIMITER = "INVALID_STRUCTURE_DELIMITER"
    INVALID_TRANSLATION_STATE = "INVALID_TRANSLATION_STATE"
    INVALID_COMMENT_STATE = "INVALID_COMMENT_STATE"
    INVALID_SCOPE = "INVALID_SCOPE"
    INVALID_PERMISSION_TYPE = "INVALID_PERMISSION_TYPE"
    KEY_EXISTS = "KEY_EXISTS"
    LANGUAGE_TAG_EXISTS = "LANGUAGE_TAG_EXISTS"
    INVALID_CURSOR = "INVALID_CURSOR"
    ORGANIZATION_HAS_NO_OTHER_OWNER = "ORGANIZATION_HAS_NO_OTHER_OWNER"
    ORGANIZATION_HAS_PROJECTS = "ORGANIZATION_HAS_PROJECTS"
    CANNOT_SET_YOUR_OWN_ROLE = "CANNOT_SET_YOUR_OWN_ROLE"


class LocbaseError(Exception):
    """Base class of every error the services raise on purpose."""

    status_code = 500

    def __init__(
        self,
        error_code: ErrorCode,
        message: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        self.error_code = error_code
        self.message = message or error_code.value.replace("_", " ").capitalize()
        self.params = params or {}
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "code": self.error_code.value,
            "kind": self.kind,
            "params": {key: _jsonable(value) for key, value in self.params.items()},
        }


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return str(value)


class NotFound(LocbaseError):
    status_code = 404


class CrossProjectReference(LocbaseError):
    """The entity exists but belongs to a different project than the request."""

    status_code = 400


class PermissionDenied(LocbaseError):
    status_code = 403

    def __init__(
        self,
        error_code: ErrorCode = ErrorCode.OPERATION_NOT_PERMITTED,
        message: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(error_code, message, params)


class ValidationError(LocbaseError):
    status_code = 400
