"""
Error taxonomy for remote mutations.

Kinds mirror the `error.code` values returned by the persistence endpoints:
  validation    missing or invalid field (400)
  duplicate     uniqueness conflict, e.g. a second identical Connection (409)
  not_found     no such record (404)
  unauthorized  no session (401); handled by the auth layer, not the canvas
  *_failed      generic persistence failure (500): create_failed, update_failed,
                delete_failed, query_failed, request_failed
"""

from typing import Optional

VALIDATION = "validation"
DUPLICATE = "duplicate"
NOT_FOUND = "not_found"
UNAUTHORIZED = "unauthorized"
CREATE_FAILED = "create_failed"
UPDATE_FAILED = "update_failed"
DELETE_FAILED = "delete_failed"
QUERY_FAILED = "query_failed"
REQUEST_FAILED = "request_failed"

# HTTP status -> kind, used when a response carries no usable error code
STATUS_KINDS = {
    400: VALIDATION,
    401: UNAUTHORIZED,
    404: NOT_FOUND,
    409: DUPLICATE,
}


class MutationError(Exception):
    """A failed remote call, with the kind of failure and the attempted operation."""
    def __init__(self, kind: str, message: str, operation: str = "", status: Optional[int] = None):
        self.kind = kind
        self.operation = operation
        self.status = status
        super().__init__(message)

    @property
    def message(self) -> str:
        return str(self)

    @property
    def is_validation(self) -> bool:
        return self.kind == VALIDATION

    @property
    def is_duplicate(self) -> bool:
        return self.kind == DUPLICATE

    @property
    def is_generic_failure(self) -> bool:
        return self.kind.endswith("_failed")

    def __repr__(self) -> str:
        return f"MutationError(kind={self.kind!r}, operation={self.operation!r}, message={str(self)!r})"
