"""
Typed exception hierarchy.

Callers catch by type and read ``code`` rather than matching on message
text. Messages shown to the operator are kept in Arabic, the language of
the till UI.

    RetailAdminError
    +-- ValidationError          raised before any store call
    +-- NotFoundError
    +-- InvalidTransitionError   order action not allowed from its status
    +-- GateDeclinedError        operator declined the invoice gate
    +-- CommitError              invoice header could not be written
    |   +-- PartialCommitError   line items failed; header rolled back
    +-- StoreError               any backend failure
"""


class RetailAdminError(Exception):
    """Base class for all domain errors."""

    code: str = "RETAIL_ADMIN_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(RetailAdminError):
    code = "VALIDATION_ERROR"


class NotFoundError(RetailAdminError):
    code = "NOT_FOUND"


class InvalidTransitionError(RetailAdminError):
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, current_status: str = None):
        self.current_status = current_status
        super().__init__(message)


class GateDeclinedError(RetailAdminError):
    code = "GATE_DECLINED"


class CommitError(RetailAdminError):
    code = "COMMIT_ERROR"


class PartialCommitError(CommitError):
    code = "PARTIAL_COMMIT"


class StoreError(RetailAdminError):
    code = "STORE_ERROR"
