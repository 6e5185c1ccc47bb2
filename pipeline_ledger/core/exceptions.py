class LedgerError(Exception):
    """Base exception for the pipeline ledger.

    ``status_code`` is the HTTP status the API layer answers with;
    ``retryable`` tells callers whether repeating the same call can succeed.
    """

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(LedgerError):
    """Raised for malformed input (empty stage name or actor, bad entity id)."""

    status_code = 400


class NotFoundError(LedgerError):
    """Raised when the referenced entity does not exist."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} '{resource_id}' not found")


class ConflictError(LedgerError):
    """Raised when a concurrent write won the race for the same entity.

    Safe to retry after re-reading the current stage.
    """

    status_code = 409
    retryable = True


class StorageError(LedgerError):
    """Raised when the underlying store fails (connection loss, timeout)."""

    status_code = 500
    retryable = True
