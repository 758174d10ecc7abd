"""
Error taxonomy for the repayment ledger.

Services raise these; the API layer maps them onto HTTP status codes.
"""


class LedgerError(Exception):
    """Base class for every ledger error."""
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LedgerError):
    """Malformed identifier or amount. Rejected before any mutation."""
    status_code = 400


class StateError(LedgerError):
    """Operation not legal in the current contract/payment state."""
    status_code = 409


class NotFoundError(LedgerError):
    """Unknown contract or payment reference."""
    status_code = 404


class ConflictError(LedgerError):
    """Uniqueness conflict on an external reference (concurrent delivery)."""
    status_code = 409


class GatewayError(LedgerError):
    """Payment gateway refused or could not be reached."""
    status_code = 502
