"""
Ledger error taxonomy.
Each error carries the HTTP status and short code handlers return to the UI.
"""


class LedgerError(Exception):
    """Base class for refused ledger operations."""
    status_code = 400
    code = 'LedgerError'

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_body(self) -> dict:
        return {'error': self.code, 'message': self.message}


class ValidationError(LedgerError):
    """Bad input: missing fields, non-positive amounts, dates in the past."""
    code = 'ValidationError'


class BelowMinimum(ValidationError):
    code = 'BelowMinimum'


class Forbidden(LedgerError):
    status_code = 403
    code = 'Forbidden'


class NotFound(LedgerError):
    status_code = 404
    code = 'NotFound'


class InsufficientFunds(LedgerError):
    code = 'InsufficientFunds'


class InsufficientAvailableBalance(InsufficientFunds):
    """Requested coins exceed balance minus pending reservations."""
    code = 'InsufficientAvailableBalance'


class TaskFull(LedgerError):
    status_code = 409
    code = 'TaskFull'


class TaskExpired(LedgerError):
    code = 'TaskExpired'


class AlreadySubmitted(LedgerError):
    status_code = 409
    code = 'AlreadySubmitted'


class AlreadyDecided(LedgerError):
    status_code = 409
    code = 'AlreadyDecided'


class PendingWithdrawalExists(LedgerError):
    status_code = 409
    code = 'PendingWithdrawalExists'


class AccountExists(LedgerError):
    status_code = 409
    code = 'AccountExists'


class PersistenceError(LedgerError):
    """Store-level failure passed through verbatim."""
    status_code = 500
    code = 'PersistenceError'
