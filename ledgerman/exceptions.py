"""
Exceptions for Ledgerman.

All errors are LedgerError with a structured code for programmatic handling.
The four subclasses mirror how a caller reacts: fix the input, fix the
reference, retry the whole business operation, or report an outage.
"""

from typing import Any


class LedgerError(Exception):
    """
    Structured exception for ledger operations.

    Usage:
        try:
            ledger.post(company_id='ACME', item_id=7, ...)
        except LedgerError as e:
            if e.code == 'LOCK_TIMEOUT':
                ...  # retry the whole business operation

    Attributes:
        code: Error code for programmatic handling
        message: Human-readable message
        data: Additional context data
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data: Any):
        self.code = code
        self.message = message or self._lookup_message(code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @classmethod
    def _lookup_message(cls, code: str) -> str:
        for klass in cls.__mro__:
            messages = getattr(klass, '_default_messages', {})
            if code in messages:
                return messages[code]
        return code.replace('_', ' ').capitalize()

    def as_dict(self) -> dict[str, Any]:
        """Serialize to dict (useful for APIs)."""
        return {
            'code': self.code,
            'message': self.message,
            'data': {
                k: v if isinstance(v, (int, float, bool, type(None))) else str(v)
                for k, v in self.data.items()
            },
        }


class ValidationError(LedgerError):
    """Bad input: zero delta, unknown type, wrong sign, missing unit of work."""

    _default_messages = {
        'INVALID_QUANTITY': 'Quantity change must be a nonzero integer',
        'INVALID_TYPE': 'Unknown transaction type',
        'INVALID_SIGN': 'Quantity sign does not match the transaction type',
        'NO_UNIT_OF_WORK': 'Ledger writes must run inside transaction.atomic()',
        'BACKDATED_ENTRY': 'Entry is dated before the latest ledger entry',
        'UNKNOWN_CATEGORY': 'Unknown history category',
        'INVALID_LIMIT': 'History limit must be a non-negative integer',
        'INSUFFICIENT_QUANTITY': 'Requested quantity exceeds what is available',
        'INVALID_STATUS': 'Invalid document status for this operation',
    }


class NotFoundError(LedgerError):
    """Item, company or source document does not resolve."""

    _default_messages = {
        'ITEM_NOT_FOUND': 'Item not found for this company',
        'COMPANY_NOT_FOUND': 'Company not found',
        'DOCUMENT_NOT_FOUND': 'Source document not found',
    }


class ConcurrencyError(LedgerError):
    """Per-item lock not acquired in time, or the insert lost a race."""

    _default_messages = {
        'LOCK_TIMEOUT': 'Could not lock the item ledger in time',
        'CONSISTENCY_CHECK_FAILED': 'Concurrent ledger write detected',
    }


class PersistenceError(LedgerError):
    """Underlying store failure."""

    _default_messages = {
        'DATABASE_ERROR': 'Ledger store failure',
    }
