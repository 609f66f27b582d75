"""
Reference labels: the human-readable text shown next to each entry.

Labels are display only. Entries point back to their documents through
the structured (source_type, source_document_id, source_line_id) reference;
``legacy_document_number`` exists for rows that carry only a label.
"""

from ledgerman.models.enums import TransactionType

SEPARATOR = ' / '
MISSING = 'N/A'

OPENING_LABEL = 'OPENING'
OPENING_COUNTERPARTY = 'Opening Balance'
ADJUSTMENT_LABEL = 'Stock Adjustment'
ADJUSTMENT_COUNTERPARTY = 'Manual Stock Update'
VOID_PREFIX = 'VOID'

_PREFIXES = {
    TransactionType.OPENING: 'OPENING',
    TransactionType.IN: 'IN',
    TransactionType.OUT: 'OUT',
    TransactionType.REJ: 'REJ',
}

SHORT = 'Short'
ADJ = 'Adj'

# Every prefix an entry of each type may carry, older ledgers included
_LEGACY_PREFIXES = {
    TransactionType.OPENING: ('OPENING',),
    TransactionType.IN: ('IN', 'IN (Short)', 'IN (Adj)'),
    TransactionType.OUT: ('OUT',),
    TransactionType.REJ: ('REJ', 'REJ (Adj)', 'REJ-RETURN'),
}


def reference_label(transaction_type, document_number: str | None,
                    qualifier: str | None = None) -> str:
    """
    Label for an entry caused by a document.

    >>> reference_label(TransactionType.IN, 'INV-2031')
    'IN / INV-2031'
    >>> reference_label(TransactionType.IN, 'INV-2031', qualifier=SHORT)
    'IN (Short) / INV-2031'
    """
    prefix = _PREFIXES[TransactionType(transaction_type)]
    if qualifier:
        prefix = f"{prefix} ({qualifier})"
    return f"{prefix}{SEPARATOR}{document_number or MISSING}"


def void_label(document_number: str | None) -> str:
    return f"{VOID_PREFIX}{SEPARATOR}{document_number or MISSING}"


def legacy_document_number(transaction_type, label: str) -> str | None:
    """
    Recover the document number from a label-only entry.

    Strips any prefix the entry type may carry ("IN / ", "IN (Short) / ",
    "REJ-RETURN / ", "VOID / " and so on).
    Returns None when the label does not carry one.
    """
    if not label:
        return None
    prefixes = (*_LEGACY_PREFIXES[TransactionType(transaction_type)], VOID_PREFIX)
    for prefix in prefixes:
        head = f"{prefix}{SEPARATOR}"
        if label.startswith(head):
            number = label[len(head):].strip()
            return number if number and number != MISSING else None
    return None
