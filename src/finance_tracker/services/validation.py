from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction

class TransactionInputError(ValueError):
    """Raised when user-entered transaction fields are incomplete or invalid."""
    pass

def parse_amount(value: Any) -> Decimal:
    """
    Parse a user-entered amount.

    Raises:
        TransactionInputError: If it is not a finite, non-negative number
    """
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise TransactionInputError(f"Amount must be a number, got '{value}'")

    if not amount.is_finite():
        raise TransactionInputError(f"Amount must be a number, got '{value}'")
    if amount < 0:
        raise TransactionInputError("Amount cannot be negative; use the type to mark an expense")
    return amount

def validate_entry(
    type: Any,
    amount: Any,
    category: Optional[str],
    date_str: Optional[str],
    note: Optional[str] = None,
    today: Optional[date] = None,
) -> Transaction:
    """
    Validate entry-form fields and build an id-less Transaction.

    Args:
        type: 'income' / 'expense' or a TransactionType
        amount: Amount as entered (string or number)
        category: Category name
        date_str: Date as YYYY-MM-DD
        note: Optional free text; blank notes are dropped
        today: Reference date for the "no future dates" rule

    Returns:
        Transaction ready for TransactionStore.add

    Raises:
        TransactionInputError: If a field is missing or invalid
    """
    if type is None or str(getattr(type, "value", type)).strip() == "":
        raise TransactionInputError("Please fill in all fields: type is missing")
    if amount is None or str(amount).strip() == "":
        raise TransactionInputError("Please fill in all fields: amount is missing")
    if not category or not category.strip():
        raise TransactionInputError("Please fill in all fields: category is missing")
    if not date_str or not date_str.strip():
        raise TransactionInputError("Please fill in all fields: date is missing")

    try:
        transaction_type = TransactionType(type)
    except ValueError:
        raise TransactionInputError(f"Type must be 'income' or 'expense', got '{type}'")

    try:
        entry_date = date.fromisoformat(date_str.strip())
    except ValueError:
        raise TransactionInputError(f"Date must be YYYY-MM-DD, got '{date_str}'")

    if entry_date > (today or date.today()):
        raise TransactionInputError("Date cannot be in the future")

    return Transaction(
        amount=parse_amount(amount),
        category=category.strip(),
        date=entry_date.isoformat(),
        type=transaction_type,
        note=note.strip() if note and note.strip() else None,
    )
