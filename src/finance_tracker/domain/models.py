from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, Dict, Optional
from finance_tracker.domain.enums import TransactionType

@dataclass(frozen=True)
class Transaction:
    """Core domain model representing a single income or expense entry"""
    amount: Decimal
    category: str
    date: str # ISO calendar date, YYYY-MM-DD
    type: TransactionType
    note: Optional[str] = None
    id: Optional[str] = None

    @property
    def signed_amount(self) -> Decimal:
        """Return amount with sign for net calculations"""
        return self.amount if self.type == TransactionType.INCOME else -self.amount

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    def with_changes(self, **changes: Any) -> "Transaction":
        """
        Return a copy with the given fields replaced.

        The id is never overwritten. String types and plain numeric amounts
        are coerced the same way as when loading a stored record.

        Raises:
            TypeError: If a field name is unknown
        """
        changes.pop("id", None)
        if "type" in changes:
            changes["type"] = TransactionType(changes["type"])
        if "amount" in changes:
            changes["amount"] = to_decimal(changes["amount"])
        return replace(self, **changes)

    def to_dict(self, include_id: bool = True) -> Dict[str, Any]:
        """Convert to the persisted record shape"""
        record: Dict[str, Any] = {}
        if include_id:
            record["id"] = self.id
        record["amount"] = self.amount
        record["category"] = self.category
        record["date"] = self.date
        if self.note is not None:
            record["note"] = self.note
        record["type"] = self.type.value
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transaction":
        """
        Build a transaction from a persisted record.

        Raises:
            KeyError: If a required field is missing
            ValueError: If the type is not income/expense or the amount is not a finite number
            TypeError: If the record is not a mapping or category/date are not strings
        """
        if not isinstance(data["category"], str) or not isinstance(data["date"], str):
            raise TypeError("category and date must be strings")
        return cls(
            id=data["id"],
            amount=to_decimal(data["amount"]),
            category=data["category"],
            date=data["date"],
            type=TransactionType(data["type"]),
            note=data.get("note"),
        )

    def __repr__(self):
        sign = "+" if self.is_income else "-"
        return f"Transaction({self.date}, {self.category}, {sign}{self.amount})"


def to_decimal(value: Any) -> Decimal:
    """Convert a JSON number (or Decimal) into a Decimal without float noise"""
    if isinstance(value, bool) or not isinstance(value, (int, float, Decimal)):
        raise ValueError(f"Amount must be a number, got {value!r}")
    amount = value if isinstance(value, Decimal) else Decimal(str(value))
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return amount


def json_default(value: Any) -> Any:
    """``json.dumps`` hook that writes Decimal amounts as JSON numbers"""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
