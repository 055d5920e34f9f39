"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Dict, List, Optional

@dataclass
class DailyBalance:
    """Running balance at the end of one day of the month"""
    day: int
    balance: Decimal

@dataclass
class DashboardSummary:
    """
    Key figures for the dashboard view.

    Totals cover every stored transaction; ``daily_balances`` covers the
    current month only.
    """

    year: int
    month: int
    income_total: Decimal
    expense_total: Decimal
    balance: Decimal
    daily_balances: List[DailyBalance] = field(default_factory=list)
    expenses_by_category: Dict[str, Decimal] = field(default_factory=dict)

    @property
    def start_date(self) -> date:
        """First day of the month"""
        return date(self.year, self.month, 1)

    @property
    def month_label(self) -> str:
        return self.start_date.strftime("%B %Y")

    @property
    def top_spending_categories(self) -> List[tuple[str, Decimal]]:
        """Categories sorted by spending amount (descending)"""
        return sorted(
            self.expenses_by_category.items(),
            key=lambda x: x[1],
            reverse=True
        )

@dataclass
class StatisticsSummary:
    """Month over month comparison for the statistics view"""

    current_month: date
    previous_month: date
    total_balance: Decimal
    current_month_balance: Decimal
    previous_month_balance: Decimal
    income_percentage_change: Decimal
    expense_percentage_change: Decimal
    has_income_last_month: bool
    has_expense_last_month: bool

    @property
    def current_month_label(self) -> str:
        return self.current_month.strftime("%B")

    @property
    def previous_month_label(self) -> str:
        return self.previous_month.strftime("%B")

@dataclass
class ExportResult:
    """
    Result of a backup export.

    ``destination`` is None when nothing matched and no file was written.
    """
    format: str
    exported: int
    destination: Optional[Path] = None

    @property
    def success(self) -> bool:
        return self.exported > 0

    def __str__(self) -> str:
        if not self.success:
            return "No transactions matched; nothing exported"
        return f"Exported {self.exported} transactions to {self.destination} ({self.format.upper()})"


def totals_by_category(transactions) -> Dict[str, Decimal]:
    """Sum amounts per category"""
    totals = defaultdict(Decimal)
    for txn in transactions:
        totals[txn.category or "Uncategorized"] += txn.amount
    return dict(totals)
