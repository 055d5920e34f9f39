from decimal import Decimal
from typing import List

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction
from finance_tracker.services.models import (
    DailyBalance,
    DashboardSummary,
    StatisticsSummary,
    totals_by_category,
)
from finance_tracker.store.periods import days_in_month, parse_date, shift_months
from finance_tracker.store.transaction_store import TransactionStore

class ReportService:
    """Builds the dashboard and statistics views from a TransactionStore"""

    def __init__(self, store: TransactionStore):
        self.store = store

    def dashboard(self) -> DashboardSummary:
        """
        All-time totals plus the current month's daily running balance.

        Returns:
            A DashboardSummary for the month the store's clock is in
        """
        today = self.store.today()
        current = self.store.current_month_transactions

        return DashboardSummary(
            year=today.year,
            month=today.month,
            income_total=self.store.income_total,
            expense_total=self.store.expense_total,
            balance=self.store.balance,
            daily_balances=daily_running_balance(current, today.year, today.month),
            expenses_by_category=totals_by_category(
                t for t in current if t.type == TransactionType.EXPENSE
            ),
        )

    def statistics(self) -> StatisticsSummary:
        """Month over month comparison"""
        today = self.store.today()
        return StatisticsSummary(
            current_month=today.replace(day=1),
            previous_month=shift_months(today.replace(day=1), -1),
            total_balance=self.store.total_balance,
            current_month_balance=self.store.current_month_balance,
            previous_month_balance=self.store.previous_month_balance,
            income_percentage_change=self.store.income_percentage_change,
            expense_percentage_change=self.store.expense_percentage_change,
            has_income_last_month=self.store.has_income_last_month,
            has_expense_last_month=self.store.has_expense_last_month,
        )


def daily_running_balance(
    transactions: List[Transaction],
    year: int,
    month: int,
) -> List[DailyBalance]:
    """
    Running balance for each day of the month.

    Days without activity carry the previous day's balance. An empty month
    gives an empty series.

    Example:
        Income 100 on day 2 and expense 30 on day 4 give
        0, 100, 100, 70, 70, ... for days 1, 2, 3, 4, 5, ...
    """
    if not transactions:
        return []

    by_day = {}
    for txn in transactions:
        day = parse_date(txn.date)
        if day is None or (day.year, day.month) != (year, month):
            continue
        by_day.setdefault(day.day, []).append(txn)

    series = []
    running = Decimal(0)
    for day in range(1, days_in_month(year, month) + 1):
        for txn in by_day.get(day, []):
            running += txn.signed_amount
        series.append(DailyBalance(day=day, balance=running))
    return series
