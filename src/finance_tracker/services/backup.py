"""
Filtered backups of the transaction collection.

Exports strip the transaction ids, so they are meant for spreadsheets and
archives. A full round-trippable dump with ids comes from
``TransactionStore.export_json``.
"""
import json
from datetime import date, timedelta
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional

import pandas as pd

from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.models import Transaction, json_default
from finance_tracker.services.models import ExportResult
from finance_tracker.store.periods import parse_date, shift_months
from finance_tracker.store.transaction_store import TransactionStore
from finance_tracker.logging_setup import get_logger

logger = get_logger(__name__)

EXPORT_COLUMNS = ["amount", "category", "date", "note", "type"]


class BackupFormat(Enum):
    CSV = "csv"
    JSON = "json"


class BackupType(Enum):
    ALL = "all"
    INCOMES = "incomes"
    EXPENSES = "expenses"


class BackupPeriod(Enum):
    ALL_TIME = "all_time"
    LAST_WEEK = "last_week"
    LAST_MONTH = "last_month"
    LAST_YEAR = "last_year"
    CUSTOM = "custom"


def filter_by_type(
    transactions: Iterable[Transaction],
    backup_type: BackupType,
) -> List[Transaction]:
    if backup_type == BackupType.INCOMES:
        return [t for t in transactions if t.type == TransactionType.INCOME]
    if backup_type == BackupType.EXPENSES:
        return [t for t in transactions if t.type == TransactionType.EXPENSE]
    return list(transactions)


def period_start(period: BackupPeriod, today: date) -> Optional[date]:
    """Inclusive start date of a relative period, None for all time"""
    if period == BackupPeriod.LAST_WEEK:
        return today - timedelta(days=7)
    if period == BackupPeriod.LAST_MONTH:
        return shift_months(today, -1)
    if period == BackupPeriod.LAST_YEAR:
        return shift_months(today, -12)
    return None


def filter_by_period(
    transactions: Iterable[Transaction],
    period: BackupPeriod,
    today: date,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> List[Transaction]:
    """
    Keep transactions inside the period.

    Relative periods keep everything on or after their start date (future
    dated entries included). Custom periods are inclusive on both ends.
    Entries with an unparseable date only survive ``ALL_TIME``.

    Raises:
        ValueError: If a custom period is missing either bound
    """
    if period == BackupPeriod.ALL_TIME:
        return list(transactions)

    if period == BackupPeriod.CUSTOM:
        if start is None or end is None:
            raise ValueError("Please select a valid custom period (start and end dates)")
        lower, upper = start, end
    else:
        lower, upper = period_start(period, today), None

    kept = []
    for txn in transactions:
        day = parse_date(txn.date)
        if day is None or day < lower:
            continue
        if upper is not None and day > upper:
            continue
        kept.append(txn)
    return kept


def to_csv(transactions: Iterable[Transaction]) -> str:
    """
    CSV without ids.

    The header row is bare; every value is quoted with embedded double quotes
    backslash-escaped. Other characters, backslashes included, pass through.
    Lines are joined with \\n and there is no trailing newline.
    """
    header = ",".join(EXPORT_COLUMNS)
    rows = [t.to_dict(include_id=False) for t in transactions]
    if not rows:
        return header

    df = pd.DataFrame.from_records(rows, columns=EXPORT_COLUMNS).fillna("").astype(str)
    for column in EXPORT_COLUMNS:
        df[column] = '"' + df[column].str.replace('"', '\\"', regex=False) + '"'
    return "\n".join([header, *(",".join(row) for row in df.itertuples(index=False))])


def to_json(transactions: Iterable[Transaction]) -> str:
    """Pretty-printed JSON array without ids"""
    return json.dumps(
        [t.to_dict(include_id=False) for t in transactions],
        indent=2,
        default=json_default,
        ensure_ascii=False,
    )


class BackupService:
    """Exports a filtered slice of the store to a file"""

    def __init__(self, store: TransactionStore):
        self.store = store

    def select(
        self,
        backup_type: BackupType = BackupType.ALL,
        period: BackupPeriod = BackupPeriod.ALL_TIME,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> List[Transaction]:
        """Transactions matching the type and period filters"""
        return filter_by_period(
            filter_by_type(self.store.transactions, backup_type),
            period,
            today or self.store.today(),
            start=start,
            end=end,
        )

    def export(
        self,
        fmt: BackupFormat,
        destination: Path,
        backup_type: BackupType = BackupType.ALL,
        period: BackupPeriod = BackupPeriod.ALL_TIME,
        start: Optional[date] = None,
        end: Optional[date] = None,
        today: Optional[date] = None,
    ) -> ExportResult:
        """
        Write the filtered transactions to ``destination``.

        Nothing is written when no transaction matches.

        Raises:
            ValueError: If a custom period is missing either bound
        """
        selected = self.select(backup_type, period, start=start, end=end, today=today)
        if not selected:
            logger.info("Export skipped: no transactions matched")
            return ExportResult(format=fmt.value, exported=0)

        content = to_csv(selected) if fmt == BackupFormat.CSV else to_json(selected)
        destination = Path(destination)
        destination.write_text(content, encoding="utf-8")
        logger.info("Exported %d transactions to %s", len(selected), destination)

        return ExportResult(
            format=fmt.value,
            exported=len(selected),
            destination=destination,
        )
