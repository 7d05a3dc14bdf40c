"""Reading transaction records from CSV and writing account snapshots to CSV."""
import csv
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, TextIO, Union

import structlog
from pydantic import ValidationError

from models import AccountSnapshot, TransactionRecord

logger = structlog.get_logger()

REQUIRED_COLUMNS = ("type", "client", "tx")
ACCOUNT_COLUMNS = ("client", "available", "held", "total", "locked")


def parse_row(row: Dict[Optional[str], Optional[str]]) -> TransactionRecord:
    """Validate one DictReader row. Raises ValueError on malformed rows."""
    if None in row:
        raise ValueError(f"Row has more fields than the header: {row[None]!r}")
    cleaned = {
        key: value.strip() if value is not None else None
        for key, value in row.items()
    }
    return TransactionRecord.model_validate(cleaned)


def iter_transactions(lines: Iterable[str]) -> Iterator[TransactionRecord]:
    """Lazily parse CSV lines into records.

    Malformed rows are logged and skipped so one bad row never aborts the
    stream. A missing or incomplete header raises ValueError.
    """
    reader = csv.DictReader(lines)
    if reader.fieldnames is None:
        raise ValueError("Input has no header row")
    reader.fieldnames = [name.strip().lower() for name in reader.fieldnames]
    missing = [column for column in REQUIRED_COLUMNS if column not in reader.fieldnames]
    if missing:
        raise ValueError(f"Input header is missing columns: {', '.join(missing)}")

    for row in reader:
        try:
            yield parse_row(row)
        except (ValidationError, ValueError) as e:
            logger.warning(
                "Invalid input row",
                line=reader.line_num,
                error=str(e)
            )


def read_transactions(path: Union[str, Path]) -> Iterator[TransactionRecord]:
    """Yield records from the CSV file at `path`, closing it when exhausted."""
    with open(path, newline="", encoding="utf-8") as handle:
        yield from iter_transactions(handle)


def format_account(account: AccountSnapshot) -> list:
    return [
        account.client,
        account.available,
        account.held,
        account.total,
        "true" if account.locked else "false",
    ]


def write_accounts(accounts: Iterable[AccountSnapshot], stream: TextIO) -> int:
    """Write snapshots as CSV with a header row. Returns the number of rows."""
    writer = csv.writer(stream, lineterminator="\n")
    writer.writerow(ACCOUNT_COLUMNS)
    written = 0
    for account in accounts:
        writer.writerow(format_account(account))
        written += 1
    return written
