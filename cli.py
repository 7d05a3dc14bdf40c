"""Command-line interface: replay a CSV of transactions and print account balances.

Usage:
  payments-engine transactions.csv > accounts.csv
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional, Union

import structlog

from config import configure_logging, get_settings
from csv_io import read_transactions, write_accounts
from errors import PaymentError
from services import PaymentsEngine

logger = structlog.get_logger()


def process_transactions(
    path: Union[str, Path],
    engine: Optional[PaymentsEngine] = None
) -> PaymentsEngine:
    """Apply every valid row of the file at `path`.

    Invalid rows and rejected transactions are logged and skipped.
    """
    engine = engine or PaymentsEngine()
    applied = rejected = 0
    for record in read_transactions(path):
        try:
            engine.apply(record)
        except PaymentError as e:
            rejected += 1
            logger.warning(
                "Transaction rejected",
                error_code=e.error_code,
                detail=e.message,
                type=record.type.value,
                **e.to_dict()
            )
        else:
            applied += 1
    logger.info("Input processed", path=str(path), applied=applied, rejected=rejected)
    return engine


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payments-engine",
        description="Replay deposits, withdrawals and disputes and print the final account balances as CSV.",
    )
    parser.add_argument("input_csv", type=Path, help="Path to CSV file with transactions")
    parser.add_argument(
        "--unsorted",
        action="store_true",
        help="Write accounts in ledger order instead of sorting by client id",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    configure_logging(settings)

    try:
        engine = process_transactions(args.input_csv)
    except (OSError, ValueError) as e:
        logger.error("Could not read input file", path=str(args.input_csv), error=str(e))
        return 1

    accounts = engine.accounts()
    if settings.sort_output and not args.unsorted:
        accounts = sorted(accounts, key=lambda account: account.client)
    write_accounts(accounts, sys.stdout)
    return 0


if __name__ == "__main__":
    sys.exit(main())
