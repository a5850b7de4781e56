"""
Broker Statement Transaction Extractor - Main Pipeline
Orchestrates loading, extraction, validation, filtering and summary output.
"""

import argparse
import json
import logging
import sys
from collections import defaultdict
from typing import Optional

from config import config
from logging_config import setup_logging
from extractors import (
    BookingRules,
    SecurityRegistry,
    Transaction,
    TransactionKind,
    UnrecognizedDocument,
    extract_transactions_from_text,
)
from loaders.pdf_loader import load_documents, PDFLoadError
from validators.financial_validator import TransactionValidator, ValidationError

logger = logging.getLogger(__name__)


class TransactionFilter:
    """Filters transactions by kind and date range."""

    @staticmethod
    def filter_by_kinds(transactions: list[Transaction], kinds: Optional[list[str]]) -> list[Transaction]:
        """
        Keep transactions whose kind is one of the given kind values.

        Args:
            transactions: List of transactions
            kinds: Kind values such as "buy" or "dividends"; empty keeps all
        """
        if not kinds:
            return transactions

        wanted = {TransactionKind(kind) for kind in kinds}
        filtered = [txn for txn in transactions if txn.kind in wanted]

        logger.info(f"Kind filter {sorted(kinds)}: {len(filtered)}/{len(transactions)} transactions matched")
        return filtered

    @staticmethod
    def filter_by_date_range(
        transactions: list[Transaction],
        start_month: Optional[str],
        end_month: Optional[str]
    ) -> list[Transaction]:
        """
        Filter transactions by month range.

        Args:
            transactions: List of transactions
            start_month: Start month (YYYY-MM), open if None
            end_month: End month (YYYY-MM), open if None

        Returns:
            Filtered list of transactions (undated ones are dropped when a range is set)
        """
        if not start_month and not end_month:
            return transactions

        filtered = []
        for txn in transactions:
            txn_month = TransactionFilter._extract_month(txn)
            if txn_month is None:
                continue
            if start_month and txn_month < start_month:
                continue
            if end_month and txn_month > end_month:
                continue
            filtered.append(txn)

        logger.info(
            f"Date range filter ({start_month} to {end_month}): "
            f"{len(filtered)}/{len(transactions)} transactions matched"
        )
        return filtered

    @staticmethod
    def _extract_month(txn: Transaction) -> Optional[str]:
        """Return YYYY-MM of the transaction date, or None if undated."""
        if txn.date is None:
            return None
        return txn.date.strftime("%Y-%m")


class TransactionGrouper:
    """Groups transactions by kind and month."""

    @staticmethod
    def group_by_kind_month(transactions: list[Transaction]) -> dict[str, dict[str, list[Transaction]]]:
        """
        Returns:
            Nested dict: {kind: {month: [...]}}; undated transactions go under "undated"
        """
        grouped = defaultdict(lambda: defaultdict(list))

        for txn in transactions:
            month = TransactionFilter._extract_month(txn) or "undated"
            grouped[txn.kind.value][month].append(txn)

        return {kind: dict(months) for kind, months in grouped.items()}

    @staticmethod
    def summarize(transactions: list[Transaction]) -> dict:
        """Count and total per kind and currency."""
        summary = {}
        for kind, months in TransactionGrouper.group_by_kind_month(transactions).items():
            totals = defaultdict(lambda: 0)
            count = 0
            for txns in months.values():
                for txn in txns:
                    totals[txn.amount.currency] += txn.amount.amount
                    count += 1
            summary[kind] = {
                "transaction_count": count,
                "months": sorted(months.keys()),
                "totals": {currency: str(total) for currency, total in totals.items()},
            }
        return summary


class BrokerStatementExtractor:
    """Main orchestrator for the statement extraction pipeline."""

    def __init__(self, strict_mode: bool = False):
        """Initialize extractor."""
        self.strict_mode = strict_mode
        self.securities = SecurityRegistry()
        self.bookings = BookingRules.from_config(config)
        self.stats = {
            "files": 0,
            "files_failed": 0,
            "unrecognized": 0,
            "total_extracted": 0,
            "valid_transactions": 0,
            "final_output": 0
        }

    def process(
        self,
        file_paths: list[str],
        kinds: Optional[list[str]] = None,
        start_month: Optional[str] = None,
        end_month: Optional[str] = None
    ) -> dict:
        """
        Run the full pipeline over the given statements.

        Returns:
            Dict with "transactions", "summary" and "errors"

        Raises:
            PDFLoadError: If no file paths are given
            ValidationError: In strict mode, on the first invalid transaction
        """
        logger.info(f"Step 1: Loading {len(file_paths)} file(s)")
        documents, failures = load_documents(file_paths)
        errors = [{"file": path, "error": message} for path, message in failures]
        self.stats["files"] = len(file_paths)
        self.stats["files_failed"] = len(failures)

        logger.info("Step 2: Extracting transactions")
        transactions = []
        for document in documents:
            try:
                extracted = extract_transactions_from_text(
                    document,
                    securities=self.securities,
                    bookings=self.bookings,
                    max_block_lines=config.MAX_BLOCK_LINES,
                )
            except UnrecognizedDocument as e:
                logger.warning(f"Skipping {document.source}: {e}")
                self.stats["unrecognized"] += 1
                errors.append({"file": document.source, "error": str(e)})
                continue
            transactions.extend(extracted)
        self.stats["total_extracted"] = len(transactions)

        logger.info("Step 3: Validating transactions")
        validator = TransactionValidator(strict_mode=self.strict_mode)
        valid = validator.validate_transactions(transactions)
        self.stats["valid_transactions"] = len(valid)

        logger.info("Step 4: Filtering")
        filtered = TransactionFilter.filter_by_kinds(valid, kinds)
        filtered = TransactionFilter.filter_by_date_range(filtered, start_month, end_month)
        self.stats["final_output"] = len(filtered)

        self._print_summary()

        return {
            "transactions": [txn.to_dict() for txn in filtered],
            "summary": {
                "stats": dict(self.stats),
                "by_kind": TransactionGrouper.summarize(filtered),
            },
            "errors": errors,
        }

    def _print_summary(self):
        """Log extraction summary."""
        logger.info("=" * 80)
        logger.info("EXTRACTION SUMMARY")
        logger.info("=" * 80)
        logger.info(f"Files processed:                 {self.stats['files']}")
        logger.info(f"Files failed to load:            {self.stats['files_failed']}")
        logger.info(f"Unrecognized documents:          {self.stats['unrecognized']}")
        logger.info(f"Total transactions extracted:    {self.stats['total_extracted']}")
        logger.info(f"Valid transactions:              {self.stats['valid_transactions']}")
        logger.info(f"Final transactions in output:    {self.stats['final_output']}")
        logger.info("=" * 80)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Extract buy/sell, dividend and tax refund transactions from broker statements."
    )
    parser.add_argument("files", nargs="+", help="PDF or text statements")
    parser.add_argument(
        "--kind",
        action="append",
        choices=[kind.value for kind in TransactionKind],
        help="Only output this kind (repeatable)",
    )
    parser.add_argument("--start-month", help="First month to include (YYYY-MM)")
    parser.add_argument("--end-month", help="Last month to include (YYYY-MM)")
    parser.add_argument("--strict", action="store_true", default=config.STRICT_MODE,
                        help="Fail on the first invalid transaction")
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Logging level")
    parser.add_argument("--log-file", help="Also log to this file in LOG_DIR")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Command line entry point."""
    args = build_parser().parse_args(argv)
    setup_logging(log_level=args.log_level, log_file=args.log_file)

    extractor = BrokerStatementExtractor(strict_mode=args.strict)

    try:
        result = extractor.process(
            file_paths=args.files,
            kinds=args.kind,
            start_month=args.start_month,
            end_month=args.end_month,
        )
    except ValidationError as e:
        logger.error(f"Invalid transaction: {e}")
        return 1
    except PDFLoadError as e:
        logger.error(f"Input error: {e}")
        return 1

    json.dump(result, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")

    if extractor.stats["files_failed"] + extractor.stats["unrecognized"] == extractor.stats["files"]:
        logger.error("No file could be processed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
