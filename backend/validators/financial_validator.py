"""
Financial Validator Module
Validates extracted transactions for completeness before they are handed on.
"""

import logging
from decimal import Decimal
from extractors.models import Transaction, TransactionKind

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Custom exception for validation errors."""
    pass


class TransactionValidator:
    """Validates transaction data."""

    def __init__(self, strict_mode: bool = False):
        """
        Initialize validator.

        Args:
            strict_mode: If True, raise exceptions on invalid data.
                        If False, log warnings and skip invalid transactions.
        """
        self.strict_mode = strict_mode
        self.validation_stats = self._empty_stats()

    @staticmethod
    def _empty_stats() -> dict:
        return {
            "total_validated": 0,
            "valid": 0,
            "invalid": 0,
            "invalid_security": 0,
            "invalid_shares": 0,
            "invalid_date": 0,
            "invalid_amount": 0,
            "with_warnings": 0
        }

    def validate_transaction(self, transaction: Transaction) -> bool:
        """
        Validate a single transaction.

        Args:
            transaction: Transaction object to validate

        Returns:
            True if valid, False if invalid

        Raises:
            ValidationError: If strict_mode is True and validation fails
        """
        self.validation_stats["total_validated"] += 1
        kind = transaction.kind

        checks = [
            ("invalid_date", transaction.date is not None, "missing date"),
            ("invalid_amount", self._validate_amount(transaction), f"invalid amount {transaction.amount}"),
        ]

        if kind != TransactionKind.TAX_REFUND:
            checks.append(("invalid_security", transaction.security is not None, "missing security"))

        if kind.is_portfolio_transaction:
            checks.append(("invalid_shares", self._validate_shares(transaction.shares), f"invalid shares {transaction.shares}"))

        for stat, ok, msg in checks:
            if ok:
                continue
            self.validation_stats[stat] += 1
            self.validation_stats["invalid"] += 1
            if self.strict_mode:
                raise ValidationError(f"{msg} in transaction: {transaction}")
            logger.warning(f"{msg} in transaction: {transaction}")
            return False

        if transaction.warnings:
            self.validation_stats["with_warnings"] += 1
            for warning in transaction.warnings:
                logger.warning(f"Data quality warning for {transaction}: {warning}")

        self.validation_stats["valid"] += 1
        return True

    def validate_transactions(self, transactions: list[Transaction]) -> list[Transaction]:
        """
        Validate a list of transactions.

        Args:
            transactions: List of Transaction objects

        Returns:
            List of valid transactions (invalid ones filtered out)
        """
        valid_transactions = [txn for txn in transactions if self.validate_transaction(txn)]

        logger.info(
            f"Validation complete: {self.validation_stats['valid']} valid, "
            f"{self.validation_stats['invalid']} invalid out of "
            f"{self.validation_stats['total_validated']} total"
        )

        return valid_transactions

    @staticmethod
    def _validate_amount(transaction: Transaction) -> bool:
        """
        Buy/sell amounts may be zero (free deliveries); dividends and refunds
        must be positive.
        """
        amount = transaction.amount.amount
        if amount < 0:
            return False
        if transaction.kind.is_portfolio_transaction:
            return True
        return amount > Decimal(0)

    @staticmethod
    def _validate_shares(shares) -> bool:
        return shares is not None and shares > 0

    def get_stats(self) -> dict:
        """Get validation statistics."""
        return self.validation_stats.copy()

    def reset_stats(self):
        """Reset validation statistics."""
        self.validation_stats = self._empty_stats()


def validate_transactions(transactions: list[Transaction], strict_mode: bool = False) -> list[Transaction]:
    """
    Convenience function to validate a list of transactions.

    Args:
        transactions: List of Transaction objects
        strict_mode: If True, raise exceptions on invalid data

    Returns:
        List of valid transactions
    """
    validator = TransactionValidator(strict_mode=strict_mode)
    return validator.validate_transactions(transactions)
