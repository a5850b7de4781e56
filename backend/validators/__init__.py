"""
Validators Module - Transaction data validation.
"""

from .financial_validator import (
    TransactionValidator,
    validate_transactions,
    ValidationError
)

__all__ = [
    'TransactionValidator',
    'validate_transactions',
    'ValidationError',
]
