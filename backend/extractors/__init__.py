"""
Extractors Module - Rule-based transaction extraction from statement text.
"""

from .financial_rules import (
    InvalidCurrencyCode,
    InvalidNumericLiteral,
    as_currency_code,
    convert_from_home,
    convert_to_home,
    format_amount,
    parse_amount,
)

from .models import (
    Money,
    RawDocument,
    Security,
    Transaction,
    TransactionBuilder,
    TransactionKind,
)

from .bookings import (
    BookingRules,
    ConflictPolicy,
    ConflictingFeeEntry,
    ConflictingTaxEntry,
)

from .securities import SecurityRegistry

from .regex_extractor import (
    Block,
    Context,
    DocumentType,
    ExtractionError,
    MandatorySectionUnmatched,
    PDFExtractor,
    Section,
    TransactionPipeline,
    UnrecognizedDocument,
)

from .registry import ExtractorRegistry, extract_transactions_from_text

# Importing the institution modules registers them
from .sbroker import SBrokerPDFExtractor

__all__ = [
    'InvalidCurrencyCode',
    'InvalidNumericLiteral',
    'as_currency_code',
    'convert_from_home',
    'convert_to_home',
    'format_amount',
    'parse_amount',
    'Money',
    'RawDocument',
    'Security',
    'Transaction',
    'TransactionBuilder',
    'TransactionKind',
    'BookingRules',
    'ConflictPolicy',
    'ConflictingFeeEntry',
    'ConflictingTaxEntry',
    'SecurityRegistry',
    'Block',
    'Context',
    'DocumentType',
    'ExtractionError',
    'MandatorySectionUnmatched',
    'PDFExtractor',
    'Section',
    'TransactionPipeline',
    'UnrecognizedDocument',
    'ExtractorRegistry',
    'extract_transactions_from_text',
    'SBrokerPDFExtractor',
]
