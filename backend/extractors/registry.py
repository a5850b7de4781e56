"""
Extractor Registry Module
Keeps the institution extractors known to the application and runs the
right ones for a given statement text.
"""

import logging
from typing import Optional, Type, Union

from config import config

from .bookings import BookingRules
from .models import RawDocument, Transaction
from .regex_extractor import UnrecognizedDocument
from .securities import SecurityRegistry

logger = logging.getLogger(__name__)


class ExtractorRegistry:
    _extractors: dict[str, Type] = {}

    @classmethod
    def register_extractor(cls, name: str, extractor_cls: Type):
        logger.debug(f"Registering extractor: {name} -> {extractor_cls.__name__}")
        cls._extractors[name] = extractor_cls

    @classmethod
    def get_extractor(cls, name: str) -> Optional[Type]:
        return cls._extractors.get(name)

    @classmethod
    def list_extractors(cls) -> list[str]:
        return list(cls._extractors.keys())

    @classmethod
    def labels(cls) -> dict[str, str]:
        return {name: extractor_cls.LABEL for name, extractor_cls in cls._extractors.items()}

    @classmethod
    def create_all(
        cls,
        securities: Optional[SecurityRegistry] = None,
        bookings: Optional[BookingRules] = None,
        max_block_lines: Optional[int] = None
    ) -> list:
        """Instantiate every registered extractor around shared collaborators."""
        securities = securities if securities is not None else SecurityRegistry()
        return [
            extractor_cls(securities=securities, bookings=bookings, max_block_lines=max_block_lines)
            for extractor_cls in cls._extractors.values()
        ]

    @classmethod
    def detect_extractor_for_text(cls, text: str) -> Optional[str]:
        """Name of the first extractor whose bank identifier occurs in the text."""
        for name, extractor_cls in cls._extractors.items():
            if extractor_cls().is_recognized(text):
                return name
        return None


def extract_transactions_from_text(
    text: Union[str, RawDocument],
    securities: Optional[SecurityRegistry] = None,
    bookings: Optional[BookingRules] = None,
    max_block_lines: Optional[int] = None
) -> list[Transaction]:
    """
    Extract transactions with every extractor that recognizes the text.

    Args:
        text: Statement text or an already loaded RawDocument
        securities: Security registry shared across documents
        bookings: Tax/fee booking rules (defaults from config)
        max_block_lines: Upper bound on lines per block (defaults from config)

    Returns:
        List of Transaction objects

    Raises:
        UnrecognizedDocument: If no registered extractor recognizes the text
    """
    document = text if isinstance(text, RawDocument) else RawDocument.from_text(text)

    if bookings is None:
        bookings = BookingRules.from_config(config)
    if max_block_lines is None:
        max_block_lines = config.MAX_BLOCK_LINES

    extractors = ExtractorRegistry.create_all(securities, bookings, max_block_lines)
    recognized = [e for e in extractors if e.is_recognized(document.text)]

    if not recognized:
        logger.warning(f"No extractor recognizes {document.source}")
        raise UnrecognizedDocument(f"No registered extractor recognizes {document.source}")

    transactions = []
    failures = []
    for extractor in recognized:
        try:
            transactions.extend(extractor.parse(document))
        except UnrecognizedDocument as e:
            failures.append(str(e))
            logger.info(str(e))

    if len(failures) == len(recognized):
        raise UnrecognizedDocument("; ".join(failures))

    return transactions
