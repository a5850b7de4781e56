"""
Regex Extractor Module
Rule-based extraction engine. Documents are classified by DocumentType
signatures, cut into Blocks at marker lines, and each Block runs an ordered
pipeline of Sections that populate a TransactionBuilder.
"""

import logging
import re
from dataclasses import replace
from enum import Enum
from typing import Callable, Iterable, Optional, Union

from .bookings import BookingRules, ConflictingFeeEntry, ConflictingTaxEntry
from .financial_rules import InvalidCurrencyCode, InvalidNumericLiteral, as_currency_code, parse_amount
from .models import Money, RawDocument, Transaction, TransactionBuilder
from .securities import SecurityRegistry

logger = logging.getLogger(__name__)

Pattern = Union[str, "re.Pattern"]


class ExtractionError(Exception):
    """Base class for extraction failures."""
    pass


class UnrecognizedDocument(ExtractionError):
    """No bank identifier or document type matched the text."""
    pass


class MandatorySectionUnmatched(ExtractionError):
    """A required section found nothing; the enclosing block is abandoned."""
    pass


def _compile(pattern: Pattern) -> "re.Pattern":
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern)


class Context:
    """
    Per-document scratch space shared by all sections and blocks of one
    DocumentType run. Holds flags (presence of a key) and derived values
    such as an exchange rate.
    """

    def __init__(self):
        self._values = {}

    def get(self, key: str, default=None):
        return self._values.get(key, default)

    def put(self, key: str, value):
        self._values[key] = value

    def remove(self, key: str):
        self._values.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def to_dict(self) -> dict:
        return dict(self._values)

    def __repr__(self) -> str:
        return f"Context({self._values})"


class Section:
    """
    One matching rule of a pipeline.

    All patterns must fully match consecutive lines, in order. Named groups
    of every pattern are merged into one capture map which is handed to the
    assignment function together with the builder and the context.
    """

    def __init__(
        self,
        name: str,
        patterns: Union[Pattern, Iterable[Pattern]],
        assign: Callable[[TransactionBuilder, dict, Context], None],
        optional: bool = False
    ):
        if isinstance(patterns, (str, re.Pattern)):
            patterns = [patterns]
        self.name = name
        self.patterns = tuple(_compile(p) for p in patterns)
        self.assign = assign
        self.optional = optional

        if not self.patterns:
            raise ValueError(f"Section '{name}' needs at least one pattern")

    def match(self, lines, start: int = 0, end: Optional[int] = None) -> Optional[tuple[dict, int]]:
        """
        Find the first offset in lines[start:end] where all patterns match
        back to back.

        Returns:
            (captures, next_offset) or None if the section does not match
        """
        end = len(lines) if end is None else min(end, len(lines))
        width = len(self.patterns)

        for offset in range(start, end - width + 1):
            captures = {}
            for index, pattern in enumerate(self.patterns):
                m = pattern.fullmatch(lines[offset + index])
                if m is None:
                    break
                for key, value in m.groupdict().items():
                    if value is not None or key not in captures:
                        captures[key] = value
            else:
                return captures, offset + width

        return None

    def apply(self, builder: TransactionBuilder, lines, context: Context, start: int = 0) -> int:
        """
        Match and run the assignment.

        Returns:
            Offset after the matched lines, or start if nothing was consumed

        Raises:
            MandatorySectionUnmatched: If a required section fails to match or
                its captured text cannot be parsed
        """
        result = self.match(lines, start)

        if result is None:
            if self.optional:
                logger.debug(f"Optional section '{self.name}' skipped")
                return start
            raise MandatorySectionUnmatched(f"Mandatory section '{self.name}' not found")

        captures, next_offset = result
        try:
            self.assign(builder, captures, context)
        except (InvalidNumericLiteral, InvalidCurrencyCode) as e:
            if self.optional:
                logger.debug(f"Optional section '{self.name}' skipped: {e}")
                return start
            raise MandatorySectionUnmatched(f"Mandatory section '{self.name}' invalid: {e}") from e

        logger.debug(f"Section '{self.name}' matched: {captures}")
        return next_offset

    def __repr__(self) -> str:
        return f"Section(name={self.name}, patterns={len(self.patterns)}, optional={self.optional})"


class TransactionPipeline:
    """
    Ordered sections run against one block span.

    Every section scans the whole span on its own, so layouts that print
    optional lines in a different order still match. The wrap step turns
    the populated builder into an item or discards it by returning None.
    """

    def __init__(
        self,
        subject: Callable[[Context], TransactionBuilder],
        sections: Iterable[Section],
        wrap: Callable[[TransactionBuilder], Optional[Transaction]]
    ):
        self.subject = subject
        self.sections = tuple(sections)
        self.wrap = wrap

    def run(self, lines, context: Context) -> Optional[Transaction]:
        """
        Raises:
            MandatorySectionUnmatched: If a required section fails
            ConflictingTaxEntry, ConflictingFeeEntry: Under the error policy
        """
        builder = self.subject(context)
        for section in self.sections:
            section.apply(builder, lines, context)
        return self.wrap(builder)

    def with_sections(self, sections: Iterable[Section]) -> "TransactionPipeline":
        """Return a copy with more sections appended."""
        return TransactionPipeline(self.subject, self.sections + tuple(sections), self.wrap)


class BlockState(Enum):
    SEEKING = "seeking"
    COLLECTING = "collecting"
    RUNNING = "running"
    DONE = "done"


class Block:
    """
    A span of lines opened by a start marker and closed by an end marker,
    the next start marker, the end of the document or the line limit.
    """

    def __init__(
        self,
        start: Pattern,
        pipeline: TransactionPipeline,
        end: Optional[Pattern] = None,
        max_lines: Optional[int] = None
    ):
        self.start = _compile(start)
        self.end = _compile(end) if end is not None else None
        self.pipeline = pipeline
        self.max_lines = max_lines

    def spans(self, lines) -> list[tuple[int, int]]:
        """
        Locate all non-overlapping spans as (first_line, last_line), inclusive.
        """
        spans = []
        state = BlockState.SEEKING
        first = 0
        index = 0
        total = len(lines)

        while index < total:
            if state == BlockState.SEEKING:
                if self.start.fullmatch(lines[index]):
                    state = BlockState.COLLECTING
                    first = index
                index += 1
                continue

            # collecting
            reached_limit = self.max_lines is not None and index - first >= self.max_lines
            if self.end is not None:
                if reached_limit:
                    logger.debug(f"Block at line {first} has no end marker within {self.max_lines} lines")
                    state = BlockState.SEEKING
                    index = first + 1
                elif self.end.fullmatch(lines[index]):
                    spans.append((first, index))
                    state = BlockState.SEEKING
                    index += 1
                else:
                    index += 1
                continue

            if self.start.fullmatch(lines[index]) or reached_limit:
                spans.append((first, index - 1))
                state = BlockState.SEEKING
                continue
            index += 1

        if state == BlockState.COLLECTING:
            if self.end is None:
                spans.append((first, total - 1))
            else:
                logger.debug(f"Block at line {first} has no end marker")

        return spans

    def parse(self, lines, context: Context) -> list[tuple[int, Transaction]]:
        """
        Run the pipeline on every span.

        A span whose pipeline fails contributes nothing; other spans are
        unaffected.

        Returns:
            (first_line, item) pairs in document order
        """
        results = []
        for first, last in self.spans(lines):
            span = lines[first:last + 1]
            try:
                item = self.pipeline.run(span, context)
            except (MandatorySectionUnmatched, ConflictingTaxEntry, ConflictingFeeEntry) as e:
                logger.warning(f"Block at line {first + 1} abandoned: {e}")
                continue

            if item is None:
                logger.debug(f"Block at line {first + 1} produced no item")
                continue

            results.append((first, item))
        return results


class DocumentType:
    """
    A document-level signature plus the blocks to try when it matches.
    Owns the context for one run over one document.
    """

    def __init__(self, signature: Pattern, name: Optional[str] = None):
        self.signature = _compile(signature)
        self.name = name or self.signature.pattern
        self._blocks: list[Block] = []

    @property
    def blocks(self) -> tuple:
        return tuple(self._blocks)

    def add_block(self, block: Block):
        self._blocks.append(block)

    def matches(self, text: str) -> bool:
        return self.signature.search(text) is not None

    def parse(self, document: RawDocument) -> list[Transaction]:
        """
        Run every block against the document with a fresh context.

        Items are ordered by the line their block started on; blocks that
        start on the same line keep their registration order.
        """
        context = Context()
        lines = [line.strip() for line in document.lines]

        found = []
        for order, block in enumerate(self._blocks):
            for first, item in block.parse(lines, context):
                found.append((first, order, item))

        logger.debug(f"{self.name}: {len(found)} item(s), context {context.to_dict()}")
        found.sort(key=lambda entry: (entry[0], entry[1]))
        return [item for _, _, item in found]

    def __repr__(self) -> str:
        return f"DocumentType(name={self.name}, blocks={len(self._blocks)})"


class PDFExtractor:
    """
    Base class for institution extractors.

    Subclasses register bank identifiers and document types in __init__;
    after that the rule tables are only read.
    """

    LABEL = "Generic"

    def __init__(
        self,
        securities: Optional[SecurityRegistry] = None,
        bookings: Optional[BookingRules] = None,
        max_block_lines: Optional[int] = None
    ):
        self.securities = securities if securities is not None else SecurityRegistry()
        self.bookings = bookings if bookings is not None else BookingRules()
        self.max_block_lines = max_block_lines
        self._bank_identifiers: list[str] = []
        self._document_types: list[DocumentType] = []

    @property
    def label(self) -> str:
        return self.LABEL

    @property
    def document_types(self) -> tuple:
        return tuple(self._document_types)

    def add_bank_identifier(self, identifier: str):
        self._bank_identifiers.append(identifier)

    def add_document_type(self, document_type: DocumentType):
        self._document_types.append(document_type)

    def is_recognized(self, text: str) -> bool:
        """True if any bank identifier occurs in the text."""
        return any(identifier in text for identifier in self._bank_identifiers)

    def parse(self, document: RawDocument) -> list[Transaction]:
        """
        Run every matching document type, skipping bank identification.

        Raises:
            UnrecognizedDocument: If no document type signature matches
        """
        text = document.text
        matched = [t for t in self._document_types if t.matches(text)]
        if not matched:
            raise UnrecognizedDocument(f"{self.label}: no document type matches {document.source}")

        items = []
        for document_type in matched:
            produced = document_type.parse(document)
            logger.debug(f"{document_type.name}: {len(produced)} item(s)")
            items.extend(produced)

        items = [replace(item, source=document.source) for item in items]
        logger.info(f"{self.label}: extracted {len(items)} transaction(s) from {document.source}")
        return items

    def extract(self, document: Union[str, RawDocument]) -> list[Transaction]:
        """
        Identify the institution and extract all transactions.

        Raises:
            UnrecognizedDocument: If the text is not from this institution or
                no document type matches
        """
        if isinstance(document, str):
            document = RawDocument.from_text(document)

        if not self.is_recognized(document.text):
            raise UnrecognizedDocument(f"{self.label}: bank identifier not found in {document.source}")

        return self.parse(document)

    # Helpers for assignment functions

    def get_or_create_security(self, values: dict):
        return self.securities.get_or_create(
            name=values.get("name"),
            isin=values.get("isin"),
            wkn=values.get("wkn"),
        )

    def book_tax(self, builder: TransactionBuilder, label: str, values: dict, context: Context):
        tax = Money(as_currency_code(values["currency"]), parse_amount(values["tax"]))
        self.bookings.check_and_set_tax(builder, label, tax, context)

    def book_fee(self, builder: TransactionBuilder, label: str, values: dict, context: Context):
        fee = Money(as_currency_code(values["currency"]), parse_amount(values["fee"]))
        self.bookings.check_and_set_fee(builder, label, fee, context)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(label={self.label})"
