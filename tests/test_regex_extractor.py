from decimal import Decimal

import pytest

from extractors.financial_rules import as_currency_code, parse_amount
from extractors.models import Money, RawDocument, Transaction, TransactionBuilder, TransactionKind
from extractors.regex_extractor import (
    Block,
    Context,
    DocumentType,
    MandatorySectionUnmatched,
    PDFExtractor,
    Section,
    TransactionPipeline,
    UnrecognizedDocument,
)


def set_amount(t, v, context):
    amount = parse_amount(v["amount"])
    currency = as_currency_code(v["currency"])
    t.set_amount(amount)
    t.set_currency_code(currency)


def always_wrap(t):
    return Transaction(
        kind=t.kind,
        security=None,
        shares=None,
        date=None,
        amount=Money("EUR", t.amount if t.amount is not None else Decimal(0)),
    )


def make_pipeline(*sections, wrap=always_wrap):
    return TransactionPipeline(
        subject=lambda context: TransactionBuilder(TransactionKind.BUY),
        sections=sections,
        wrap=wrap,
    )


AMOUNT = Section("amount", r"^Betrag (?P<amount>[.,\d]+) (?P<currency>\w{3})$", set_amount, optional=True)


class TestContext:
    def test_put_get_remove(self):
        context = Context()
        assert context.get("negative") is None
        context.put("negative", "X")
        assert "negative" in context
        assert context.get("negative") == "X"
        context.remove("negative")
        context.remove("negative")
        assert "negative" not in context

    def test_to_dict_is_a_copy(self):
        context = Context()
        context.put("exchangeRate", Decimal("1.24495"))

        snapshot = context.to_dict()
        snapshot.clear()

        assert context.to_dict() == {"exchangeRate": Decimal("1.24495")}


class TestSection:
    def test_patterns_must_match_consecutive_lines(self):
        section = Section("pair", [r"^A$", r"^(?P<b>B)$"], lambda t, v, c: None)

        assert section.match(["A", "x", "B"]) is None
        captures, next_offset = section.match(["x", "A", "A", "B", "y"])
        assert captures == {"b": "B"}
        assert next_offset == 4

    def test_patterns_are_anchored_to_the_full_line(self):
        section = Section("amount", r"Betrag (?P<amount>[.,\d]+)", lambda t, v, c: None)
        assert section.match(["Betrag 1,00 EUR"]) is None
        assert section.match(["Betrag 1,00"]) is not None

    def test_captures_of_all_patterns_are_merged(self):
        section = Section(
            "date",
            [r"^Handelstag (?P<date>\S+)$", r"^Handelszeit (?P<time>\S+)$"],
            lambda t, v, c: None,
        )
        captures, _ = section.match(["Handelstag 05.05.2021", "Handelszeit 09:04"])
        assert captures == {"date": "05.05.2021", "time": "09:04"}

    def test_optional_section_consumes_nothing_when_unmatched(self):
        builder = TransactionBuilder(TransactionKind.BUY)
        assert AMOUNT.apply(builder, ["nothing here"], Context(), start=0) == 0
        assert builder.amount is None

    def test_required_section_raises_when_unmatched(self):
        section = Section("amount", AMOUNT.patterns, set_amount)
        with pytest.raises(MandatorySectionUnmatched):
            section.apply(TransactionBuilder(TransactionKind.BUY), ["nothing"], Context())

    def test_invalid_currency_skips_optional_section(self):
        builder = TransactionBuilder(TransactionKind.BUY)
        AMOUNT.apply(builder, ["Betrag 1,00 QQQ"], Context())
        assert builder.amount is None

    def test_invalid_currency_fails_required_section(self):
        section = Section("amount", AMOUNT.patterns, set_amount)
        with pytest.raises(MandatorySectionUnmatched):
            section.apply(TransactionBuilder(TransactionKind.BUY), ["Betrag 1,00 QQQ"], Context())

    def test_section_needs_a_pattern(self):
        with pytest.raises(ValueError):
            Section("empty", [], lambda t, v, c: None)


class TestTransactionPipeline:
    def test_sections_tolerate_any_line_order(self):
        first = Section("a", r"^first (?P<x>\d+)$", lambda t, v, c: c.put("first", v["x"]))
        second = Section("b", r"^second (?P<x>\d+)$", lambda t, v, c: c.put("second", v["x"]))
        context = Context()

        make_pipeline(first, second).run(["second 2", "first 1"], context)

        assert context.get("first") == "1"
        assert context.get("second") == "2"

    def test_later_sections_overwrite_earlier_values(self):
        other = Section("other", r"^Endbetrag (?P<amount>[.,\d]+) (?P<currency>\w{3})$", set_amount, optional=True)
        item = make_pipeline(AMOUNT, other).run(["Betrag 1,00 EUR", "Endbetrag 2,00 EUR"], Context())
        assert item.amount.amount == Decimal("2.00")

    def test_wrap_may_discard(self):
        pipeline = make_pipeline(AMOUNT, wrap=lambda t: None)
        assert pipeline.run(["Betrag 1,00 EUR"], Context()) is None

    def test_with_sections_appends(self):
        pipeline = make_pipeline(AMOUNT)
        extended = pipeline.with_sections([AMOUNT])
        assert len(pipeline.sections) == 1
        assert len(extended.sections) == 2


class TestBlock:
    def test_span_ends_before_next_start(self):
        block = Block(r"^Kauf$", make_pipeline())
        assert block.spans(["x", "Kauf", "a", "Kauf", "b"]) == [(1, 2), (3, 4)]

    def test_adjacent_start_markers_give_independent_items(self):
        block = Block(r"^Kauf$", make_pipeline(AMOUNT))
        results = block.parse(["Kauf", "Kauf", "Betrag 3,00 EUR"], Context())

        assert [first for first, _ in results] == [0, 1]
        assert results[0][1].amount.amount == Decimal("0")
        assert results[1][1].amount.amount == Decimal("3.00")

    def test_end_marker_closes_span(self):
        block = Block(r"^Start$", make_pipeline(), end=r"^Ende$")
        lines = ["Start", "a", "Ende", "b", "Start", "c"]
        # the second block never ends and is dropped
        assert block.spans(lines) == [(0, 2)]

    def test_line_limit(self):
        block = Block(r"^Kauf$", make_pipeline(), max_lines=2)
        assert block.spans(["Kauf", "a", "b", "c"]) == [(0, 1)]

        with_end = Block(r"^Kauf$", make_pipeline(), end=r"^Ende$", max_lines=2)
        assert with_end.spans(["Kauf", "a", "b", "Ende"]) == []
        assert with_end.spans(["Kauf", "Ende"]) == [(0, 1)]

    def test_failed_block_does_not_affect_siblings(self):
        required = Section("amount", AMOUNT.patterns, set_amount)
        block = Block(r"^Kauf$", make_pipeline(required))
        results = block.parse(["Kauf", "nothing", "Kauf", "Betrag 5,00 EUR"], Context())

        assert len(results) == 1
        assert results[0][1].amount.amount == Decimal("5.00")


class TestDocumentType:
    def test_signature_is_searched_in_whole_text(self):
        document_type = DocumentType(r"Dividendengutschrift")
        assert document_type.matches("Sparkasse\nIhre Dividendengutschrift\n")
        assert not document_type.matches("Kauf")

    def test_items_follow_block_encounter_order(self):
        document_type = DocumentType(r"Kauf|Zins")
        document_type.add_block(Block(r"^Zins$", make_pipeline(AMOUNT)))
        document_type.add_block(Block(r"^Kauf$", make_pipeline(AMOUNT)))

        lines = ["Kauf", "Betrag 1,00 EUR", "Zins", "Betrag 2,00 EUR"]
        items = document_type.parse(RawDocument(lines=tuple(lines)))

        assert [item.amount.amount for item in items] == [Decimal("1.00"), Decimal("2.00")]

    def test_context_is_fresh_for_every_document(self):
        seen = []

        def remember(t, v, context):
            seen.append(context.get("flag"))
            context.put("flag", "X")

        document_type = DocumentType(r"Kauf")
        document_type.add_block(Block(r"^Kauf$", make_pipeline(Section("flag", r"^Kauf$", remember))))

        document = RawDocument(lines=("Kauf",))
        document_type.parse(document)
        document_type.parse(document)

        assert seen == [None, None]


class TestPDFExtractor:
    def make_extractor(self):
        extractor = PDFExtractor()
        extractor.add_bank_identifier("Musterbank")
        document_type = DocumentType(r"Kauf")
        document_type.add_block(Block(r"^Kauf$", make_pipeline(AMOUNT)))
        extractor.add_document_type(document_type)
        return extractor

    def test_unknown_bank_is_rejected(self):
        with pytest.raises(UnrecognizedDocument):
            self.make_extractor().extract("Andere Bank\nKauf\nBetrag 1,00 EUR")

    def test_no_matching_document_type_is_rejected(self):
        with pytest.raises(UnrecognizedDocument):
            self.make_extractor().extract("Musterbank\nKontoauszug")

    def test_extract_sets_source(self):
        document = RawDocument.from_text("Musterbank\nKauf\nBetrag 1,00 EUR", source="a.txt")
        items = self.make_extractor().extract(document)

        assert len(items) == 1
        assert items[0].source == "a.txt"
