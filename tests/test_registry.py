from decimal import Decimal

import pytest

from extractors import (
    ExtractorRegistry,
    RawDocument,
    SBrokerPDFExtractor,
    SecurityRegistry,
    TransactionKind,
    UnrecognizedDocument,
    extract_transactions_from_text,
)

from conftest import BUY_TEXT, SELL_WITH_REFUND_TEXT


def test_sbroker_is_registered():
    assert "sbroker" in ExtractorRegistry.list_extractors()
    assert ExtractorRegistry.get_extractor("sbroker") is SBrokerPDFExtractor
    assert ExtractorRegistry.labels()["sbroker"] == SBrokerPDFExtractor.LABEL


def test_detect_extractor_for_text():
    assert ExtractorRegistry.detect_extractor_for_text(BUY_TEXT) == "sbroker"
    assert ExtractorRegistry.detect_extractor_for_text("Musterbank AG") is None


def test_create_all_shares_security_registry():
    securities = SecurityRegistry()
    extractors = ExtractorRegistry.create_all(securities=securities, max_block_lines=50)

    assert all(extractor.securities is securities for extractor in extractors)
    assert all(extractor.max_block_lines == 50 for extractor in extractors)


def test_extract_transactions_from_text():
    items = extract_transactions_from_text(SELL_WITH_REFUND_TEXT)

    assert [item.kind for item in items] == [TransactionKind.SELL, TransactionKind.TAX_REFUND]
    assert items[1].amount.amount == Decimal("11.48")


def test_documents_share_securities():
    securities = SecurityRegistry()
    first = extract_transactions_from_text(RawDocument.from_text(BUY_TEXT, source="a.txt"), securities=securities)
    second = extract_transactions_from_text(RawDocument.from_text(BUY_TEXT, source="b.txt"), securities=securities)

    assert first[0].security is second[0].security
    assert second[0].source == "b.txt"


@pytest.mark.parametrize("text", [
    "Musterbank AG\nKauf",
    "S Broker AG & Co. KG\nDepotauszug",
])
def test_unrecognized(text):
    with pytest.raises(UnrecognizedDocument):
        extract_transactions_from_text(text)
