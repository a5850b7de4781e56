import pytest

from extractors import BookingRules, ConflictPolicy, SBrokerPDFExtractor, SecurityRegistry


BUY_TEXT = """S Broker AG & Co. KG
Kauf
Nominale Wertpapierbezeichnung ISIN (WKN)
Stück 7,1535 BGF - WORLD TECHNOLOGY FUND LU0171310443 (A0BMAN)
Auftrag vom 27.02.2021 01:31:42 Uhr
Handelstag 05.05.2021 EUR 498,20-
Handelszeit 09:04 Orderentgelt EUR 10,90-
Börse Stuttgart Börsengebühr EUR 2,29-
Ausmachender Betrag 500,00- EUR
"""

SELL_WITH_REFUND_TEXT = """Sparkasse Musterstadt
Verkauf
Gattungsbezeichnung ISIN
iS.EO G.B.C.1.5-10.5y.U.ETF DE Inhaber-Anteile DE000A0H0785
STK 16,000 EUR 120,4000
Handelstag 03.06.2015 EUR 1.926,40
Handelszeit 10:15
Wert Konto-Nr. Betrag zu Ihren Gunsten
05.06.2015 10/0000/000 EUR 1.915,50
zu versteuern (negativ) EUR 45,85
Kapitalertragsteuer EUR 10,88
Solidaritätszuschlag EUR 0,60
Wert Konto-Nr. Abrechnungs-Nr. Betrag zu Ihren Gunsten
03.06.2015 10/3874/009 87966195 EUR 11,48
"""

DIVIDEND_TEXT = """Sparkasse Musterstadt
Dividendengutschrift
Gattungsbezeichnung ISIN
Microsoft Corp. Registered Shares US5949181045
STK 16,000 17.11.2014 17.11.2014 USD 0,310000
ausländische Dividende USD 76,69
Wert Konto-Nr. Devisenkurs Betrag zu Ihren Gunsten
15.12.2014 12/3456/789 EUR/USD 1,24495 EUR 52,36
davon anrechenbare US-Quellensteuer 15% USD 11,50
"""

FUND_PURCHASE_TEXT = """S Broker AG & Co. KG
Wertpapier Abrechnung Ausgabe Investmentfonds
Nominale Wertpapierbezeichnung ISIN (WKN)
Stück 7,1535 BGF - WORLD TECHNOLOGY FUND LU0171310443 (A0BMAN)
Auftrag vom 27.02.2021 01:31:42 Uhr
Kurswert 509,71- EUR
Kundenbonifikation 40 % vom Ausgabeaufschlag 9,71 EUR
Ausgabeaufschlag pro Anteil 5,00 %
Ausmachender Betrag 500,00- EUR
"""


@pytest.fixture
def securities():
    return SecurityRegistry()


@pytest.fixture
def extractor(securities):
    return SBrokerPDFExtractor(securities=securities)


@pytest.fixture
def extractor_for_policy(securities):
    """Build an extractor whose fee and tax conflicts use the given policy."""
    def build(policy: ConflictPolicy):
        bookings = BookingRules(tax_policy=policy, fee_policy=policy)
        return SBrokerPDFExtractor(securities=securities, bookings=bookings)
    return build
