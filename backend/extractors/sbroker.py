"""
S Broker Extractor Module
Rules for statements of S Broker AG & Co. KG and the Sparkassen: buy/sell
settlements, fund purchases, dividend and distribution credits, and the
tax refunds printed on sell settlements.
"""

import logging
from decimal import Decimal
from typing import Optional

from .bookings import EXCHANGE_RATE, EXCHANGE_RATE_FOREIGN, EXCHANGE_RATE_HOME
from .financial_rules import (
    as_currency_code,
    compute_front_load_fee,
    parse_amount,
    parse_date,
    parse_exchange_rate,
    parse_shares,
)
from .models import Money, Transaction, TransactionBuilder, TransactionKind
from .regex_extractor import Block, Context, DocumentType, PDFExtractor, Section, TransactionPipeline
from .registry import ExtractorRegistry

logger = logging.getLogger(__name__)

BUY_SELL_SIGNATURE = r"(Kauf(.*)?|Verkauf(.*)?|Wertpapier Abrechnung Ausgabe Investmentfonds)"
BUY_SELL_BLOCK_START = r"^(Kauf(.*)?|Verkauf(.*)?|Wertpapier Abrechnung Ausgabe Investmentfonds)$"

DIVIDEND_SIGNATURE = r"Dividendengutschrift|Aussch.ttung"
DIVIDEND_BLOCK_START = r"^(Dividendengutschrift|Aussch.ttung f.r).*$"

# Set while the current block is a tax refund ("zu versteuern (negativ)"),
# so the tax lines of that block are not booked as payable taxes
NEGATIVE_FLAG = "negative"


class SBrokerPDFExtractor(PDFExtractor):
    """Extractor for S Broker AG & Co. KG / Sparkasse statements."""

    LABEL = "S Broker AG & Co. KG / Sparkasse"

    def __init__(self, securities=None, bookings=None, max_block_lines: Optional[int] = None):
        super().__init__(securities=securities, bookings=bookings, max_block_lines=max_block_lines)

        self.add_bank_identifier("S Broker AG & Co. KG")
        self.add_bank_identifier("Sparkasse")

        self._add_buy_sell_transaction()
        self._add_dividend_transaction()

    # Document types

    def _add_buy_sell_transaction(self):
        document_type = DocumentType(BUY_SELL_SIGNATURE, name="buy/sell")

        pipeline = TransactionPipeline(
            subject=lambda context: TransactionBuilder(TransactionKind.BUY),
            sections=[
                # Kauf / Verkauf / Wertpapier Abrechnung Ausgabe Investmentfonds
                Section(
                    "type",
                    r"^(?P<type>Kauf|Verkauf|Wertpapier Abrechnung Ausgabe Investmentfonds)(.*)?$",
                    self._set_type,
                    optional=True,
                ),
                # Gattungsbezeichnung ISIN
                # iS.EO G.B.C.1.5-10.5y.U.ETF DE Inhaber-Anteile DE000A0H0785
                Section(
                    "isin",
                    [r"^Gattungsbezeichnung ISIN$", r"^(?P<name>.*) (?P<isin>\w{12})$"],
                    self._set_security,
                    optional=True,
                ),
                # Nominale Wertpapierbezeichnung ISIN (WKN)
                # Stück 7,1535 BGF - WORLD TECHNOLOGY FUND LU0171310443 (A0BMAN)
                Section(
                    "nominale",
                    [
                        r"^Nominale Wertpapierbezeichnung ISIN \(WKN\)$",
                        r"^St.ck (?P<shares>[.,\d]+) (?P<name>.*) (?P<isin>\w{12}) \((?P<wkn>.*)\)$",
                    ],
                    self._set_shares_and_security,
                    optional=True,
                ),
                # STK 16,000 EUR 120,4000
                Section("shares", r"^STK (?P<shares>[.,\d]+) .*$", self._set_shares, optional=True),
                # Auftrag vom 27.02.2021 01:31:42 Uhr
                Section(
                    "order date",
                    r"^Auftrag vom (?P<date>\d+.\d+.\d{4}) (?P<time>\d+:\d+:\d+).*$",
                    self._set_date,
                    optional=True,
                ),
                # Handelstag 05.05.2021 EUR 498,20-
                # Handelszeit 09:04
                Section(
                    "trade date",
                    [r"^Handelstag (?P<date>\d+.\d+.\d{4}) .*$", r"^Handelszeit (?P<time>\d+:\d+)(.*)?$"],
                    self._set_date,
                    optional=True,
                ),
                # Ausmachender Betrag 500,00- EUR
                Section(
                    "amount",
                    r"^Ausmachender Betrag (?P<amount>[.,\d]+)-? (?P<currency>\w{3})$",
                    self._set_amount,
                    optional=True,
                ),
                # Wert Konto-Nr. Betrag zu Ihren Lasten
                # 01.10.2014 10/0000/000 EUR 1.930,17
                Section(
                    "settlement amount",
                    [
                        r"^Wert Konto-Nr\. Betrag zu Ihren (Gunsten|Lasten).*$",
                        r"^\d+.\d+.\d{4} [/\d]+ (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    ],
                    self._set_amount,
                    optional=True,
                ),
            ],
            wrap=self._wrap_if_booked,
        ).with_sections(self._tax_sections()).with_sections(self._fee_sections())

        document_type.add_block(Block(BUY_SELL_BLOCK_START, pipeline, max_lines=self.max_block_lines))
        self._add_tax_return_block(document_type)
        self.add_document_type(document_type)

    def _add_dividend_transaction(self):
        document_type = DocumentType(DIVIDEND_SIGNATURE, name="dividend")

        def subject(context: Context) -> TransactionBuilder:
            # Flag and rate belong to the previous dividend block
            context.remove(NEGATIVE_FLAG)
            for key in (EXCHANGE_RATE, EXCHANGE_RATE_HOME, EXCHANGE_RATE_FOREIGN):
                context.remove(key)
            return TransactionBuilder(TransactionKind.DIVIDENDS)

        pipeline = TransactionPipeline(
            subject=subject,
            sections=[
                # Gattungsbezeichnung ISIN
                # iS.EO G.B.C.1.5-10.5y.U.ETF DE Inhaber-Anteile DE000A0H0785
                Section(
                    "isin",
                    [r"^Gattungsbezeichnung ISIN$", r"^(?P<name>.*) (?P<isin>\w{12})$"],
                    self._set_security,
                ),
                # STK 16,000 17.11.2014 17.11.2014 EUR 0,793806
                Section(
                    "shares and date",
                    r"^STK (?P<shares>[.,\d]+) (?P<date>\d+.\d+.\d{4}) .*$",
                    self._set_shares_and_date,
                ),
                # Zinsanteil (Ausschüttung) EUR 12,70
                Section(
                    "interest share",
                    r"^Zinsanteil \(Aussch.ttung\) (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    self._set_amount,
                    optional=True,
                ),
                # ausländische Dividende USD 65,19
                Section(
                    "foreign dividend",
                    r"^ausl.ndische Dividende (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    self._set_amount,
                    optional=True,
                ),
                # Wert Konto-Nr. Betrag zu Ihren Gunsten
                # 17.11.2014 10/0000/000 EUR 12,70
                Section(
                    "credit",
                    [
                        r"^Wert Konto-Nr\. Betrag zu Ihren Gunsten$",
                        r"^\d+.\d+.\d{4} [/\d]+ (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    ],
                    self._set_amount,
                    optional=True,
                ),
                # 15.12.2014 12/3456/789 EUR/USD 1,24495 EUR 52,36
                Section(
                    "exchange rate",
                    r"^.* (?P<home>\w{3})/(?P<foreign>\w{3}) (?P<exchangeRate>[.,\d]+) (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    self._set_exchange_rate,
                    optional=True,
                ),
            ],
            wrap=self._wrap_if_booked,
        ).with_sections(self._tax_sections()).with_sections(self._fee_sections())

        document_type.add_block(Block(DIVIDEND_BLOCK_START, pipeline, max_lines=self.max_block_lines))
        self.add_document_type(document_type)

    def _add_tax_return_block(self, document_type: DocumentType):
        pipeline = TransactionPipeline(
            subject=lambda context: TransactionBuilder(TransactionKind.TAX_REFUND),
            sections=[
                Section(
                    "isin",
                    [r"^Gattungsbezeichnung ISIN$", r"^(?P<name>.*) (?P<isin>\w{12})$"],
                    self._set_security,
                    optional=True,
                ),
                # Wert Konto-Nr. Abrechnungs-Nr. Betrag zu Ihren Gunsten
                # 03.06.2015 10/3874/009 87966195 EUR 11,48
                Section(
                    "refund",
                    [
                        r"^Wert Konto-Nr\. Abrechnungs-Nr\. Betrag zu Ihren Gunsten$",
                        r"^(?P<date>\d+.\d+.\d{4}) [/\d]+ \d+ (?P<currency>\w{3}) (?P<amount>[.,\d]+)$",
                    ],
                    self._set_refund,
                    optional=True,
                ),
            ],
            wrap=self._wrap_tax_refund,
        )
        document_type.add_block(Block(BUY_SELL_BLOCK_START, pipeline, max_lines=self.max_block_lines))

    def _tax_sections(self) -> list[Section]:
        sections = [
            # zu versteuern (negativ) EUR 40,85
            Section(
                "negative",
                r"zu versteuern \(negativ\) (?P<n>.*)",
                lambda t, v, context: context.put(NEGATIVE_FLAG, "X"),
                optional=True,
            ),
        ]

        taxes = [
            # einbehaltene Kapitalertragsteuer EUR 7,03
            ("Kapitalertragsteuer", r"^einbehaltene Kapitalertragsteuer (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # Kapitalertragsteuer EUR 70,16
            ("Kapitalertragsteuer", r"^Kapitalertragsteuer (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # einbehaltener Solidaritätszuschlag EUR 0,38
            ("Solidaritätszuschlag", r"^einbehaltener Solidarit.tszuschlag (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # Solidaritätszuschlag EUR 3,86
            ("Solidaritätszuschlag", r"^Solidarit.tszuschlag (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # einbehaltener Kirchensteuer EUR 1,00
            ("Kirchensteuer", r"^einbehaltener Kirchensteuer (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # Kirchensteuer EUR 1,00
            ("Kirchensteuer", r"^Kirchensteuer (?P<currency>\w{3}) (?P<tax>[.,\d]+)$"),
            # davon anrechenbare US-Quellensteuer 15% USD 13,13
            (
                "Quellensteuer",
                r"^davon anrechenbare US-Quellensteuer [.,\d]+% (?P<currency>\w{3}) (?P<tax>[.,\d]+)$",
            ),
        ]
        for label, pattern in taxes:
            sections.append(Section(label, pattern, self._tax_assigner(label), optional=True))
        return sections

    def _fee_sections(self) -> list[Section]:
        return [
            # Handelszeit 09:02 Orderentgelt                EUR 10,90-
            Section(
                "Orderentgelt",
                r"^.* Orderentgelt\W+(?P<currency>\w{3}) (?P<fee>[.,\d]+)-$",
                self._fee_assigner("Orderentgelt"),
                optional=True,
            ),
            # Orderentgelt
            # EUR 0,71-
            Section(
                "Orderentgelt",
                [r"^Orderentgelt$", r"^(?P<currency>\w{3}) (?P<fee>[.,\d]+)-$"],
                self._fee_assigner("Orderentgelt"),
                optional=True,
            ),
            # Börse Stuttgart Börsengebühr EUR 2,29-
            Section(
                "Börsengebühr",
                r"^.* B.rsengeb.hr (?P<currency>\w{3}) (?P<fee>[.,\d]+)-$",
                self._fee_assigner("Börsengebühr"),
                optional=True,
            ),
            # Kurswert 509,71- EUR
            # Kundenbonifikation 40 % vom Ausgabeaufschlag 9,71 EUR
            # Ausgabeaufschlag pro Anteil 5,00 %
            Section(
                "Ausgabeaufschlag",
                [
                    r"^Kurswert (?P<gross>[.,\d]+)-? (?P<currency>\w{3})$",
                    r"^Kundenbonifikation (?P<bonus>[.,\d]+) % vom Ausgabeaufschlag [.,\d]+ \w{3}$",
                    r"^Ausgabeaufschlag pro Anteil (?P<load>[.,\d]+) %$",
                ],
                self._set_front_load_fee,
                optional=True,
            ),
        ]

    # Assignments

    @staticmethod
    def _set_type(t: TransactionBuilder, v: dict, context: Context):
        if v["type"] == "Verkauf":
            t.set_type(TransactionKind.SELL)

        # A new buy/sell block starts: a refund flag from an earlier block
        # of the same document must not suppress this block's taxes
        context.remove(NEGATIVE_FLAG)

    def _set_security(self, t: TransactionBuilder, v: dict, context: Context):
        t.set_security(self.get_or_create_security(v))

    def _set_shares_and_security(self, t: TransactionBuilder, v: dict, context: Context):
        shares = parse_shares(v["shares"])
        t.set_shares(shares)
        t.set_security(self.get_or_create_security(v))

    @staticmethod
    def _set_shares(t: TransactionBuilder, v: dict, context: Context):
        t.set_shares(parse_shares(v["shares"]))

    @staticmethod
    def _set_date(t: TransactionBuilder, v: dict, context: Context):
        t.set_date(parse_date(v["date"], v.get("time")))

    @staticmethod
    def _set_shares_and_date(t: TransactionBuilder, v: dict, context: Context):
        shares = parse_shares(v["shares"])
        date = parse_date(v["date"], v.get("time"))
        t.set_shares(shares)
        t.set_date(date)

    @staticmethod
    def _set_amount(t: TransactionBuilder, v: dict, context: Context):
        currency = as_currency_code(v["currency"])
        amount = parse_amount(v["amount"])
        t.set_amount(amount)
        t.set_currency_code(currency)

    @staticmethod
    def _set_exchange_rate(t: TransactionBuilder, v: dict, context: Context):
        rate = parse_exchange_rate(v["exchangeRate"])
        currency = as_currency_code(v["currency"])
        amount = parse_amount(v["amount"])
        home = as_currency_code(v["home"])
        foreign = as_currency_code(v["foreign"])

        context.put(EXCHANGE_RATE, rate)
        context.put(EXCHANGE_RATE_HOME, home)
        context.put(EXCHANGE_RATE_FOREIGN, foreign)
        t.set_exchange_rate(rate)

        # The line carries the amount actually credited in the account
        # currency; a foreign gross amount found earlier is kept aside
        if t.currency_code is not None and t.currency_code != currency and t.amount is not None:
            t.set_gross_value(Money(t.currency_code, t.amount))
        t.set_amount(amount)
        t.set_currency_code(currency)

    @staticmethod
    def _set_refund(t: TransactionBuilder, v: dict, context: Context):
        currency = as_currency_code(v["currency"])
        amount = parse_amount(v["amount"])
        date = parse_date(v["date"])
        t.set_date(date)
        t.set_amount(amount)
        t.set_currency_code(currency)

    def _set_front_load_fee(self, t: TransactionBuilder, v: dict, context: Context):
        currency = as_currency_code(v["currency"])
        fee = compute_front_load_fee(
            parse_amount(v["gross"]),
            parse_amount(v["load"]),
            parse_amount(v["bonus"]),
            currency,
        )
        self.bookings.check_and_set_fee(t, "Ausgabeaufschlag", Money(currency, fee), context)

    def _tax_assigner(self, label: str):
        def assign(t: TransactionBuilder, v: dict, context: Context):
            if context.get(NEGATIVE_FLAG) != "X":
                self.book_tax(t, label, v, context)
        return assign

    def _fee_assigner(self, label: str):
        def assign(t: TransactionBuilder, v: dict, context: Context):
            self.book_fee(t, label, v, context)
        return assign

    # Wrap steps

    @staticmethod
    def _wrap_if_booked(t: TransactionBuilder) -> Optional[Transaction]:
        if t.amount is None or t.currency_code is None:
            logger.debug(f"Discarding {t}: no amount found")
            return None
        return t.to_item()

    @staticmethod
    def _wrap_tax_refund(t: TransactionBuilder) -> Optional[Transaction]:
        if t.currency_code is not None and t.amount is not None and t.amount != Decimal(0):
            return t.to_item()
        return None


ExtractorRegistry.register_extractor("sbroker", SBrokerPDFExtractor)
