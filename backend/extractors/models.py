"""
Domain Models Module
Transaction kinds, money values, securities, the in-progress transaction
builder populated by sections, and the finalized transaction item.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionKind(Enum):
    """Kinds of bookable events a statement can describe."""
    BUY = "buy"
    SELL = "sell"
    DIVIDENDS = "dividends"
    TAX_REFUND = "tax_refund"

    @property
    def is_portfolio_transaction(self) -> bool:
        """Buy/sell entries move shares; the others only move cash."""
        return self in (TransactionKind.BUY, TransactionKind.SELL)


@dataclass(frozen=True)
class Money:
    """An exact amount in a given ISO currency."""

    currency: str
    amount: Decimal

    def __add__(self, other: "Money") -> "Money":
        if other.currency != self.currency:
            raise ValueError(f"Cannot add {other.currency} to {self.currency}")
        return Money(self.currency, self.amount + other.amount)

    def is_zero(self) -> bool:
        return self.amount == 0

    def to_dict(self) -> dict:
        return {"currency": self.currency, "amount": str(self.amount)}

    def __str__(self) -> str:
        return f"{self.currency} {self.amount}"


class Security:
    """A security as referenced by statements (ISIN, WKN and/or name)."""

    def __init__(
        self,
        name: Optional[str] = None,
        isin: Optional[str] = None,
        wkn: Optional[str] = None
    ):
        self.name = name.strip() if name else None
        self.isin = isin
        self.wkn = wkn

    @property
    def identifier(self) -> Optional[str]:
        """Preferred identifier: ISIN, then WKN, then name."""
        return self.isin or self.wkn or self.name

    def to_dict(self) -> dict:
        return {"name": self.name, "isin": self.isin, "wkn": self.wkn}

    def __repr__(self) -> str:
        return f"Security(isin={self.isin}, wkn={self.wkn}, name={self.name})"


@dataclass(frozen=True)
class RawDocument:
    """Immutable text lines of one statement plus where it came from."""

    lines: tuple
    source: str = "<text>"

    @classmethod
    def from_text(cls, text: str, source: str = "<text>") -> "RawDocument":
        return cls(lines=tuple(line.rstrip("\r") for line in text.split("\n")), source=source)

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


@dataclass(frozen=True)
class Transaction:
    """A finalized transaction extracted from a statement."""

    kind: TransactionKind
    security: Optional[Security]
    shares: Optional[Decimal]
    date: Optional[datetime]
    amount: Money
    exchange_rate: Optional[Decimal] = None
    gross_value: Optional[Money] = None
    taxes: tuple = ()
    fees: tuple = ()
    warnings: tuple = ()
    source: Optional[str] = None

    @property
    def tax_total(self) -> Optional[Money]:
        return _sum_units(self.taxes, self.amount.currency)

    @property
    def fee_total(self) -> Optional[Money]:
        return _sum_units(self.fees, self.amount.currency)

    def to_dict(self) -> dict:
        """Convert transaction to a JSON-safe dictionary."""
        tax_total = self.tax_total
        fee_total = self.fee_total
        return {
            "kind": self.kind.value,
            "security": self.security.to_dict() if self.security else None,
            "shares": str(self.shares) if self.shares is not None else None,
            "date": self.date.isoformat() if self.date else None,
            "amount": str(self.amount.amount),
            "currency": self.amount.currency,
            "exchange_rate": str(self.exchange_rate) if self.exchange_rate is not None else None,
            "gross_value": self.gross_value.to_dict() if self.gross_value else None,
            "taxes": [{"label": label, **money.to_dict()} for label, money in self.taxes],
            "fees": [{"label": label, **money.to_dict()} for label, money in self.fees],
            "tax_total": str(tax_total.amount) if tax_total else None,
            "fee_total": str(fee_total.amount) if fee_total else None,
            "warnings": list(self.warnings),
            "source": self.source,
        }

    def __repr__(self) -> str:
        security = self.security.identifier if self.security else None
        return f"Transaction(kind={self.kind.value}, security={security}, amount={self.amount})"


def _sum_units(units: tuple, currency: str) -> Optional[Money]:
    if not units:
        return None
    total = Money(currency, Decimal(0))
    for _, money in units:
        total = total + money
    return total


class TransactionBuilder:
    """
    Mutable transaction-in-progress, tagged with its kind.

    Sections only talk to the builder through its setters, so the same
    section works for buy/sell entries and account transactions alike.
    Later writes to a field overwrite earlier ones.
    """

    def __init__(self, kind: TransactionKind):
        self.kind = kind
        self.security: Optional[Security] = None
        self.shares: Optional[Decimal] = None
        self.date: Optional[datetime] = None
        self.amount: Optional[Decimal] = None
        self.currency_code: Optional[str] = None
        self.exchange_rate: Optional[Decimal] = None
        self.gross_value: Optional[Money] = None
        self.taxes: dict[str, Money] = {}
        self.fees: dict[str, Money] = {}
        self.warnings: list[str] = []

    def set_type(self, kind: TransactionKind):
        """Switch between variants of the same family (buy <-> sell, dividend <-> refund)."""
        if kind.is_portfolio_transaction != self.kind.is_portfolio_transaction:
            raise ValueError(f"Cannot turn a {self.kind.value} into a {kind.value}")
        self.kind = kind

    def set_security(self, security: Security):
        self.security = security

    def set_shares(self, shares: Decimal):
        self.shares = shares

    def set_date(self, date: datetime):
        self.date = date

    def set_amount(self, amount: Decimal):
        self.amount = amount

    def set_currency_code(self, currency: str):
        self.currency_code = currency

    def set_exchange_rate(self, rate: Decimal):
        self.exchange_rate = rate

    def set_gross_value(self, gross_value: Money):
        self.gross_value = gross_value

    def add_warning(self, message: str):
        self.warnings.append(message)

    def to_item(self, source: Optional[str] = None) -> Transaction:
        """Freeze the builder into a Transaction."""
        if self.amount is None or self.currency_code is None:
            raise ValueError("Cannot finalize a transaction without amount and currency")

        return Transaction(
            kind=self.kind,
            security=self.security,
            shares=self.shares,
            date=self.date,
            amount=Money(self.currency_code, self.amount),
            exchange_rate=self.exchange_rate,
            gross_value=self.gross_value,
            taxes=tuple(self.taxes.items()),
            fees=tuple(self.fees.items()),
            warnings=tuple(self.warnings),
            source=source,
        )

    def __repr__(self) -> str:
        return (
            f"TransactionBuilder(kind={self.kind.value}, amount={self.amount}, "
            f"currency={self.currency_code})"
        )
