"""
Bookings Module
Books taxes and fees found by sections onto the transaction in progress and
resolves conflicting values according to a configurable policy.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Optional

from .financial_rules import InvalidCurrencyCode, convert_from_home, convert_to_home
from .models import Money, TransactionBuilder

logger = logging.getLogger(__name__)

# Context keys of the exchange rate printed in the current block, quoted as
# foreign units per one home unit ("EUR/USD 1,24495")
EXCHANGE_RATE = "exchangeRate"
EXCHANGE_RATE_HOME = "exchangeRateHome"
EXCHANGE_RATE_FOREIGN = "exchangeRateForeign"


class ConflictPolicy(Enum):
    """What to do when one label receives two different values."""
    FIRST = "first"
    SUM = "sum"
    ERROR = "error"

    @classmethod
    def from_string(cls, value: str) -> "ConflictPolicy":
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning(f"Unknown conflict policy '{value}', using 'first'")
            return cls.FIRST


class ConflictingTaxEntry(Exception):
    """Two sections derived different tax values for the same transaction."""
    pass


class ConflictingFeeEntry(Exception):
    """Two sections derived different fee values for the same transaction."""
    pass


class BookingRules:
    """
    Tax/fee booking collaborator.

    Values in a foreign currency are converted with the exchange rate held in
    the context before they are booked.
    """

    def __init__(
        self,
        tax_policy: ConflictPolicy = ConflictPolicy.FIRST,
        fee_policy: ConflictPolicy = ConflictPolicy.FIRST,
        tolerance: Decimal = Decimal("0.01")
    ):
        self.tax_policy = tax_policy
        self.fee_policy = fee_policy
        self.tolerance = tolerance

    @classmethod
    def from_config(cls, config) -> "BookingRules":
        return cls(
            tax_policy=ConflictPolicy.from_string(config.TAX_CONFLICT_POLICY),
            fee_policy=ConflictPolicy.from_string(config.FEE_CONFLICT_POLICY),
            tolerance=Decimal(str(config.CONFLICT_TOLERANCE)),
        )

    def check_and_set_tax(self, builder: TransactionBuilder, label: str, tax: Money, context) -> None:
        """
        Book a tax unit onto the builder.

        Raises:
            ConflictingTaxEntry: If the policy is ERROR and the label already
                holds a different value
            InvalidCurrencyCode: If the tax is foreign and no rate is known
        """
        tax = self._to_transaction_currency(builder, tax, context)
        self._book(builder.taxes, builder, label, tax, self.tax_policy, ConflictingTaxEntry, "tax")

    def check_and_set_fee(self, builder: TransactionBuilder, label: str, fee: Money, context) -> None:
        """
        Book a fee unit onto the builder.

        Raises:
            ConflictingFeeEntry: If the policy is ERROR and the label already
                holds a different value
            InvalidCurrencyCode: If the fee is foreign and no rate is known
        """
        fee = self._to_transaction_currency(builder, fee, context)
        self._book(builder.fees, builder, label, fee, self.fee_policy, ConflictingFeeEntry, "fee")

    def _book(self, units: dict, builder, label, value, policy, conflict_cls, what):
        if value.is_zero():
            logger.debug(f"Ignoring zero {what} '{label}'")
            return

        existing: Optional[Money] = units.get(label)
        if existing is None:
            units[label] = value
            logger.debug(f"Booked {what} '{label}': {value}")
            return

        if abs(existing.amount - value.amount) <= self.tolerance:
            logger.debug(f"Duplicate {what} '{label}' ignored: {value}")
            return

        message = f"Conflicting {what} '{label}': {existing} vs {value}"

        if policy == ConflictPolicy.ERROR:
            raise conflict_cls(message)

        if policy == ConflictPolicy.SUM:
            units[label] = existing + value
            builder.add_warning(f"{message} (summed)")
        else:
            builder.add_warning(f"{message} (kept first)")

        logger.warning(message)

    @staticmethod
    def _to_transaction_currency(builder: TransactionBuilder, value: Money, context) -> Money:
        target = builder.currency_code
        if target is None or value.currency == target:
            return value

        rate = context.get(EXCHANGE_RATE) if context is not None else None
        home = context.get(EXCHANGE_RATE_HOME) if context is not None else None
        foreign = context.get(EXCHANGE_RATE_FOREIGN) if context is not None else None

        if rate is None:
            raise InvalidCurrencyCode(
                f"Cannot book {value} onto a {target} transaction without an exchange rate"
            )

        if value.currency == foreign and target == home:
            amount = convert_to_home(value.amount, Decimal(rate), target)
        elif value.currency == home and target == foreign:
            amount = convert_from_home(value.amount, Decimal(rate), target)
        else:
            raise InvalidCurrencyCode(
                f"Cannot book {value} onto a {target} transaction with a {home}/{foreign} rate"
            )

        converted = Money(target, amount)
        logger.debug(f"Converted {value} to {converted} at rate {rate}")
        return converted
