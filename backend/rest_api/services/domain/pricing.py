"""
Order pricing.

PricingEngine is a pure function of its inputs and an immutable PricingConfig
handed to it at construction; it never reads settings while computing.
All amounts are integer cents. Each derived amount is rounded half-up to the
cent at the point it is computed, so

    total = subtotal + tax + service_charge + delivery_fee - discount

holds exactly.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal

from shared.config.constants import OrderType
from shared.config.settings import Settings, settings as default_settings


def round_cents(value: Decimal) -> int:
    """Round a Decimal amount of cents half-up to a whole cent."""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PricingConfig:
    """Rates and fees applied by PricingEngine."""

    tax_rate: Decimal
    service_charge_rate: Decimal
    delivery_fee_cents: int

    def __post_init__(self) -> None:
        for name in ("tax_rate", "service_charge_rate"):
            rate = Decimal(str(getattr(self, name)))
            if not Decimal("0") <= rate <= Decimal("1"):
                raise ValueError(f"{name} must be between 0 and 1, got {rate}")
            object.__setattr__(self, name, rate)
        if self.delivery_fee_cents < 0:
            raise ValueError("delivery_fee_cents must be non-negative")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "PricingConfig":
        settings = settings or default_settings
        return cls(
            tax_rate=settings.tax_rate,
            service_charge_rate=settings.service_charge_rate,
            delivery_fee_cents=settings.delivery_fee_cents,
        )


@dataclass(frozen=True)
class OrderTotals:
    subtotal_cents: int
    tax_cents: int
    service_charge_cents: int
    delivery_fee_cents: int
    discount_cents: int
    total_cents: int

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class PricingEngine:
    """Computes order totals from priced lines and the order type."""

    def __init__(self, config: PricingConfig):
        self._config = config

    @property
    def config(self) -> PricingConfig:
        return self._config

    @staticmethod
    def line_subtotal(unit_price_cents: int, quantity: int) -> int:
        return unit_price_cents * quantity

    def compute(
        self,
        lines: Iterable[tuple[int, int]],
        order_type: str,
        discount_cents: int = 0,
    ) -> OrderTotals:
        """
        Price an order.

        Args:
            lines: (unit_price_cents, quantity) pairs.
            order_type: dine_in adds the service charge, delivery adds the
                delivery fee.
            discount_cents: Amount taken off the total. Capped so the total
                never goes below zero.
        """
        if discount_cents < 0:
            raise ValueError("discount_cents must be non-negative")

        subtotal = sum(self.line_subtotal(unit, qty) for unit, qty in lines)
        tax = round_cents(Decimal(subtotal) * self._config.tax_rate)
        service_charge = (
            round_cents(Decimal(subtotal) * self._config.service_charge_rate)
            if order_type == OrderType.DINE_IN
            else 0
        )
        delivery_fee = self._config.delivery_fee_cents if order_type == OrderType.DELIVERY else 0

        gross = subtotal + tax + service_charge + delivery_fee
        discount = min(discount_cents, gross)

        return OrderTotals(
            subtotal_cents=subtotal,
            tax_cents=tax,
            service_charge_cents=service_charge,
            delivery_fee_cents=delivery_fee,
            discount_cents=discount,
            total_cents=gross - discount,
        )

    @staticmethod
    def discount_for(
        subtotal_cents: int,
        amount_cents: int | None = None,
        percentage: float | Decimal | None = None,
    ) -> int:
        """A fixed amount wins; otherwise a percentage of the subtotal."""
        if amount_cents is not None:
            return max(0, amount_cents)
        if percentage is not None:
            return round_cents(Decimal(subtotal_cents) * Decimal(str(percentage)) / Decimal(100))
        return 0
