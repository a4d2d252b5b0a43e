"""
Discount rules applied by the Pricing Aggregator.

Ranks fix the order of application: contacts discounts reduce the
pre-insurance subtotal, the second-pair discount only ever touches the
second pair's own subtotal.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from optical_quote.models.enums import DiscountKind, LayerId
from optical_quote.models.schemas import ContactsLayer, DiscountApplication, SecondPairSelection
from optical_quote.utils.money import ZERO, format_usd, percent_of

logger = logging.getLogger(__name__)

RANK_ANNUAL_SUPPLY = 1
RANK_MANUFACTURER_REBATE = 2
RANK_SECOND_PAIR = 3


def contacts_discounts(contacts: ContactsLayer, annual_supply_rate: Decimal) -> list[DiscountApplication]:
    """Annual-supply volume discount, then the flat manufacturer rebate."""
    product = contacts.product
    if product is None or product.quantity <= 0:
        return []

    applied: list[DiscountApplication] = []
    if contacts.annual_supply:
        amount = product.unit_price_cents * product.quantity * annual_supply_rate
        applied.append(
            DiscountApplication(
                kind=DiscountKind.ANNUAL_SUPPLY,
                label=f"Annual supply ({product.quantity} boxes) {annual_supply_rate * 100:g}% off",
                rank=RANK_ANNUAL_SUPPLY,
                amount_cents=amount,
                layer=LayerId.CONTACTS,
            )
        )

    if contacts.rebate is not None and contacts.rebate.amount_cents > 0:
        if contacts.annual_supply:
            applied.append(
                DiscountApplication(
                    kind=DiscountKind.MANUFACTURER_REBATE,
                    label=f"{contacts.rebate.manufacturer} rebate {format_usd(contacts.rebate.amount_cents)}",
                    rank=RANK_MANUFACTURER_REBATE,
                    amount_cents=Decimal(contacts.rebate.amount_cents),
                    layer=LayerId.CONTACTS,
                )
            )
        else:
            logger.debug(f"Rebate from {contacts.rebate.manufacturer} skipped: requires an annual supply")

    return sorted(applied, key=lambda d: d.rank)


def second_pair_subtotal(second_pair: SecondPairSelection) -> Decimal:
    """Frame plus the standard-lens price assumed for a second pair."""
    if second_pair.frame is None:
        return ZERO
    return second_pair.frame.total_cents + second_pair.lens_price_cents


def second_pair_discount(second_pair: SecondPairSelection) -> DiscountApplication | None:
    subtotal = second_pair_subtotal(second_pair)
    if subtotal <= ZERO or second_pair.discount_percent <= ZERO:
        return None
    return DiscountApplication(
        kind=DiscountKind.SECOND_PAIR,
        label=f"Second pair {second_pair.discount_percent:g}% ({second_pair.discount_type.value})",
        rank=RANK_SECOND_PAIR,
        amount_cents=percent_of(subtotal, second_pair.discount_percent),
        layer=LayerId.EYEGLASSES,
    )
