from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import Decimal

from django.conf import settings

from apps.gateways.types import ZERO, GatewayFees, round_money
from core.exceptions import MoneyInvariantError

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class SplitBreakdown:
    gross_amount: Decimal
    payment_fee: Decimal
    payment_fee_description: str
    net_amount: Decimal
    instructor_amount: Decimal
    platform_amount: Decimal
    instructor_percent: Decimal
    platform_percent: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


def default_percents() -> tuple[Decimal, Decimal]:
    return (
        Decimal(str(settings.REVENUE_INSTRUCTOR_PERCENT)),
        Decimal(str(settings.REVENUE_PLATFORM_PERCENT)),
    )


def calculate_split(
    gross_amount,
    payment_method: str,
    fees: GatewayFees,
    instructor_percent: Decimal | None = None,
    platform_percent: Decimal | None = None,
) -> SplitBreakdown:
    """
    Split a payment's net proceeds between instructor and platform.

    Every monetary step is rounded to cents on its own, so the two shares
    can differ from the net amount by one cent.
    """
    default_instructor, default_platform = default_percents()
    if instructor_percent is None:
        instructor_percent = default_instructor
    if platform_percent is None:
        platform_percent = default_platform
    instructor_percent = Decimal(str(instructor_percent))
    platform_percent = Decimal(str(platform_percent))

    gross = round_money(gross_amount)
    fee = fees.calculate(gross, payment_method)
    net = round_money(gross - fee)
    instructor_amount = round_money(net * instructor_percent / HUNDRED)
    platform_amount = round_money(net * platform_percent / HUNDRED)

    if net < ZERO:
        raise MoneyInvariantError(f"gateway fee {fee} exceeds gross amount {gross}")
    if instructor_amount + platform_amount > net + Decimal("0.01"):
        raise MoneyInvariantError(
            f"split {instructor_amount} + {platform_amount} exceeds net amount {net}"
        )

    return SplitBreakdown(
        gross_amount=gross,
        payment_fee=fee,
        payment_fee_description=fees.describe(payment_method),
        net_amount=net,
        instructor_amount=instructor_amount,
        platform_amount=platform_amount,
        instructor_percent=instructor_percent,
        platform_percent=platform_percent,
    )
