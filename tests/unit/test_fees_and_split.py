"""Fee formula and revenue split arithmetic."""

from decimal import Decimal

import pytest

from apps.gateways.asaas import ASAAS_FEES
from apps.gateways.mercadopago import MERCADOPAGO_FEES
from apps.gateways.types import round_money
from apps.revenue.calculator import calculate_split
from core.exceptions import MoneyInvariantError

pytestmark = pytest.mark.unit


class TestGatewayFees:
    def test_pix_is_a_percentage(self):
        assert ASAAS_FEES.calculate(Decimal("100.00"), "pix") == Decimal("0.99")
        assert ASAAS_FEES.calculate(Decimal("200.00"), "pix") == Decimal("1.98")

    def test_boleto_is_fixed(self):
        assert ASAAS_FEES.calculate(Decimal("100.00"), "boleto") == Decimal("2.99")
        assert MERCADOPAGO_FEES.calculate(Decimal("100.00"), "boleto") == Decimal("3.49")

    def test_card_is_percentage_plus_fixed(self):
        assert ASAAS_FEES.calculate(Decimal("100.00"), "card") == Decimal("3.48")
        assert MERCADOPAGO_FEES.calculate(Decimal("100.00"), "card") == Decimal("5.38")

    def test_canonical_billing_types_are_priced(self):
        assert ASAAS_FEES.calculate(Decimal("100.00"), "credit_card") == Decimal("3.48")
        assert ASAAS_FEES.calculate(Decimal("100.00"), "PIX") == Decimal("0.99")

    def test_unknown_method_costs_nothing(self):
        assert ASAAS_FEES.calculate(Decimal("100.00"), "cash") == Decimal("0.00")

    def test_rounds_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("59.406")) == Decimal("59.41")

    def test_descriptions(self):
        assert ASAAS_FEES.describe("pix") == "PIX: 0.99%"
        assert ASAAS_FEES.describe("boleto") == "Boleto: R$ 2.99 fixo"
        assert ASAAS_FEES.describe("card") == "Cartão: 2.99% + R$ 0.49"
        assert ASAAS_FEES.describe("cash") == "Método desconhecido"


class TestCalculateSplit:
    def test_pix_200_split_70_30(self):
        split = calculate_split(Decimal("200.00"), "pix", ASAAS_FEES)

        assert split.payment_fee == Decimal("1.98")
        assert split.net_amount == Decimal("198.02")
        # 138.614 and 59.406 are rounded independently
        assert split.instructor_amount == Decimal("138.61")
        assert split.platform_amount == Decimal("59.41")
        assert split.payment_fee_description == "PIX: 0.99%"

    def test_custom_percentages(self):
        split = calculate_split(Decimal("100.00"), "boleto", ASAAS_FEES, Decimal("50"), Decimal("50"))

        assert split.net_amount == Decimal("97.01")
        assert split.instructor_amount == Decimal("48.51")
        assert split.platform_amount == Decimal("48.51")

    def test_zero_percent_is_honoured(self):
        split = calculate_split(Decimal("100.00"), "boleto", ASAAS_FEES, Decimal("0"), Decimal("100"))

        assert split.instructor_percent == Decimal("0")
        assert split.instructor_amount == Decimal("0.00")
        assert split.platform_amount == Decimal("97.01")

    def test_fee_larger_than_amount_is_rejected(self):
        with pytest.raises(MoneyInvariantError):
            calculate_split(Decimal("1.00"), "boleto", ASAAS_FEES)

    @pytest.mark.parametrize(
        "gross, discount_percent, method",
        [
            ("200.00", 0, "pix"),
            ("199.99", 10, "pix"),
            ("97.53", 25, "boleto"),
            ("1000.00", 90, "pix"),
            ("59.90", 33, "card"),
            ("12345.67", 7, "card"),
            ("10.01", 50, "boleto"),
        ],
    )
    def test_money_is_conserved(self, gross, discount_percent, method):
        gross = Decimal(gross)
        discount = round_money(gross * Decimal(discount_percent) / 100)
        charged = gross - discount

        split = calculate_split(charged, method, ASAAS_FEES)
        total = split.payment_fee + split.instructor_amount + split.platform_amount

        assert abs((gross - discount) - total) <= Decimal("0.01")
