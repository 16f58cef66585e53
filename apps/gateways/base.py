from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping
from decimal import Decimal

from core.exceptions import ValidationError

from .types import (
    CreatePaymentRequest,
    CustomerRequest,
    GatewayFees,
    PaymentResponse,
    PaymentStatus,
    RefundResponse,
    WebhookEvent,
)


class PaymentGateway(ABC):
    """
    Contract every payment provider adapter implements.

    New providers are added by subclassing this and registering the
    instance; checkout and reconciliation never branch on provider name.
    """

    name: str = ""

    @abstractmethod
    def create_customer(self, customer: CustomerRequest) -> str:
        """Return the provider customer id, creating the customer if needed."""

    @abstractmethod
    def find_customer_by_document(self, document: str) -> str | None:
        ...

    @abstractmethod
    def create_pix_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        ...

    @abstractmethod
    def create_boleto_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        ...

    @abstractmethod
    def create_card_payment(self, request: CreatePaymentRequest) -> PaymentResponse:
        ...

    @abstractmethod
    def get_payment(self, gateway_payment_id: str) -> PaymentResponse:
        ...

    @abstractmethod
    def refund_payment(self, gateway_payment_id: str, amount: Decimal | None = None) -> RefundResponse:
        ...

    @abstractmethod
    def cancel_payment(self, gateway_payment_id: str) -> None:
        ...

    @abstractmethod
    def parse_webhook_event(self, headers: Mapping[str, str], body: bytes) -> WebhookEvent:
        ...

    @abstractmethod
    def validate_webhook_signature(self, headers: Mapping[str, str], body: bytes) -> bool:
        ...

    @abstractmethod
    def get_fees(self) -> GatewayFees:
        ...

    @abstractmethod
    def normalize_status(self, provider_status: str) -> PaymentStatus:
        ...

    def create_payment(self, request: CreatePaymentRequest, method: str) -> PaymentResponse:
        if method == "pix":
            return self.create_pix_payment(request)
        if method == "boleto":
            return self.create_boleto_payment(request)
        if method == "card":
            return self.create_card_payment(request)
        raise ValidationError("invalid payment method. Use: pix, boleto, or card")

    def calculate_fee(self, amount, method: str) -> Decimal:
        return self.get_fees().calculate(amount, method)

    @staticmethod
    def require_card(request: CreatePaymentRequest) -> None:
        if request.card is None or not request.card.number or not request.card.cvv:
            raise ValidationError("card number and CVV are required for card payments")

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.name}>"
