from __future__ import annotations

import logging
from functools import lru_cache

from django.conf import settings

from core.exceptions import NotFoundError

from .asaas import AsaasGateway
from .base import PaymentGateway
from .mercadopago import MercadoPagoGateway

logger = logging.getLogger(__name__)


class GatewayRegistry:
    """
    Adapters by provider name plus the one serving new checkouts.

    Webhooks resolve adapters with ``get`` so providers that are no longer
    active keep reconciling their in-flight payments.
    """

    def __init__(self) -> None:
        self._gateways: dict[str, PaymentGateway] = {}
        self._active: str = ""

    def register(self, gateway: PaymentGateway) -> None:
        self._gateways[gateway.name] = gateway

    def get(self, name: str) -> PaymentGateway:
        try:
            return self._gateways[name]
        except KeyError:
            raise NotFoundError(f"payment gateway not registered: {name}") from None

    def set_active(self, name: str) -> None:
        if name not in self._gateways:
            raise NotFoundError(f"cannot activate unregistered gateway: {name}")
        self._active = name

    def get_active(self) -> PaymentGateway:
        if self._active in self._gateways:
            return self._gateways[self._active]
        for gateway in self._gateways.values():
            return gateway
        raise NotFoundError("no payment gateway registered")

    def list_registered(self) -> list[str]:
        return sorted(self._gateways)

    @property
    def active_name(self) -> str:
        return self.get_active().name


def build_registry() -> GatewayRegistry:
    timeout = getattr(settings, "PAYMENT_GATEWAY_TIMEOUT", 30)
    registry = GatewayRegistry()
    registry.register(
        AsaasGateway(
            api_key=settings.ASAAS_API_KEY,
            base_url=settings.ASAAS_API_URL,
            webhook_token=settings.ASAAS_WEBHOOK_TOKEN,
            timeout=timeout,
        )
    )
    if settings.MERCADOPAGO_ACCESS_TOKEN:
        registry.register(
            MercadoPagoGateway(
                access_token=settings.MERCADOPAGO_ACCESS_TOKEN,
                base_url=settings.MERCADOPAGO_API_URL,
                webhook_secret=settings.MERCADOPAGO_WEBHOOK_SECRET,
                timeout=timeout,
            )
        )

    default = settings.DEFAULT_PAYMENT_GATEWAY
    try:
        registry.set_active(default)
    except NotFoundError:
        logger.warning("Default payment gateway %r is not registered, falling back to asaas", default)
        registry.set_active("asaas")
    logger.info("Payment gateways registered: %s (active: %s)", registry.list_registered(), registry.active_name)
    return registry


@lru_cache(maxsize=1)
def get_registry() -> GatewayRegistry:
    return build_registry()
