import datetime as dt
import json
from decimal import Decimal
from urllib.parse import urlparse

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework.throttling import SimpleRateThrottle

from apps.coupons.models import Coupon
from apps.enrollments.models import Enrollment
from apps.gateways.asaas import ASAAS_FEES, AsaasGateway
from apps.gateways.base import PaymentGateway
from apps.gateways.registry import get_registry
from apps.gateways.types import (
    PaymentResponse,
    PaymentStatus,
    PixData,
    RefundResponse,
    WebhookEvent,
)
from apps.payments.models import Payment
from core.exceptions import ProviderError

ASAAS_URL = "https://asaas.test/api/v3"
ASAAS_WEBHOOK_TOKEN = "whk-token-123"


class StubResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload
        self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        return self._payload


class StubSession:
    """
    Stands in for ``requests.Session``: routes are matched on method and
    URL path suffix, and every call is recorded.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def route(self, method, path, status_code=200, payload=None):
        self.routes[(method, path)] = StubResponse(status_code, payload)

    def fail(self, method, path, exc):
        self.routes[(method, path)] = exc

    def request(self, method, url, json=None, params=None, headers=None, timeout=None):
        path = urlparse(url).path
        self.calls.append({"method": method, "path": path, "json": json, "params": params, "headers": headers})
        for (route_method, suffix), response in self.routes.items():
            if route_method == method and path.endswith(suffix):
                if isinstance(response, Exception):
                    raise response
                return response
        return StubResponse(404, {"errors": [{"code": "not_found", "description": f"no route for {path}"}]})

    def calls_to(self, method, suffix):
        return [c for c in self.calls if c["method"] == method and c["path"].endswith(suffix)]


class FakeGateway(PaymentGateway):
    """In-memory gateway with Asaas pricing; live status is whatever the test sets."""

    name = "fake"

    def __init__(self, fees=ASAAS_FEES):
        self.fees = fees
        self.payments = {}
        self.fail_with = None

    def _charge(self, request, method):
        if self.fail_with is not None:
            raise self.fail_with
        payment_id = f"fake_{len(self.payments) + 1}"
        response = PaymentResponse(
            gateway_payment_id=payment_id,
            status=PaymentStatus.PENDING,
            gateway_raw_status="pending",
            amount=request.amount,
            billing_type=method,
            external_reference=request.external_reference,
        )
        if method == "pix":
            response.pix = PixData(qr_code="qr-image", copy_paste="000201fake", expiration_date="2030-01-01")
        self.payments[payment_id] = response
        return response

    def set_status(self, payment_id, status, amount=Decimal("200.00")):
        self.payments[payment_id] = PaymentResponse(
            gateway_payment_id=payment_id,
            status=status,
            gateway_raw_status=status.value.upper(),
            amount=amount,
            billing_type="pix",
        )

    def create_customer(self, customer):
        return "fake_customer"

    def find_customer_by_document(self, document):
        return None

    def create_pix_payment(self, request):
        return self._charge(request, "pix")

    def create_boleto_payment(self, request):
        return self._charge(request, "boleto")

    def create_card_payment(self, request):
        self.require_card(request)
        return self._charge(request, "card")

    def get_payment(self, gateway_payment_id):
        if self.fail_with is not None:
            raise self.fail_with
        try:
            return self.payments[gateway_payment_id]
        except KeyError:
            raise ProviderError("payment not found", http_status=404) from None

    def refund_payment(self, gateway_payment_id, amount=None):
        return RefundResponse(gateway_payment_id, PaymentStatus.REFUNDED, amount or Decimal("0"))

    def cancel_payment(self, gateway_payment_id):
        return None

    def parse_webhook_event(self, headers, body):
        data = json.loads(body)
        return WebhookEvent(
            gateway=self.name,
            event_id=data.get("id", ""),
            raw_event_type=data["event"],
            event_type=data["event"],
            gateway_payment_id=data["payment_id"],
            amount=Decimal(str(data.get("amount", "0"))),
            raw_payload=body,
        )

    def validate_webhook_signature(self, headers, body):
        return True

    def get_fees(self):
        return self.fees

    def normalize_status(self, provider_status):
        return PaymentStatus(provider_status)


def asaas_payment(payment_id="pay_123", status="PENDING", value=200.0, billing_type="PIX", **extra):
    payload = {
        "id": payment_id,
        "customer": "cus_1",
        "status": status,
        "value": value,
        "netValue": extra.pop("net_value", None),
        "billingType": billing_type,
        "dueDate": "2030-01-04",
        "invoiceUrl": f"https://asaas.test/i/{payment_id}",
    }
    payload.update(extra)
    return payload


def asaas_webhook(event, payment_id="pay_123", status="CONFIRMED", value=200.0, **extra):
    payment = asaas_payment(payment_id, status=status, value=value, **extra)
    return json.dumps({"id": f"evt_{event}_{payment_id}", "event": event, "payment": payment}).encode()


@pytest.fixture(autouse=True)
def fresh_registry():
    get_registry.cache_clear()
    yield
    get_registry.cache_clear()


@pytest.fixture
def asaas_session():
    session = StubSession()
    session.route("GET", "/customers", payload={"data": []})
    session.route("POST", "/customers", payload={"id": "cus_1"})
    session.route("POST", "/payments", payload=asaas_payment())
    session.route(
        "GET",
        "/payments/pay_123/pixQrCode",
        payload={"encodedImage": "iVBORw0KGgo", "payload": "00020126580014br.gov.bcb.pix", "expirationDate": "2030-01-05 23:59:59"},
    )
    session.route("GET", "/payments/pay_123", payload=asaas_payment())
    return session


@pytest.fixture
def asaas_gateway(asaas_session):
    return AsaasGateway("test-key", ASAAS_URL, ASAAS_WEBHOOK_TOKEN, session=asaas_session)


@pytest.fixture
def fake_gateway():
    return FakeGateway()


@pytest.fixture
def registry(asaas_gateway, fake_gateway):
    """The process-wide registry with the Asaas adapter swapped for a stubbed one."""
    registry = get_registry()
    registry.register(asaas_gateway)
    registry.register(fake_gateway)
    registry.set_active("asaas")
    return registry


@pytest.fixture
def user(db):
    return get_user_model().objects.create_user(username="operator", password="secret-pass")


@pytest.fixture
def api_client(user):
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def enrollment_factory(db):
    def create(**overrides):
        fields = {
            "student_id": "stu-1",
            "student_name": "Maria Silva",
            "student_email": "maria@example.com",
            "student_document": "12345678909",
            "course_id": "course-1",
            "course_name": "Python para Dados",
            "instructor_id": "inst-1",
            "instructor_name": "João Souza",
            "amount": Decimal("200.00"),
            "discount_amount": Decimal("0.00"),
            "final_amount": Decimal("200.00"),
            "payment_method": "pix",
        }
        fields.update(overrides)
        return Enrollment.objects.create(**fields)

    return create


@pytest.fixture
def payment_factory(db, enrollment_factory):
    def create(enrollment=None, **overrides):
        enrollment = enrollment or enrollment_factory(gateway_payment_id=overrides.get("gateway_payment_id", "pay_123"))
        fields = {
            "enrollment": enrollment,
            "payer_name": enrollment.student_name,
            "payer_email": enrollment.student_email,
            "gross_amount": enrollment.amount,
            "discount_amount": enrollment.discount_amount,
            "net_amount": enrollment.final_amount,
            "gateway_fee": Decimal("1.98"),
            "payment_method": enrollment.payment_method,
            "gateway": "asaas",
            "gateway_payment_id": "pay_123",
            "status": "pending",
        }
        fields.update(overrides)
        return Payment.objects.create(**fields)

    return create


@pytest.fixture
def coupon_factory(db):
    def create(**overrides):
        fields = {
            "code": "SAVE10",
            "discount_type": "percentage",
            "discount_value": Decimal("10"),
            "max_uses_per_user": 1,
        }
        fields.update(overrides)
        return Coupon.objects.create(**fields)

    return create


@pytest.fixture
def past():
    def ago(**kwargs):
        return timezone.now() - dt.timedelta(**kwargs)

    return ago


@pytest.fixture
def throttle_rates(monkeypatch):
    """Turn DRF throttling on with the given rates for one test."""

    def configure(anon=None, user=None):
        cache.clear()
        monkeypatch.setattr(SimpleRateThrottle, "THROTTLE_RATES", {"anon": anon, "user": user})

    yield configure
    cache.clear()
