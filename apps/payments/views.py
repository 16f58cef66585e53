import logging

from django.conf import settings
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import filters, permissions, status, views, viewsets
from rest_framework.response import Response

from apps.gateways.registry import get_registry
from core.exceptions import (
    NotFoundError,
    PaymentError,
    ProviderError,
    SignatureError,
    UnsupportedEventError,
    WebhookParseError,
)

from .models import Payment
from .serializers import PaymentSerializer
from .services import RequestMeta, reconcile_event

logger = logging.getLogger(__name__)


class GatewayWebhookView(views.APIView):
    """
    Inbound payment notifications, one route per provider name.

    Responses follow what providers expect: 401 for a bad signature, 400 for
    an unreadable payload, 200 for anything we processed or chose to ignore,
    and 500 when reconciliation failed so the provider retries.
    """

    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    throttle_classes = []

    def post(self, request, provider: str, *args, **kwargs):
        limit = settings.WEBHOOK_MAX_BODY_BYTES
        try:
            declared = int(request.META.get("CONTENT_LENGTH") or 0)
        except ValueError:
            declared = 0
        if declared > limit:
            return Response({"detail": "Payload too large"}, status=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)
        body = request.read(limit + 1)
        if len(body) > limit:
            return Response({"detail": "Payload too large"}, status=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE)

        try:
            gateway = get_registry().get(provider)
        except NotFoundError as exc:
            return Response({"detail": exc.message}, status=status.HTTP_404_NOT_FOUND)

        headers = {key.lower(): value for key, value in request.headers.items()}
        if not gateway.validate_webhook_signature(headers, body):
            logger.warning("Rejected %s webhook with invalid signature from %s", provider, request.META.get("REMOTE_ADDR"))
            raise SignatureError("invalid webhook signature")

        try:
            event = gateway.parse_webhook_event(headers, body)
        except UnsupportedEventError as exc:
            logger.info("Ignoring %s webhook: %s", provider, exc.message)
            return Response({"success": True, "message": "Event type not handled"}, status=status.HTTP_200_OK)
        except WebhookParseError as exc:
            logger.warning("Unparseable %s webhook: %s", provider, exc.message)
            return Response({"detail": exc.message}, status=status.HTTP_400_BAD_REQUEST)
        except ProviderError as exc:
            logger.error("Could not enrich %s webhook: %s", provider, exc.message)
            return Response({"detail": "Failed to fetch payment"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        try:
            reconcile_event(event, gateway, meta=RequestMeta.from_request(request))
        except PaymentError as exc:
            logger.error(
                "Failed to reconcile %s %s for payment %s: %s",
                provider,
                event.event_type,
                event.gateway_payment_id,
                exc.message,
            )
            return Response({"detail": "Webhook processing failed"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({"success": True, "message": "Webhook processed"}, status=status.HTTP_200_OK)


class PaymentViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Payment.objects.select_related("enrollment", "coupon").all()
    serializer_class = PaymentSerializer
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend, filters.OrderingFilter]
    filterset_fields = ["enrollment", "gateway", "status", "payment_method"]
    ordering_fields = ["created_at", "gross_amount"]


class EnrollmentPaymentsView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, enrollment_id, *args, **kwargs):
        payments = Payment.objects.filter(enrollment_id=enrollment_id).order_by("-created_at")
        if not payments:
            return Response({"detail": "No payments found for this enrollment"}, status=status.HTTP_404_NOT_FOUND)
        return Response(PaymentSerializer(payments, many=True).data, status=status.HTTP_200_OK)
