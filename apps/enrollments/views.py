from rest_framework import permissions, status, views
from rest_framework.response import Response

from apps.payments.services import RequestMeta
from core.exceptions import NotFoundError

from .serializers import CheckoutResultSerializer, CheckoutSerializer
from .services import create_checkout, get_checkout_status


class CheckoutView(views.APIView):
    """
    Create an enrollment and its gateway charge in one step and return the
    payment artifacts (PIX QR code, boleto, card receipt).
    """

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = CheckoutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        # ValidationError -> 400 and ProviderError -> 500 via the API exception handler
        result = create_checkout(serializer.to_checkout_request(), meta=RequestMeta.from_request(request))
        return Response(CheckoutResultSerializer(result).data, status=status.HTTP_201_CREATED)


class CheckoutStatusView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, enrollment_id, *args, **kwargs):
        try:
            result = get_checkout_status(enrollment_id)
        except NotFoundError as exc:
            return Response({"detail": exc.message}, status=status.HTTP_404_NOT_FOUND)
        return Response(CheckoutResultSerializer(result).data, status=status.HTTP_200_OK)
