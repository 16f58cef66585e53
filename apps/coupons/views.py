from rest_framework import permissions, status, views
from rest_framework.response import Response

from .serializers import CouponValidationSerializer, ValidateCouponSerializer
from .services import validate_coupon


class ValidateCouponView(views.APIView):
    """
    Preview a coupon against an order amount without consuming it.
    Authenticated callers are checked against their own usage history.
    """

    permission_classes = [permissions.AllowAny]

    def post(self, request, *args, **kwargs):
        serializer = ValidateCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user_id = data.get("user_id") or ""
        if request.user and request.user.is_authenticated:
            user_id = str(request.user.pk)

        result = validate_coupon(
            data["code"],
            data["amount"],
            user_id=user_id,
            course_id=data.get("course_id") or "",
        )
        return Response(CouponValidationSerializer(result).data, status=status.HTTP_200_OK)
