from rest_framework import serializers


class ValidateCouponSerializer(serializers.Serializer):
    code = serializers.CharField(max_length=50)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    user_id = serializers.CharField(required=False, allow_blank=True, default="")
    course_id = serializers.CharField(required=False, allow_blank=True, default="")


class CouponValidationSerializer(serializers.Serializer):
    valid = serializers.BooleanField()
    message = serializers.CharField()
    coupon_id = serializers.CharField(allow_blank=True)
    code = serializers.CharField(allow_blank=True)
    discount_type = serializers.CharField(allow_blank=True)
    discount_value = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    final_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
