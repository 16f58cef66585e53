from rest_framework import serializers

from .models import RevenueSplit


class RevenueSplitSerializer(serializers.ModelSerializer):
    course_name = serializers.CharField(source="enrollment.course_name", read_only=True)

    class Meta:
        model = RevenueSplit
        fields = [
            "id",
            "enrollment",
            "course_name",
            "payment_id",
            "gross_amount",
            "net_amount",
            "platform_fee",
            "payment_fee",
            "instructor_amount",
            "platform_amount",
            "instructor_id",
            "payment_method",
            "status",
            "processed_at",
            "created_at",
        ]


class SplitStatusSerializer(serializers.Serializer):
    status = serializers.CharField()


class SimulateQuerySerializer(serializers.Serializer):
    value = serializers.DecimalField(max_digits=12, decimal_places=2)
    method = serializers.CharField(required=False, default="pix")

    def validate_value(self, value):
        if value <= 0:
            raise serializers.ValidationError("value must be greater than zero")
        return value


class SplitBreakdownSerializer(serializers.Serializer):
    gross_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_fee = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_fee_description = serializers.CharField()
    net_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    instructor_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    platform_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    instructor_percent = serializers.DecimalField(max_digits=5, decimal_places=2)
    platform_percent = serializers.DecimalField(max_digits=5, decimal_places=2)
