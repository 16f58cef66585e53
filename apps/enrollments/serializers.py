from rest_framework import serializers

from apps.gateways.types import PAYMENT_METHODS

from .services import INVALID_METHOD, CheckoutRequest


class CheckoutSerializer(serializers.Serializer):
    """
    Input payload for creating a course checkout. Card fields are only
    required for ``payment_method == "card"``.
    """

    student_id = serializers.CharField(max_length=64)
    student_name = serializers.CharField(max_length=255)
    student_email = serializers.EmailField()
    student_cpf = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    student_phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")
    course_id = serializers.CharField(max_length=64)
    course_name = serializers.CharField(max_length=255)
    instructor_id = serializers.CharField(max_length=64, required=False, allow_blank=True, default="")
    instructor_name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_code = serializers.CharField(max_length=50, required=False, allow_blank=True, default="")
    payment_method = serializers.CharField(max_length=20)
    card_number = serializers.CharField(required=False, allow_blank=True, default="")
    card_exp_month = serializers.CharField(required=False, allow_blank=True, default="")
    card_exp_year = serializers.CharField(required=False, allow_blank=True, default="")
    card_cvv = serializers.CharField(required=False, allow_blank=True, default="")
    holder_name = serializers.CharField(required=False, allow_blank=True, default="")
    holder_email = serializers.CharField(required=False, allow_blank=True, default="")
    holder_doc = serializers.CharField(required=False, allow_blank=True, default="")
    holder_zip = serializers.CharField(required=False, allow_blank=True, default="")
    holder_address_number = serializers.CharField(required=False, allow_blank=True, default="")
    holder_phone = serializers.CharField(required=False, allow_blank=True, default="")
    installments = serializers.IntegerField(required=False, min_value=0, max_value=12, default=1)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("amount must be greater than zero")
        return value

    def validate_payment_method(self, value):
        value = value.strip().lower()
        if value not in PAYMENT_METHODS:
            raise serializers.ValidationError(INVALID_METHOD)
        return value

    def to_checkout_request(self) -> CheckoutRequest:
        data = self.validated_data
        return CheckoutRequest(
            student_id=data["student_id"],
            student_name=data["student_name"],
            student_email=data["student_email"],
            student_document=data["student_cpf"],
            student_phone=data["student_phone"],
            course_id=data["course_id"],
            course_name=data["course_name"],
            instructor_id=data["instructor_id"],
            instructor_name=data["instructor_name"],
            amount=data["amount"],
            payment_method=data["payment_method"],
            discount_code=data["discount_code"],
            card_number=data["card_number"],
            card_exp_month=data["card_exp_month"],
            card_exp_year=data["card_exp_year"],
            card_cvv=data["card_cvv"],
            holder_name=data["holder_name"],
            holder_email=data["holder_email"],
            holder_document=data["holder_doc"],
            holder_postal_code=data["holder_zip"],
            holder_address_number=data["holder_address_number"],
            holder_phone=data["holder_phone"],
            installments=data["installments"],
        )


class CheckoutResultSerializer(serializers.Serializer):
    enrollment_id = serializers.CharField()
    payment_id = serializers.CharField(allow_blank=True)
    gateway = serializers.CharField(allow_blank=True)
    gateway_payment_id = serializers.CharField(allow_blank=True)
    status = serializers.CharField()
    pix_qr_code = serializers.CharField(allow_blank=True)
    pix_copy_paste = serializers.CharField(allow_blank=True)
    pix_expiration_date = serializers.CharField(allow_blank=True)
    boleto_url = serializers.CharField(allow_blank=True)
    boleto_bar_code = serializers.CharField(allow_blank=True)
    boleto_due_date = serializers.CharField(allow_blank=True)
    card_receipt_url = serializers.CharField(allow_blank=True)
    invoice_url = serializers.CharField(allow_blank=True)
    gross_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    payment_fee = serializers.DecimalField(max_digits=12, decimal_places=2)
    net_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    instructor_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    platform_amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    coupon_code = serializers.CharField(allow_blank=True)
