from rest_framework import serializers

from apps.utils.validators import validate_cnic, validate_phone

from .models import Order, OrderItem, OrderPayment, OrderTimeline, PaymentMethod, PriceType


class OrderItemInputSerializer(serializers.Serializer):
    item_id = serializers.UUIDField(required=False, allow_null=True)
    item_name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    price_type = serializers.ChoiceField(choices=PriceType.choices, required=False)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    discount_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    quantity = serializers.IntegerField()


class WalkInSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
    cnic = serializers.CharField(max_length=15, required=False, allow_blank=True, default="")
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True, default="")

    def validate_cnic(self, value):
        return validate_cnic(value) if value else value

    def validate_phone(self, value):
        return validate_phone(value) if value else value


class PaymentInputSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=14, decimal_places=2)
    method = serializers.ChoiceField(choices=PaymentMethod.choices, default=PaymentMethod.CASH)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderCreateSerializer(serializers.Serializer):
    invoice_id = serializers.CharField(max_length=64)
    items = OrderItemInputSerializer(many=True)
    customer_id = serializers.UUIDField(required=False, allow_null=True)
    walk_in = WalkInSerializer(required=False)
    order_discount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, default=0)
    payment_method = serializers.ChoiceField(choices=PaymentMethod.choices, required=False, allow_blank=True, default="")
    is_wholesale = serializers.BooleanField(required=False, default=False)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    initial_payment = PaymentInputSerializer(required=False)

    def validate(self, attrs):
        if attrs.get("customer_id") and attrs.get("walk_in"):
            raise serializers.ValidationError({"walk_in": "Walk-in details are only for orders without a customer."})
        return attrs


class OrderUpdateSerializer(serializers.Serializer):
    items = OrderItemInputSerializer(many=True)
    order_discount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False)


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id", "item", "item_name", "price_type", "unit_price",
            "discount_amount", "quantity", "line_total",
        ]


class OrderPaymentSerializer(serializers.ModelSerializer):
    method_display = serializers.CharField(source="get_method_display", read_only=True)

    class Meta:
        model = OrderPayment
        fields = ["id", "amount", "method", "method_display", "notes", "paid_at"]


class OrderTimelineSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderTimeline
        fields = ["status", "timestamp", "note"]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    payments = OrderPaymentSerializer(many=True, read_only=True)
    status_display = serializers.CharField(source="get_status_display", read_only=True)
    customer_name = serializers.CharField(source="customer.name", read_only=True, default=None)
    is_walk_in = serializers.BooleanField(read_only=True)

    class Meta:
        model = Order
        fields = [
            "id", "invoice_id", "customer", "customer_name", "is_walk_in",
            "walk_in_name", "walk_in_cnic", "walk_in_phone",
            "payment_method", "is_wholesale", "notes",
            "subtotal", "total_discount", "order_discount", "total_price",
            "paid_amount", "outstanding_amount", "status", "status_display",
            "is_archived", "archived_at", "created_at", "updated_at",
            "items", "payments",
        ]
        read_only_fields = fields


class OrderDetailSerializer(OrderSerializer):
    timeline = OrderTimelineSerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["timeline"]
        read_only_fields = fields


class ArchiveQuerySerializer(serializers.Serializer):
    startDate = serializers.DateField(required=False)
    endDate = serializers.DateField(required=False)
    confirmDeleteAll = serializers.BooleanField(required=False, default=False)
