from rest_framework import serializers

from apps.utils.validators import validate_cnic, validate_phone

from .models import Customer
from .services import CustomerService


class CustomerSerializer(serializers.ModelSerializer):
    cancelled_outstanding = serializers.SerializerMethodField()

    class Meta:
        model = Customer
        fields = [
            "id",
            "name",
            "cnic",
            "phone",
            "address",
            "paid_amount",
            "outstanding_amount",
            "cancelled_outstanding",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "paid_amount", "outstanding_amount", "created_at", "updated_at"]
        # Duplicates are reported by CustomerService as duplicate_key
        extra_kwargs = {
            "cnic": {"validators": []},
            "phone": {"validators": []},
        }

    def get_cancelled_outstanding(self, obj):
        return str(CustomerService.cancelled_outstanding(obj))

    def validate_phone(self, value):
        return validate_phone(value)

    def validate_cnic(self, value):
        if not value:
            return None
        return validate_cnic(value)
