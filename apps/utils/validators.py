import re
from rest_framework import serializers


def validate_phone(value):
    pattern = r"^\+?\d{10,15}$"
    if not re.match(pattern, str(value)):
        raise serializers.ValidationError("Invalid phone number format.")
    return value


def validate_cnic(value):
    """
    CNIC is 13 digits, optionally written as 12345-1234567-1.
    """
    pattern = r"^\d{5}-?\d{7}-?\d$"
    if not re.match(pattern, str(value)):
        raise serializers.ValidationError("Invalid CNIC format.")
    return str(value).replace("-", "")
