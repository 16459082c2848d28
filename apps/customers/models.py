# apps/customers/models.py
from decimal import Decimal

from django.db import models

from apps.utils.models import TimestampedModel


class Customer(TimestampedModel):
    name = models.CharField(max_length=255)
    # Optional; NULL never collides with the unique index
    cnic = models.CharField(max_length=15, unique=True, null=True, blank=True)
    phone = models.CharField(max_length=20, unique=True)
    address = models.TextField(blank=True)

    # Derived from linked orders by CustomerService.recalculate()
    paid_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    outstanding_amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["outstanding_amount"], name="customer_outstanding_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.phone})"
