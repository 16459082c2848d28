from decimal import Decimal

from django.db import models

from apps.utils.models import TimestampedModel, ArchivableModel


class OrderStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    PARTIALLY_PAID = "PARTIALLY_PAID", "Partially Paid"
    FULLY_PAID = "FULLY_PAID", "Fully Paid"
    CANCELLED = "CANCELLED", "Cancelled"


class PaymentMethod(models.TextChoices):
    CASH = "CASH", "Cash"
    CARD = "CARD", "Card"
    ONLINE = "ONLINE", "Online Payment"
    OTHER = "OTHER", "Other"


MONEY = dict(max_digits=14, decimal_places=2, default=Decimal("0.00"))


class Order(TimestampedModel, ArchivableModel):
    Status = OrderStatus

    invoice_id = models.CharField(max_length=64, unique=True)

    # Registered customer; walk-in sales leave this empty
    customer = models.ForeignKey(
        "customers.Customer",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    walk_in_name = models.CharField(max_length=255, blank=True)
    walk_in_cnic = models.CharField(max_length=15, blank=True)
    walk_in_phone = models.CharField(max_length=20, blank=True)

    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices, blank=True)
    is_wholesale = models.BooleanField(default=False)
    notes = models.TextField(blank=True)

    # Derived from items; recomputed on item edits only
    subtotal = models.DecimalField(**MONEY)
    total_discount = models.DecimalField(**MONEY)
    order_discount = models.DecimalField(**MONEY)
    total_price = models.DecimalField(**MONEY)

    # Derived from payments
    paid_amount = models.DecimalField(**MONEY)
    outstanding_amount = models.DecimalField(**MONEY)

    status = models.CharField(
        max_length=20, choices=OrderStatus.choices, default=OrderStatus.PENDING, db_index=True
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["customer", "is_archived"], name="order_customer_archived_idx"),
            models.Index(fields=["created_at"], name="order_created_idx"),
        ]

    def __str__(self):
        return f"{self.invoice_id} [{self.status}]"

    @property
    def is_walk_in(self):
        return self.customer_id is None