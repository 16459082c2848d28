from django.db import models

from .order import Order, MONEY


class PriceType(models.TextChoices):
    RETAIL = "RETAIL", "Retail"
    WHOLESALE = "WHOLESALE", "Wholesale"


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    item = models.ForeignKey(
        "catalog.Item", null=True, blank=True, on_delete=models.SET_NULL, related_name="order_items"
    )

    # Snapshot fields (Critical for audit)
    item_name = models.CharField(max_length=255)
    price_type = models.CharField(max_length=10, choices=PriceType.choices, default=PriceType.RETAIL)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    discount_amount = models.DecimalField(**MONEY)
    quantity = models.PositiveIntegerField()
    line_total = models.DecimalField(**MONEY)

    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["position", "id"]

    def __str__(self):
        return f"{self.quantity}x {self.item_name}"
