from decimal import Decimal
import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                ("name", models.CharField(max_length=255)),
                ("cnic", models.CharField(blank=True, max_length=15, null=True, unique=True)),
                ("phone", models.CharField(max_length=20, unique=True)),
                ("address", models.TextField(blank=True)),
                ("paid_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
                ("outstanding_amount", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=14)),
            ],
            options={
                "ordering": ["name"],
                "indexes": [models.Index(fields=["outstanding_amount"], name="customer_outstanding_idx")],
            },
        ),
    ]
