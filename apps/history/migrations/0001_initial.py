from decimal import Decimal
import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="BusinessHistoryYear",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("year", models.PositiveIntegerField(unique=True)),
            ],
            options={
                "verbose_name": "Business History Year",
                "ordering": ["year"],
            },
        ),
        migrations.CreateModel(
            name="BusinessHistoryMonth",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("month", models.PositiveSmallIntegerField()),
                ("history_year", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="months", to="history.businesshistoryyear")),
            ],
            options={
                "ordering": ["month"],
            },
        ),
        migrations.CreateModel(
            name="BusinessHistoryDay",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("day", models.PositiveSmallIntegerField()),
                ("total_profit", models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=16)),
                ("total_orders", models.PositiveIntegerField(default=0)),
                ("history_month", models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name="days", to="history.businesshistorymonth")),
            ],
            options={
                "ordering": ["day"],
            },
        ),
        migrations.CreateModel(
            name="HistoryFailure",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("order_id", models.CharField(blank=True, max_length=64)),
                ("invoice_id", models.CharField(blank=True, max_length=64)),
                ("occurred_at", models.DateTimeField(help_text="Order creation time the delta belongs to")),
                ("profit_delta", models.DecimalField(decimal_places=2, max_digits=16)),
                ("order_count_delta", models.IntegerField(default=1)),
                ("error", models.TextField(blank=True)),
                ("attempts", models.PositiveIntegerField(default=0)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("resolved_at", models.DateTimeField(blank=True, db_index=True, null=True)),
            ],
            options={
                "ordering": ["created_at"],
            },
        ),
        migrations.AddConstraint(
            model_name="businesshistorymonth",
            constraint=models.UniqueConstraint(fields=("history_year", "month"), name="uniq_history_month_per_year"),
        ),
        migrations.AddConstraint(
            model_name="businesshistoryday",
            constraint=models.UniqueConstraint(fields=("history_month", "day"), name="uniq_history_day_per_month"),
        ),
    ]
