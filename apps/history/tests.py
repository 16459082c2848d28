# apps/history/tests.py
from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.urls import reverse
from kombu.exceptions import OperationalError

from rest_framework import status
from rest_framework.test import APITestCase

from apps.utils.exceptions import TransientPersistenceFailure

from .models import BusinessHistoryYear, BusinessHistoryDay, HistoryFailure
from .services import record_order, resolve_day, upsert_history
from .tasks import backoff_countdown, record_order_history, schedule_order_history

User = get_user_model()

MARCH_5 = datetime(2024, 3, 5, 10, 30, tzinfo=dt_timezone.utc)


def day_row(year, month, day):
    return BusinessHistoryDay.objects.get(
        history_month__history_year__year=year,
        history_month__month=month,
        day=day,
    )


class RecordOrderTests(TestCase):
    def test_first_order_creates_year_month_and_day(self):
        record_order(MARCH_5, Decimal("150.00"))

        row = day_row(2024, 3, 5)
        self.assertEqual(row.total_profit, Decimal("150.00"))
        self.assertEqual(row.total_orders, 1)

    def test_same_day_orders_add_up_in_any_order(self):
        for hour, profit in [(18, "30.00"), (9, "10.00"), (12, "20.00")]:
            record_order(MARCH_5.replace(hour=hour), Decimal(profit))

        row = day_row(2024, 3, 5)
        self.assertEqual(row.total_profit, Decimal("60.00"))
        self.assertEqual(row.total_orders, 3)

    def test_orders_on_same_day_accumulate(self):
        record_order(MARCH_5, Decimal("150.00"))
        record_order(MARCH_5.replace(hour=23), Decimal("49.50"))

        row = day_row(2024, 3, 5)
        self.assertEqual(row.total_profit, Decimal("199.50"))
        self.assertEqual(row.total_orders, 2)
        self.assertEqual(BusinessHistoryYear.objects.count(), 1)

    def test_days_are_bucketed_in_utc(self):
        # 01:00 in UTC+5 is still the previous day in UTC
        local = datetime(2024, 3, 6, 1, 0, tzinfo=dt_timezone(timedelta(hours=5)))
        self.assertEqual(resolve_day(local), (2024, 3, 5))

    def test_naive_timestamp_is_treated_as_utc(self):
        self.assertEqual(resolve_day(datetime(2024, 12, 31, 23, 59)), (2024, 12, 31))

    def test_database_error_becomes_transient_failure(self):
        with mock.patch(
            "apps.history.services.BusinessHistoryYear.objects.get_or_create",
            side_effect=DatabaseError("connection reset"),
        ):
            with self.assertRaises(TransientPersistenceFailure):
                record_order(MARCH_5, Decimal("10.00"))

        self.assertFalse(BusinessHistoryDay.objects.exists())


@override_settings(HISTORY_MAX_RETRIES=3, HISTORY_RETRY_BASE_DELAY=2)
class RecordOrderHistoryTaskTests(TestCase):
    def task_kwargs(self):
        return {
            "occurred_at": MARCH_5.isoformat(),
            "profit_delta": "80.00",
            "order_count_delta": 1,
            "order_id": "order-1",
            "invoice_id": "INV-1",
        }

    def test_backoff_doubles_from_base_delay(self):
        self.assertEqual([backoff_countdown(n) for n in range(3)], [2, 4, 8])

    def test_transient_failure_is_retried_then_applied(self):
        calls = []

        def flaky(*args, **kwargs):
            calls.append(args)
            if len(calls) < 3:
                raise TransientPersistenceFailure("database unavailable")
            return record_order(*args, **kwargs)

        with mock.patch("apps.history.tasks.record_order", side_effect=flaky):
            with self.assertLogs("apps.history.tasks", level="WARNING") as logs:
                result = record_order_history.apply(kwargs=self.task_kwargs())

        self.assertTrue(result.get())
        self.assertEqual(len(calls), 3)
        self.assertIn("retrying in 2s", logs.output[0])
        self.assertIn("retrying in 4s", logs.output[1])

        row = day_row(2024, 3, 5)
        self.assertEqual(row.total_profit, Decimal("80.00"))
        self.assertEqual(row.total_orders, 1)
        self.assertFalse(HistoryFailure.objects.exists())

    def test_exhausted_retries_park_the_update(self):
        with mock.patch(
            "apps.history.tasks.record_order",
            side_effect=TransientPersistenceFailure("database unavailable"),
        ) as patched:
            with self.assertLogs("apps.history.services", level="ERROR"):
                result = record_order_history.apply(kwargs=self.task_kwargs())

        self.assertFalse(result.get())
        # initial attempt plus three retries
        self.assertEqual(patched.call_count, 4)

        failure = HistoryFailure.objects.get()
        self.assertEqual(failure.invoice_id, "INV-1")
        self.assertEqual(failure.profit_delta, Decimal("80.00"))
        self.assertEqual(failure.attempts, 4)
        self.assertIsNone(failure.resolved_at)

    def test_broker_outage_parks_the_update(self):
        with mock.patch(
            "apps.history.tasks.record_order_history.delay",
            side_effect=OperationalError("broker down"),
        ):
            schedule_order_history("order-2", "INV-2", MARCH_5.isoformat(), "25.00")

        failure = HistoryFailure.objects.get()
        self.assertEqual(failure.invoice_id, "INV-2")
        self.assertEqual(failure.attempts, 0)

    def test_replay_command_applies_parked_updates(self):
        HistoryFailure.objects.create(
            order_id="order-3",
            invoice_id="INV-3",
            occurred_at=MARCH_5,
            profit_delta=Decimal("60.00"),
            attempts=4,
        )

        out = StringIO()
        call_command("replay_history_failures", stdout=out)

        self.assertIn("Replayed 1", out.getvalue())
        self.assertEqual(day_row(2024, 3, 5).total_profit, Decimal("60.00"))
        self.assertIsNotNone(HistoryFailure.objects.get().resolved_at)


class UpsertHistoryTests(TestCase):
    def test_upsert_replaces_listed_days_only(self):
        record_order(MARCH_5, Decimal("100.00"))
        record_order(datetime(2024, 3, 6, tzinfo=dt_timezone.utc), Decimal("40.00"))

        created = upsert_history({
            "year": 2024,
            "months": [{"month": 3, "days": [{"day": 5, "total_profit": Decimal("90.00"), "total_orders": 3}]}],
        })

        self.assertFalse(created)
        self.assertEqual(day_row(2024, 3, 5).total_profit, Decimal("90.00"))
        self.assertEqual(day_row(2024, 3, 5).total_orders, 3)
        self.assertEqual(day_row(2024, 3, 6).total_profit, Decimal("40.00"))


class HistoryAPITests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="clerk", password="testpass123")
        self.admin = User.objects.create_user(username="owner", password="testpass123", is_staff=True)
        record_order(MARCH_5, Decimal("150.00"))

    def test_list_and_year_detail(self):
        self.client.force_authenticate(self.user)

        resp = self.client.get(reverse("history-list"))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        self.assertEqual(resp.data[0]["year"], 2024)

        resp = self.client.get(reverse("history-year", args=[2024]))
        self.assertEqual(resp.status_code, status.HTTP_200_OK)
        day = resp.data["months"][0]["days"][0]
        self.assertEqual(day["day"], 5)
        self.assertEqual(day["total_orders"], 1)

    def test_unknown_year_is_404(self):
        self.client.force_authenticate(self.user)
        resp = self.client.get(reverse("history-year", args=[1999]))
        self.assertEqual(resp.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(resp.data["code"], "not_found")

    def test_manual_upsert_requires_staff(self):
        payload = {"year": 2023, "months": [{"month": 1, "days": [{"day": 2, "total_profit": "10.00", "total_orders": 1}]}]}

        self.client.force_authenticate(self.user)
        resp = self.client.post(reverse("history-list"), payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        resp = self.client.post(reverse("history-list"), payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_201_CREATED)
        self.assertEqual(day_row(2023, 1, 2).total_orders, 1)

    def test_upsert_rejects_impossible_date(self):
        self.client.force_authenticate(self.admin)
        payload = {"year": 2023, "months": [{"month": 2, "days": [{"day": 30, "total_profit": "1.00", "total_orders": 1}]}]}
        resp = self.client.post(reverse("history-list"), payload, format="json")
        self.assertEqual(resp.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(BusinessHistoryYear.objects.filter(year=2023).exists())

    def test_delete_year(self):
        self.client.force_authenticate(self.admin)
        resp = self.client.delete(reverse("history-year", args=[2024]))
        self.assertEqual(resp.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(BusinessHistoryDay.objects.exists())
