from django.core.management.base import BaseCommand

from apps.history.models import HistoryFailure
from apps.history.services import replay_failure


class Command(BaseCommand):
    help = "Re-apply history updates that ran out of retries."

    def add_arguments(self, parser):
        parser.add_argument(
            "--limit",
            type=int,
            default=500,
            help="Maximum number of parked updates to replay",
        )

    def handle(self, *args, **options):
        pending = HistoryFailure.objects.filter(resolved_at__isnull=True).order_by("created_at")[: options["limit"]]

        replayed = failed = 0
        for failure in pending:
            if replay_failure(failure):
                replayed += 1
            else:
                failed += 1
                self.stdout.write(
                    self.style.WARNING(f"Still failing: {failure.invoice_id or failure.order_id} ({failure.error})")
                )

        self.stdout.write(self.style.SUCCESS(f"Replayed {replayed} history updates, {failed} still failing."))
