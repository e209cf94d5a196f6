from decimal import Decimal, InvalidOperation

from django.core.management.base import BaseCommand, CommandError

from roads.services.urgent import list_urgent_segments, refresh_urgent_segments, urgent_threshold


class Command(BaseCommand):
    help = "Rebuild the urgent segment snapshot from the latest inspection scores."

    def add_arguments(self, parser):
        parser.add_argument(
            "--threshold",
            help="RCI at or below which a segment is urgent (default: RCI_URGENT_THRESHOLD setting).",
        )

    def handle(self, *args, **options):
        raw_threshold = options.get("threshold")
        try:
            threshold = Decimal(raw_threshold) if raw_threshold is not None else urgent_threshold()
        except InvalidOperation:
            raise CommandError(f"Invalid threshold: {raw_threshold!r}")

        count = refresh_urgent_segments(threshold)
        self.stdout.write(
            self.style.SUCCESS(f"Refreshed urgent segments: {count} segment(s) at or below RCI {threshold}.")
        )
        for row in list_urgent_segments():
            self.stdout.write(f"  #{row.position}: {row.segment_code} | RCI={row.rci} | {row.inspected_at:%Y-%m-%d}")
