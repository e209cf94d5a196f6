from django.core.management.base import BaseCommand, CommandError

from roads.exceptions import InspectionNotFound
from roads.services.rci import recompute_all, recompute_rci


class Command(BaseCommand):
    help = "Recompute the stored Road Condition Index for one inspection or for all inspections."

    def add_arguments(self, parser):
        parser.add_argument(
            "--inspection",
            type=int,
            help="Only recompute this inspection id.",
        )

    def handle(self, *args, **options):
        inspection_id = options.get("inspection")

        if inspection_id is not None:
            try:
                score = recompute_rci(inspection_id)
            except InspectionNotFound as exc:
                raise CommandError(str(exc))
            self.stdout.write(self.style.SUCCESS(f"Inspection {inspection_id}: RCI {score}"))
            return

        try:
            processed = recompute_all()
        except Exception as exc:  # pragma: no cover - execution-time errors
            raise CommandError(f"Error recomputing RCI: {exc}")

        self.stdout.write(self.style.SUCCESS(f"Completed. Recomputed RCI for {processed} inspection(s)."))
