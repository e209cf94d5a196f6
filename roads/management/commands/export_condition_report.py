from pathlib import Path

from django.core.management.base import BaseCommand

from roads.reports import build_condition_workbook


class Command(BaseCommand):
    help = "Export latest inspections, the urgent segment snapshot and defect summary to an xlsx workbook."

    def add_arguments(self, parser):
        parser.add_argument(
            "--path",
            default="condition_report.xlsx",
            help="Output file (default: condition_report.xlsx).",
        )

    def handle(self, *args, **options):
        path = Path(options["path"]).expanduser().resolve()
        path.parent.mkdir(parents=True, exist_ok=True)
        build_condition_workbook().save(path)
        self.stdout.write(self.style.SUCCESS(f"Wrote {path}"))
