from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand, CommandError
from django.db import transaction
from django.utils import timezone

from roads.models import Defect, Inspection, Inspector, MaintenanceAction, Segment
from roads.services.urgent import refresh_urgent_segments

INSPECTORS = [
    {"name": "R. Kumar", "phone": "+919876543210", "email": "rkumar@example.com"},
    {"name": "S. Mehta", "phone": "+919812345678", "email": "smehta@example.com"},
]

SEGMENTS = [
    {
        "code": "SEG-001",
        "name": "Main Avenue - A",
        "start_lat": 17.4470,
        "start_lon": 78.3790,
        "end_lat": 17.4490,
        "end_lon": 78.3810,
        "length_m": Decimal("450"),
    },
    {
        "code": "SEG-002",
        "name": "Market Road - B",
        "start_lat": 17.4500,
        "start_lon": 78.3820,
        "end_lat": 17.4520,
        "end_lon": 78.3850,
        "length_m": Decimal("600"),
    },
    {
        "code": "SEG-003",
        "name": "River Side - C",
        "start_lat": 17.4535,
        "start_lon": 78.3865,
        "end_lat": 17.4555,
        "end_lon": 78.3885,
        "length_m": Decimal("700"),
    },
]

# segment code -> (inspector index, days ago, surface condition, notes, defects)
INSPECTIONS = {
    "SEG-001": (
        0,
        12,
        "Multiple potholes and cracks",
        "Observed near junction",
        [
            {
                "defect_type": "pothole",
                "severity": 4,
                "depth_cm": Decimal("12"),
                "location_lat": 17.4485,
                "location_lon": 78.3802,
                "comments": "Large pothole near lamp post",
            },
            {
                "defect_type": "crack",
                "severity": 3,
                "length_m": Decimal("5.0"),
                "location_lat": 17.4489,
                "location_lon": 78.3807,
                "comments": "Long transverse cracks",
            },
        ],
    ),
    "SEG-002": (
        1,
        8,
        "Surface wear and faded markings",
        "Need line painting",
        [
            {
                "defect_type": "fading_markings",
                "severity": 2,
                "location_lat": 17.4515,
                "location_lon": 78.3835,
                "comments": "Lane markings faded",
            },
        ],
    ),
    "SEG-003": (
        0,
        20,
        "Severe potholes",
        "High traffic area",
        [
            {
                "defect_type": "pothole",
                "severity": 5,
                "depth_cm": Decimal("18"),
                "location_lat": 17.4545,
                "location_lon": 78.3875,
                "comments": "Multiple deep potholes",
            },
        ],
    ),
}

# segment code -> (days from today, action type, cost, notes)
MAINTENANCE_ACTIONS = [
    ("SEG-001", 7, "patching", Decimal("18000"), "Temporary patching for potholes"),
    ("SEG-003", 14, "resurfacing", Decimal("250000"), "Major resurfacing required"),
]


class Command(BaseCommand):
    help = "Load a small sample network (inspectors, segments, inspections, defects, maintenance actions)."

    def add_arguments(self, parser):
        parser.add_argument(
            "--reset",
            action="store_true",
            help="Delete the sample segments (and everything under them) before loading.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        codes = [row["code"] for row in SEGMENTS]
        existing = Segment.objects.filter(code__in=codes)
        if existing.exists():
            if not options["reset"]:
                raise CommandError("Sample segments already exist; rerun with --reset to replace them.")
            existing.delete()
            Inspector.objects.filter(email__in=[row["email"] for row in INSPECTORS]).delete()

        inspectors = [Inspector.objects.create(**row) for row in INSPECTORS]
        segments = {row["code"]: Segment.objects.create(**row) for row in SEGMENTS}

        now = timezone.now()
        for code, (inspector_index, days_ago, surface, notes, defects) in INSPECTIONS.items():
            inspection = Inspection.objects.create(
                segment=segments[code],
                inspector=inspectors[inspector_index],
                inspected_at=now - timedelta(days=days_ago),
                surface_condition=surface,
                notes=notes,
            )
            for defect in defects:
                Defect.objects.create(inspection=inspection, **defect)
            inspection.refresh_from_db(fields=["rci"])
            self.stdout.write(f"  {code}: RCI {inspection.rci}")

        today = timezone.localdate()
        for code, days_ahead, action_type, cost, notes in MAINTENANCE_ACTIONS:
            MaintenanceAction.objects.create(
                segment=segments[code],
                planned_date=today + timedelta(days=days_ahead),
                action_type=action_type,
                cost=cost,
                status=MaintenanceAction.Status.PLANNED,
                notes=notes,
            )

        urgent = refresh_urgent_segments()
        self.stdout.write(
            self.style.SUCCESS(
                f"Loaded {len(segments)} segment(s), {len(INSPECTIONS)} inspection(s); "
                f"{urgent} urgent segment(s)."
            )
        )
