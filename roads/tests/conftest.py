from __future__ import annotations

import datetime
from decimal import Decimal
from typing import Callable

import pytest
from django.utils import timezone

from roads.models import Defect, Inspection, Inspector, Segment


@pytest.fixture
def inspector(db) -> Inspector:
    return Inspector.objects.create(name="R. Kumar", phone="+919876543210", email="rkumar@example.com")


@pytest.fixture
def segment(db) -> Segment:
    return Segment.objects.create(
        code="SEG-001",
        name="Main Avenue - A",
        start_lat=17.4470,
        start_lon=78.3790,
        end_lat=17.4490,
        end_lon=78.3810,
        length_m=Decimal("450"),
    )


@pytest.fixture
def make_segment(db) -> Callable[..., Segment]:
    counter = {"value": 100}

    def _make(code: str | None = None, **kwargs) -> Segment:
        counter["value"] += 1
        return Segment.objects.create(code=code or f"SEG-{counter['value']}", **kwargs)

    return _make


@pytest.fixture
def make_inspection(db, inspector) -> Callable[..., Inspection]:
    def _make(segment: Segment, days_ago: int = 0, **kwargs) -> Inspection:
        kwargs.setdefault("inspector", inspector)
        kwargs.setdefault("inspected_at", timezone.now() - datetime.timedelta(days=days_ago))
        return Inspection.objects.create(segment=segment, **kwargs)

    return _make


@pytest.fixture
def inspection(segment, make_inspection) -> Inspection:
    return make_inspection(segment, days_ago=12, surface_condition="Multiple potholes and cracks")


@pytest.fixture
def make_defect(db) -> Callable[..., Defect]:
    def _make(inspection: Inspection, defect_type: str = "pothole", severity: int = 3, **kwargs) -> Defect:
        return Defect.objects.create(
            inspection=inspection, defect_type=defect_type, severity=severity, **kwargs
        )

    return _make


def stored_rci(inspection: Inspection):
    return Inspection.objects.values_list("rci", flat=True).get(pk=inspection.pk)
