from __future__ import annotations

from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from openpyxl import load_workbook

from roads.models import Defect, Inspection, Inspector, MaintenanceAction, Segment, UrgentSegment

from .conftest import stored_rci

pytestmark = pytest.mark.django_db


def _run(*args, **options) -> str:
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


def _latest_rci(code: str):
    return Segment.objects.get(code=code).latest_inspection().rci


def test_seed_sample_data_scores_inspections():
    output = _run("seed_sample_data")

    assert Segment.objects.count() == 3
    assert Inspector.objects.count() == 2
    assert Inspection.objects.count() == 3
    assert Defect.objects.count() == 4
    assert MaintenanceAction.objects.filter(status=MaintenanceAction.Status.PLANNED).count() == 2

    assert _latest_rci("SEG-001") == Decimal("5.4")
    assert _latest_rci("SEG-002") == Decimal("9.6")
    assert _latest_rci("SEG-003") == Decimal("2.8")

    urgent = list(UrgentSegment.objects.order_by("position"))
    assert [row.segment_code for row in urgent] == ["SEG-003"]
    assert "1 urgent segment(s)" in output


def test_seed_sample_data_refuses_to_duplicate():
    _run("seed_sample_data")
    with pytest.raises(CommandError):
        _run("seed_sample_data")
    assert Segment.objects.count() == 3


def test_seed_sample_data_reset_replaces_sample():
    _run("seed_sample_data")
    _run("seed_sample_data", reset=True)

    assert Segment.objects.count() == 3
    assert Inspector.objects.count() == 2
    assert Defect.objects.count() == 4
    assert UrgentSegment.objects.count() == 1


def test_recompute_rci_single_inspection(inspection, make_defect):
    make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    Inspection.objects.filter(pk=inspection.pk).update(rci=None)

    output = _run("recompute_rci", inspection=inspection.pk)

    assert "RCI 6.2" in output
    assert stored_rci(inspection) == Decimal("6.2")


def test_recompute_rci_unknown_inspection():
    with pytest.raises(CommandError):
        _run("recompute_rci", inspection=999999)


def test_recompute_rci_all(segment, make_inspection):
    first = make_inspection(segment, days_ago=4)
    second = make_inspection(segment, days_ago=2)

    output = _run("recompute_rci")

    assert "2 inspection(s)" in output
    assert stored_rci(first) == stored_rci(second) == Decimal("10.0")


def test_refresh_urgent_segments_with_threshold(inspection, make_defect):
    make_defect(inspection, "pothole", 3, depth_cm=Decimal("20"))
    # 10 - 3 * 20 * 0.08 = 5.2
    assert _run("refresh_urgent_segments").count("#") == 0

    output = _run("refresh_urgent_segments", threshold="5.2")

    assert "1 segment(s)" in output
    assert "SEG-001" in output
    assert UrgentSegment.objects.get().threshold == Decimal("5.2")


def test_refresh_urgent_segments_rejects_bad_threshold():
    with pytest.raises(CommandError):
        _run("refresh_urgent_segments", threshold="low")


def test_export_condition_report(tmp_path):
    _run("seed_sample_data")
    target = tmp_path / "reports" / "condition.xlsx"

    _run("export_condition_report", path=str(target))

    workbook = load_workbook(target)
    latest = list(workbook["Latest inspections"].iter_rows(min_row=2, values_only=True))
    assert [row[0] for row in latest] == ["SEG-003", "SEG-001", "SEG-002"]
    assert [row[4] for row in latest] == [2.8, 5.4, 9.6]

    summary = list(workbook["Defect summary"].iter_rows(min_row=2, values_only=True))
    assert [(row[0], row[3]) for row in summary] == [("SEG-003", 1), ("SEG-001", 2), ("SEG-002", 1)]
