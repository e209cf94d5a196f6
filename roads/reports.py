from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from typing import Optional, Sequence

from django.db.models import Avg, Count, QuerySet
from openpyxl import Workbook

from . import models
from .services.urgent import latest_inspection_per_segment, latest_inspections, list_urgent_segments


@dataclass(frozen=True)
class DefectSummaryRow:
    segment_id: int
    segment_code: str
    segment_name: str
    inspection_id: int
    defect_count: int
    avg_severity: Optional[Decimal]


def defect_summary_by_segment() -> Sequence[DefectSummaryRow]:
    """Defect count and mean severity on each segment's latest inspection."""

    inspections = (
        latest_inspections()
        .select_related("segment")
        .annotate(defect_count=Count("defects"), avg_severity=Avg("defects__severity"))
    )
    rows = [
        DefectSummaryRow(
            segment_id=inspection.segment_id,
            segment_code=inspection.segment.code,
            segment_name=inspection.segment.name,
            inspection_id=inspection.pk,
            defect_count=inspection.defect_count,
            avg_severity=(
                Decimal(str(inspection.avg_severity)).quantize(Decimal("0.01"))
                if inspection.avg_severity is not None
                else None
            ),
        )
        for inspection in inspections
    ]
    rows.sort(
        key=lambda row: (
            row.avg_severity is None,
            -(row.avg_severity or Decimal("0")),
            row.segment_code,
        )
    )
    return rows


def segment_defects(segment: models.Segment) -> QuerySet[models.Defect]:
    """Defects recorded on the segment's most recent inspection, newest first."""

    inspection = segment.latest_inspection()
    if inspection is None:
        return models.Defect.objects.none()
    return inspection.defects.order_by("-created_at", "-id")


def _isoformat(value: Optional[datetime]) -> str:
    return value.isoformat() if value else ""


def _as_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def build_condition_workbook() -> Workbook:
    workbook = Workbook()

    ws = workbook.active
    ws.title = "Latest inspections"
    ws.append(["Segment code", "Segment name", "Inspection", "Inspected at", "RCI"])
    for row in latest_inspection_per_segment(order_by_rci=True):
        inspection = row.inspection
        ws.append(
            [
                row.segment.code,
                row.segment.name,
                inspection.pk if inspection else None,
                _isoformat(inspection.inspected_at) if inspection else "",
                _as_float(row.rci),
            ]
        )

    urgent_ws = workbook.create_sheet("Urgent segments")
    urgent_ws.append(["Rank", "Segment code", "Segment name", "RCI", "Inspected at", "Refreshed at"])
    for urgent in list_urgent_segments():
        urgent_ws.append(
            [
                urgent.position,
                urgent.segment_code,
                urgent.segment_name,
                _as_float(urgent.rci),
                _isoformat(urgent.inspected_at),
                _isoformat(urgent.refreshed_at),
            ]
        )

    summary_ws = workbook.create_sheet("Defect summary")
    summary_ws.append(["Segment code", "Segment name", "Inspection", "Defects", "Average severity"])
    for summary in defect_summary_by_segment():
        summary_ws.append(
            [
                summary.segment_code,
                summary.segment_name,
                summary.inspection_id,
                summary.defect_count,
                _as_float(summary.avg_severity),
            ]
        )

    return workbook


def condition_workbook_bytes() -> bytes:
    buffer = BytesIO()
    build_condition_workbook().save(buffer)
    return buffer.getvalue()
