"""Latest-inspection projection and the urgent segment snapshot.

``latest_inspection_per_segment`` is always live. The urgent list is a
cached snapshot that only changes when :func:`refresh_urgent_segments` runs;
readers should expect it to lag behind current scores.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional

from django.conf import settings
from django.db import connection, transaction
from django.db.models import F, OuterRef, QuerySet, Subquery
from django.utils import timezone

from roads.models import Inspection, Segment, UrgentSegment

logger = logging.getLogger(__name__)

DEFAULT_URGENT_THRESHOLD = Decimal("3.5")


@dataclass(frozen=True)
class LatestInspection:
    segment: Segment
    inspection: Optional[Inspection]

    @property
    def rci(self) -> Optional[Decimal]:
        return self.inspection.rci if self.inspection else None


def urgent_threshold() -> Decimal:
    value = getattr(settings, "RCI_URGENT_THRESHOLD", DEFAULT_URGENT_THRESHOLD)
    return Decimal(str(value))


def _latest_inspection_subquery(outer_field: str) -> Subquery:
    # Ties on inspected_at resolve to the highest id.
    return Subquery(
        Inspection.objects.filter(segment_id=OuterRef(outer_field))
        .order_by("-inspected_at", "-id")
        .values("pk")[:1]
    )


def latest_inspections() -> QuerySet[Inspection]:
    """Each segment's most recent inspection (segments without one are absent)."""

    return Inspection.objects.filter(pk=_latest_inspection_subquery("segment_id"))


def latest_inspection_per_segment(order_by_rci: bool = False) -> List[LatestInspection]:
    """Every segment paired with its latest inspection, or ``None`` if never inspected.

    Ordered by segment code, or worst score first (unscored last) when
    ``order_by_rci`` is true.
    """

    segments = list(
        Segment.objects.annotate(latest_inspection_id=_latest_inspection_subquery("pk")).order_by(
            "code"
        )
    )
    inspection_ids = [s.latest_inspection_id for s in segments if s.latest_inspection_id]
    inspections = Inspection.objects.select_related("inspector").in_bulk(inspection_ids)

    rows = [
        LatestInspection(segment=segment, inspection=inspections.get(segment.latest_inspection_id))
        for segment in segments
    ]
    if order_by_rci:
        rows.sort(key=lambda row: (row.rci is None, row.rci if row.rci is not None else 0))
    return rows


def urgent_candidates(threshold: Decimal) -> QuerySet[Inspection]:
    return (
        latest_inspections()
        .filter(rci__isnull=False, rci__lte=threshold)
        .select_related("segment")
        .order_by("rci", F("inspected_at").desc(), "-id")
    )


def _lock_snapshot_table() -> None:
    """Serialise refreshes for the rest of the transaction.

    EXCLUSIVE mode still admits plain reads of the snapshot. SQLite already
    serialises writers, so only PostgreSQL needs the explicit lock.
    """

    if connection.vendor != "postgresql":
        return
    table = connection.ops.quote_name(UrgentSegment._meta.db_table)
    with connection.cursor() as cursor:
        cursor.execute(f"LOCK TABLE {table} IN EXCLUSIVE MODE")


def refresh_urgent_segments(threshold: Decimal | float | None = None) -> int:
    """Rebuild the urgent segment snapshot and return the number of rows written.

    The old snapshot is replaced in a single transaction, so readers see
    either the previous rows or the new ones. Refreshes take the table lock
    before reading scores, so concurrent runs apply one after the other and
    the last to commit wins.
    """

    threshold = urgent_threshold() if threshold is None else Decimal(str(threshold))

    with transaction.atomic():
        _lock_snapshot_table()
        refreshed_at = timezone.now()
        rows = [
            UrgentSegment(
                segment=inspection.segment,
                inspection=inspection,
                segment_code=inspection.segment.code,
                segment_name=inspection.segment.name,
                rci=inspection.rci,
                inspected_at=inspection.inspected_at,
                position=position,
                threshold=threshold,
                refreshed_at=refreshed_at,
            )
            for position, inspection in enumerate(urgent_candidates(threshold), start=1)
        ]
        UrgentSegment.objects.all().delete()
        UrgentSegment.objects.bulk_create(rows)

    logger.info("Refreshed urgent segments: %s segment(s) at or below RCI %s", len(rows), threshold)
    return len(rows)


def list_urgent_segments() -> QuerySet[UrgentSegment]:
    """Rows of the last snapshot, worst first."""

    return UrgentSegment.objects.select_related("segment").order_by("position")
