"""Defect writes keep the cached inspection RCI consistent."""

from __future__ import annotations

import json
from decimal import Decimal
from unittest import mock

import pytest
from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.db import IntegrityError, connection, transaction
from django.db.models import QuerySet
from django.test.utils import CaptureQueriesContext

from roads.exceptions import InspectionNotFound, RCIIntegrityError
from roads.models import Defect, DefectImage, Inspection, Segment
from roads.services.rci import compute_rci, recompute_all, recompute_rci

from .conftest import stored_rci

pytestmark = pytest.mark.django_db


def test_new_inspection_has_no_score(inspection):
    assert stored_rci(inspection) is None


def test_recompute_without_defects_scores_ten(inspection):
    assert recompute_rci(inspection.pk) == Decimal("10.0")
    assert stored_rci(inspection) == Decimal("10.0")


def test_recompute_is_idempotent(inspection, make_defect):
    make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    first = recompute_rci(inspection.pk)
    second = recompute_rci(inspection.pk)
    assert first == second == stored_rci(inspection) == Decimal("6.2")


def test_recompute_unknown_inspection_raises_not_found():
    with pytest.raises(InspectionNotFound) as excinfo:
        recompute_rci(999999)
    assert excinfo.value.inspection_id == 999999


def test_creating_defect_updates_score(inspection, make_defect):
    make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    assert stored_rci(inspection) == Decimal("6.2")

    make_defect(inspection, "crack", 3, length_m=Decimal("5.0"))
    assert stored_rci(inspection) == Decimal("5.4")


def test_updating_defect_updates_score(inspection, make_defect):
    pothole = make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    pothole.severity = 5
    pothole.depth_cm = Decimal("18")
    pothole.save()
    assert stored_rci(inspection) == Decimal("2.8")


def test_deleting_defect_updates_score(inspection, make_defect):
    pothole = make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    make_defect(inspection, "fading_markings", 2)
    assert stored_rci(inspection) == Decimal("5.8")

    pothole.delete()
    assert stored_rci(inspection) == Decimal("9.6")


def test_queryset_delete_updates_score(inspection, make_defect):
    make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    make_defect(inspection, "crack", 3, length_m=Decimal("5.0"))

    Defect.objects.filter(inspection=inspection, defect_type="pothole").delete()
    # 10 - 0.75 = 9.25 rounds half up
    assert stored_rci(inspection) == Decimal("9.3")

    Defect.objects.filter(inspection=inspection).delete()
    assert stored_rci(inspection) == Decimal("10.0")


def test_queryset_update_recomputes_affected_inspections(segment, make_inspection, make_defect):
    first = make_inspection(segment, days_ago=2)
    second = make_inspection(segment, days_ago=1)
    make_defect(first, "rutting", 2)
    make_defect(second, "rutting", 2)

    Defect.objects.filter(defect_type="rutting").update(severity=5)

    # 10 - 5 * 0.7 * 0.7 = 7.55
    assert stored_rci(first) == stored_rci(second) == Decimal("7.6")


def test_bulk_create_recomputes_inspection(inspection):
    Defect.objects.bulk_create(
        [
            Defect(inspection=inspection, defect_type="pothole", severity=4, depth_cm=Decimal("12")),
            Defect(inspection=inspection, defect_type="crack", severity=3, length_m=Decimal("5.0")),
        ]
    )
    assert stored_rci(inspection) == Decimal("5.4")


def test_stored_score_matches_calculator_after_mixed_writes(inspection, make_defect):
    a = make_defect(inspection, "pothole", 2, depth_cm=Decimal("4"))
    b = make_defect(inspection, "crack_alligator", 4, length_m=Decimal("12"))
    make_defect(inspection, "rutting", 1)
    b.severity = 1
    b.save()
    a.delete()
    make_defect(inspection, "bleeding", 3)

    assert stored_rci(inspection) == compute_rci(Defect.objects.filter(inspection=inspection))


def test_scores_of_other_inspections_are_untouched(segment, make_inspection, make_defect):
    first = make_inspection(segment, days_ago=3)
    second = make_inspection(segment, days_ago=1)
    make_defect(first, "pothole", 5, depth_cm=Decimal("18"))
    assert stored_rci(second) is None


def test_invalid_severity_is_rejected_and_not_persisted(inspection):
    for severity in (0, 6):
        with pytest.raises(ValidationError) as excinfo:
            Defect.objects.create(inspection=inspection, defect_type="pothole", severity=severity)
        assert "severity" in excinfo.value.message_dict
    assert not Defect.objects.exists()
    assert stored_rci(inspection) is None


def test_defect_for_missing_inspection_is_rejected(db):
    with pytest.raises(ValidationError) as excinfo:
        Defect.objects.create(inspection_id=424242, defect_type="crack", severity=2)
    assert "inspection" in excinfo.value.message_dict
    assert not Defect.objects.exists()


def test_defect_cannot_move_between_inspections(segment, make_inspection, make_defect):
    first = make_inspection(segment, days_ago=2)
    second = make_inspection(segment, days_ago=1)
    defect = make_defect(first, "crack", 2)
    defect.inspection = second
    with pytest.raises(ValidationError) as excinfo:
        defect.save()
    assert "inspection" in excinfo.value.message_dict


def test_recompute_failure_on_create_rolls_back_defect(inspection):
    with mock.patch("roads.signals.recompute_rci", side_effect=InspectionNotFound(inspection.pk)):
        with pytest.raises(RCIIntegrityError):
            Defect.objects.create(inspection=inspection, defect_type="pothole", severity=3)
    assert not Defect.objects.filter(inspection=inspection).exists()


def test_integrity_error_is_a_database_integrity_error(inspection, make_defect):
    defect = make_defect(inspection, "crack", 2)
    defect.severity = 4
    with mock.patch("roads.signals.recompute_rci", side_effect=InspectionNotFound(inspection.pk)):
        with pytest.raises(IntegrityError):
            defect.save()
    defect.refresh_from_db()
    assert defect.severity == 2


def test_recompute_failure_on_delete_is_swallowed(inspection, make_defect):
    defect = make_defect(inspection, "crack", 2)
    with mock.patch("roads.signals.recompute_rci", side_effect=InspectionNotFound(inspection.pk)):
        defect.delete()
    assert not Defect.objects.filter(pk=defect.pk).exists()


def test_failed_recompute_inside_outer_transaction_rolls_back_everything(inspection, make_defect):
    make_defect(inspection, "crack", 2)
    before = stored_rci(inspection)
    with pytest.raises(RCIIntegrityError):
        with transaction.atomic():
            make_defect(inspection, "rutting", 3)
            with mock.patch("roads.signals.recompute_rci", side_effect=InspectionNotFound(inspection.pk)):
                make_defect(inspection, "pothole", 5)
    assert Defect.objects.filter(inspection=inspection).count() == 1
    assert stored_rci(inspection) == before


def test_rci_cannot_be_set_on_create(segment):
    with pytest.raises(ValidationError) as excinfo:
        Inspection.objects.create(segment=segment, rci=Decimal("9.0"))
    assert "rci" in excinfo.value.message_dict


def test_saving_inspection_does_not_overwrite_score(inspection, make_defect):
    make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    stale = Inspection.objects.get(pk=inspection.pk)
    make_defect(inspection, "crack", 3, length_m=Decimal("5.0"))

    stale.rci = Decimal("1.0")
    stale.notes = "Follow up inspection"
    stale.save()

    assert stale.rci == Decimal("5.4")
    assert stored_rci(inspection) == Decimal("5.4")
    assert Inspection.objects.get(pk=inspection.pk).notes == "Follow up inspection"


def test_inspection_cannot_change_segment(inspection, make_segment):
    inspection.segment = make_segment()
    with pytest.raises(ValidationError) as excinfo:
        inspection.save()
    assert "segment" in excinfo.value.message_dict


def test_deleting_inspection_cascades_to_defects_and_images(inspection, make_defect):
    defect = make_defect(inspection, "pothole", 4, depth_cm=Decimal("12"))
    DefectImage.objects.create(defect=defect, image_url="https://example.com/pothole.jpg", caption="Front")

    inspection.delete()

    assert not Defect.objects.exists()
    assert not DefectImage.objects.exists()


def test_deleting_segment_cascades_without_recompute_errors(segment, make_inspection, make_defect):
    for days_ago in (10, 5):
        inspection = make_inspection(segment, days_ago=days_ago)
        defect = make_defect(inspection, "crack", 3, length_m=Decimal("2"))
        DefectImage.objects.create(defect=defect, image_url="https://example.com/crack.jpg")

    with mock.patch("roads.signals.recompute_rci") as recompute:
        segment.delete()
        recompute.assert_not_called()

    assert not Segment.objects.exists()
    assert not Inspection.objects.exists()
    assert not Defect.objects.exists()
    assert not DefectImage.objects.exists()


def test_deleting_inspector_keeps_inspections(inspection, inspector):
    inspector.delete()
    inspection.refresh_from_db()
    assert inspection.inspector is None


def test_recompute_all_backfills_every_inspection(segment, make_inspection, make_defect):
    first = make_inspection(segment, days_ago=3)
    second = make_inspection(segment, days_ago=1)
    make_defect(first, "pothole", 4, depth_cm=Decimal("12"))
    Inspection.objects.filter(pk=first.pk).update(rci=None)

    assert recompute_all() == 2
    assert stored_rci(first) == Decimal("6.2")
    assert stored_rci(second) == Decimal("10.0")


def test_segment_code_is_immutable(segment):
    segment.code = "SEG-999"
    with pytest.raises(ValidationError) as excinfo:
        segment.save()
    assert "code" in excinfo.value.message_dict


def test_segment_code_must_be_unique(segment):
    with pytest.raises(ValidationError) as excinfo:
        Segment.objects.create(code=segment.code)
    assert "code" in excinfo.value.message_dict


def test_recompute_takes_no_key_row_lock(inspection):
    original = QuerySet.select_for_update
    with mock.patch.object(QuerySet, "select_for_update", autospec=True, side_effect=original) as spy:
        recompute_rci(inspection.pk)
    spy.assert_called_once()
    assert spy.call_args.kwargs == {"no_key": True}


@pytest.mark.skipif(connection.vendor != "postgresql", reason="row lock clauses are PostgreSQL only")
def test_recompute_lock_does_not_conflict_with_defect_inserts(inspection):
    with CaptureQueriesContext(connection) as captured:
        recompute_rci(inspection.pk)
    locks = [query["sql"] for query in captured.captured_queries if "FOR " in query["sql"]]
    assert locks
    assert all("FOR NO KEY UPDATE" in sql for sql in locks)


def test_queryset_update_cannot_move_defect(segment, make_inspection, make_defect):
    first = make_inspection(segment, days_ago=2)
    second = make_inspection(segment, days_ago=1)
    defect = make_defect(first, "crack", 2)

    for kwargs in ({"inspection": second}, {"inspection_id": second.pk}):
        with pytest.raises(ValidationError) as excinfo:
            Defect.objects.filter(pk=defect.pk).update(**kwargs)
        assert "inspection" in excinfo.value.message_dict

    defect.refresh_from_db()
    assert defect.inspection_id == first.pk
    assert stored_rci(second) is None


def test_queryset_update_cannot_change_segment_code(segment):
    with pytest.raises(ValidationError) as excinfo:
        Segment.objects.filter(pk=segment.pk).update(code="SEG-999")
    assert "code" in excinfo.value.message_dict

    Segment.objects.filter(pk=segment.pk).update(name="Renamed")
    segment.refresh_from_db()
    assert segment.code == "SEG-001"
    assert segment.name == "Renamed"


def test_queryset_update_cannot_move_inspection(inspection, make_segment):
    other = make_segment()
    for kwargs in ({"segment": other}, {"segment_id": other.pk}):
        with pytest.raises(ValidationError) as excinfo:
            Inspection.objects.filter(pk=inspection.pk).update(**kwargs)
        assert "segment" in excinfo.value.message_dict
    inspection.refresh_from_db()
    assert inspection.segment_id != other.pk


def _defect_fixture(inspection_pk, pk=9001):
    return {
        "model": "roads.defect",
        "pk": pk,
        "fields": {
            "inspection": inspection_pk,
            "defect_type": "pothole",
            "severity": 4,
            "depth_cm": "12.00",
            "created_at": "2024-05-01T08:00:00Z",
        },
    }


def test_loaddata_of_defects_rescores_inspection(inspection, tmp_path):
    path = tmp_path / "defects.json"
    path.write_text(json.dumps([_defect_fixture(inspection.pk)]))

    call_command("loaddata", str(path), verbosity=0)

    assert stored_rci(inspection) == Decimal("6.2")


def test_loaddata_with_defects_before_inspection_rescores(segment, tmp_path):
    path = tmp_path / "inspection.json"
    path.write_text(
        json.dumps(
            [
                _defect_fixture(5000),
                {
                    "model": "roads.inspection",
                    "pk": 5000,
                    "fields": {
                        "segment": segment.pk,
                        "inspected_at": "2024-05-01T07:30:00Z",
                        "rci": "1.0",
                        "created_at": "2024-05-01T07:30:00Z",
                    },
                },
            ]
        )
    )

    call_command("loaddata", str(path), verbosity=0)

    assert Inspection.objects.values_list("rci", flat=True).get(pk=5000) == Decimal("6.2")
