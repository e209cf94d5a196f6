"""Keep ``Inspection.rci`` in step with defect writes.

Every defect create, update or delete recomputes the owning inspection's
score in the transaction of the write itself (``Defect.save`` and
``Defect.delete`` open the atomic block; the queryset bulk paths in
:class:`roads.models.DefectQuerySet` do the same).

Fixture loads (raw saves) rescore as well, whichever of the inspection and
its defects arrives last.
"""

from __future__ import annotations

import logging

from django.db.models import QuerySet
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .exceptions import InspectionNotFound, RCIIntegrityError
from .models import Defect, Inspection
from .services.rci import recompute_rci

logger = logging.getLogger(__name__)


def recompute_for_write(inspection_id, defect_id=None):
    """Recompute after a create/update; a vanished inspection is an integrity error."""

    try:
        return recompute_rci(inspection_id)
    except InspectionNotFound as exc:
        logger.error(
            "Defect %s was written against missing inspection %s; rolling back",
            defect_id,
            inspection_id,
        )
        raise RCIIntegrityError(inspection_id, defect_id) from exc


def recompute_if_present(inspection_id, defect_id=None):
    """Recompute after a delete or fixture load; skip an inspection that is not there."""

    try:
        return recompute_rci(inspection_id)
    except InspectionNotFound:
        logger.debug(
            "Inspection %s not present for defect %s; skipping RCI update",
            inspection_id,
            defect_id,
        )
        return None


def _is_direct_defect_delete(origin) -> bool:
    if origin is None or isinstance(origin, Defect):
        return True
    return isinstance(origin, QuerySet) and issubclass(origin.model, Defect)


@receiver(post_save, sender=Defect)
def _recompute_on_defect_save(sender, instance: Defect, created: bool, raw: bool = False, **kwargs):
    if raw:
        # Fixture loads may bring the inspection in after its defects.
        recompute_if_present(instance.inspection_id, instance.pk)
        return
    recompute_for_write(instance.inspection_id, instance.pk)


@receiver(post_save, sender=Inspection)
def _recompute_on_inspection_load(sender, instance: Inspection, raw: bool = False, **kwargs):
    # A fixture row carries its own rci; rescore it from the defects already loaded.
    if raw:
        recompute_rci(instance.pk)


@receiver(post_delete, sender=Defect)
def _recompute_on_defect_delete(sender, instance: Defect, origin=None, **kwargs):
    # Cascades from an inspection or segment remove the inspection in the
    # same transaction.
    if not _is_direct_defect_delete(origin):
        return
    recompute_if_present(instance.inspection_id, instance.pk)
