"""Errors raised by the road condition scoring path."""

from __future__ import annotations

from django.core.exceptions import ObjectDoesNotExist
from django.db import IntegrityError


class RoadConditionError(Exception):
    """Base class for scoring and recalculation failures."""


class InspectionNotFound(RoadConditionError, ObjectDoesNotExist):
    def __init__(self, inspection_id):
        self.inspection_id = inspection_id
        super().__init__(f"Inspection {inspection_id} does not exist.")


class RCIIntegrityError(RoadConditionError, IntegrityError):
    """A defect write points at an inspection that no longer exists.

    Subclasses :class:`django.db.IntegrityError` so that the enclosing
    ``transaction.atomic`` block rolls back the triggering write.
    """

    def __init__(self, inspection_id, defect_id=None):
        self.inspection_id = inspection_id
        self.defect_id = defect_id
        super().__init__(
            f"Defect {defect_id or '?'} references inspection {inspection_id}, "
            "which no longer exists; the RCI cannot be kept consistent."
        )
