"""Road Condition Index (RCI) scoring.

The RCI starts from a perfect 10.0 and subtracts a weighted penalty for every
defect recorded against an inspection:

* ``pothole*``: ``severity * (max(depth_cm, 1) / 10) * 0.8``
* ``crack*``: ``severity * (max(length_m, 1) / 10) * 0.5``
* ``rutting*``: ``severity * 0.7 * 0.7``
* anything else: ``severity * 0.5 * 0.4``

Type tags match by case-insensitive prefix, first rule wins in the order
above. The result is clamped to ``[0, 10]`` and rounded half-up to one
decimal place. The weights are defaults for :class:`RCIWeights` and can be
overridden through the ``RCI_WEIGHTS`` setting.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction

from roads.exceptions import InspectionNotFound
from roads.models import Defect, Inspection

logger = logging.getLogger(__name__)

POTHOLE = "pothole"
CRACK = "crack"
RUTTING = "rutting"
OTHER = "other"

# Evaluated in order; the first matching prefix wins.
DEFECT_CATEGORIES = (POTHOLE, CRACK, RUTTING)

RCI_MIN = Decimal("0.0")
RCI_MAX = Decimal("10.0")
RCI_QUANTUM = Decimal("0.1")


@dataclass(frozen=True)
class RCIWeights:
    base_score: Decimal = Decimal("10.0")
    pothole_depth_weight: Decimal = Decimal("0.8")
    crack_length_weight: Decimal = Decimal("0.5")
    rutting_factor: Decimal = Decimal("0.7")
    rutting_weight: Decimal = Decimal("0.7")
    default_factor: Decimal = Decimal("0.5")
    default_weight: Decimal = Decimal("0.4")
    # An unmeasured or shallow pothole / short crack still costs something.
    min_depth_cm: Decimal = Decimal("1")
    min_length_m: Decimal = Decimal("1")
    measurement_scale: Decimal = Decimal("10")


DEFAULT_WEIGHTS = RCIWeights()


def _as_decimal(value) -> Optional[Decimal]:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def get_weights() -> RCIWeights:
    """Return the default weights with any ``RCI_WEIGHTS`` overrides applied."""

    overrides = getattr(settings, "RCI_WEIGHTS", None) or {}
    known = {field.name for field in fields(RCIWeights)}
    unknown = sorted(set(overrides) - known)
    if unknown:
        raise ImproperlyConfigured(f"Unknown RCI_WEIGHTS keys: {', '.join(unknown)}")
    if not overrides:
        return DEFAULT_WEIGHTS
    return replace(DEFAULT_WEIGHTS, **{key: _as_decimal(value) for key, value in overrides.items()})


def classify_defect(defect_type: str | None) -> str:
    tag = (defect_type or "").lower()
    for category in DEFECT_CATEGORIES:
        if tag.startswith(category):
            return category
    return OTHER


def defect_penalty(defect, weights: RCIWeights = DEFAULT_WEIGHTS) -> Decimal:
    """Penalty contributed by one defect.

    ``defect`` is anything exposing ``defect_type``, ``severity``,
    ``depth_cm`` and ``length_m``. Severity is validated on write and is
    assumed to be in range here.
    """

    severity = _as_decimal(defect.severity)
    category = classify_defect(defect.defect_type)

    if category == POTHOLE:
        depth = _as_decimal(defect.depth_cm)
        depth = max(depth, weights.min_depth_cm) if depth is not None else weights.min_depth_cm
        return severity * (depth / weights.measurement_scale) * weights.pothole_depth_weight

    if category == CRACK:
        length = _as_decimal(defect.length_m)
        length = max(length, weights.min_length_m) if length is not None else weights.min_length_m
        return severity * (length / weights.measurement_scale) * weights.crack_length_weight

    if category == RUTTING:
        return severity * weights.rutting_factor * weights.rutting_weight

    return severity * weights.default_factor * weights.default_weight


def compute_rci(defects: Iterable, weights: RCIWeights | None = None) -> Decimal:
    """Score a set of defects belonging to one inspection.

    Total over any defect set; an empty set scores exactly ``10.0``.
    """

    weights = weights or get_weights()
    total_penalty = sum((defect_penalty(defect, weights) for defect in defects), Decimal("0"))
    score = weights.base_score - total_penalty
    score = min(max(score, RCI_MIN), RCI_MAX)
    return score.quantize(RCI_QUANTUM, rounding=ROUND_HALF_UP)


def recompute_rci(inspection_id, weights: RCIWeights | None = None) -> Decimal:
    """Recompute, persist and return the RCI of one inspection.

    The inspection row is locked for the duration so concurrent defect
    writes against the same inspection serialise; other inspections are
    unaffected. The lock is FOR NO KEY UPDATE so it does not conflict with
    the KEY SHARE lock a defect insert takes on its parent row. Raises :class:`roads.exceptions.InspectionNotFound` for an
    unknown id.
    """

    with transaction.atomic():
        locked = (
            Inspection.objects.select_for_update(no_key=True)
            .filter(pk=inspection_id)
            .values_list("pk", flat=True)
            .first()
        )
        if locked is None:
            raise InspectionNotFound(inspection_id)

        defects = Defect.objects.filter(inspection_id=inspection_id).only(
            "defect_type", "severity", "depth_cm", "length_m"
        )
        score = compute_rci(defects, weights)
        Inspection.objects.filter(pk=inspection_id).update(rci=score)

    logger.debug("Recomputed RCI for inspection %s: %s", inspection_id, score)
    return score


def recompute_all(inspection_ids: Iterable[int] | None = None) -> int:
    """Recompute every inspection (or the given ids); returns the count processed."""

    if inspection_ids is None:
        inspection_ids = list(Inspection.objects.order_by("pk").values_list("pk", flat=True))

    processed = 0
    for inspection_id in inspection_ids:
        recompute_rci(inspection_id)
        processed += 1
    logger.info("Recomputed RCI for %s inspection(s)", processed)
    return processed
