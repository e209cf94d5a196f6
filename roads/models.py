"""Data models for road segments, inspections, defects and maintenance.

``Inspection.rci`` is a cached Road Condition Index derived from the
inspection's defects. It has a single writer,
:func:`roads.services.rci.recompute_rci`, which the defect signal handlers in
:mod:`roads.signals` call on every defect mutation.
"""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models, transaction
from django.utils import timezone


def _stored_value(instance: models.Model, field_name: str):
    """Return the persisted value of ``field_name`` for an existing row."""

    return (
        type(instance)._default_manager.filter(pk=instance.pk)
        .values_list(field_name, flat=True)
        .first()
    )


class ImmutableFieldsQuerySet(models.QuerySet):
    """QuerySet whose ``update()`` refuses fields that are fixed at creation."""

    immutable_fields: tuple = ()

    def update(self, **kwargs):
        errors = {}
        for name in self.immutable_fields:
            field = self.model._meta.get_field(name)
            if name in kwargs or field.attname in kwargs:
                errors[name] = f"{name} cannot be changed once set."
        if errors:
            raise ValidationError(errors)
        return super().update(**kwargs)


class SegmentQuerySet(ImmutableFieldsQuerySet):
    immutable_fields = ("code",)


class InspectionQuerySet(ImmutableFieldsQuerySet):
    immutable_fields = ("segment",)


# ---------------------------------------------------------------------------
# Reference data
# ---------------------------------------------------------------------------


class Inspector(models.Model):
    """Person performing field inspections."""

    name = models.CharField(max_length=150)
    phone = models.CharField(max_length=50, blank=True)
    email = models.EmailField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "inspectors"
        ordering = ["name"]
        verbose_name = "Inspector"
        verbose_name_plural = "Inspectors"

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return self.name


class Segment(models.Model):
    """A physical road stretch; the unit of condition tracking."""

    code = models.CharField(
        max_length=50,
        unique=True,
        help_text="Stable external identifier (e.g. SEG-001). Cannot be changed once assigned.",
    )
    name = models.CharField(max_length=200, blank=True)
    start_lat = models.FloatField(null=True, blank=True)
    start_lon = models.FloatField(null=True, blank=True)
    end_lat = models.FloatField(null=True, blank=True)
    end_lon = models.FloatField(null=True, blank=True)
    length_m = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
        help_text="Segment length (m)",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    objects = SegmentQuerySet.as_manager()

    class Meta:
        db_table = "segments"
        ordering = ["code"]
        verbose_name = "Road segment"
        verbose_name_plural = "Road segments"
        indexes = [models.Index(fields=["code"], name="idx_segments_code")]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.code} - {self.name}" if self.name else self.code

    def clean(self):
        if not self._state.adding and self.pk is not None:
            stored_code = _stored_value(self, "code")
            if stored_code is not None and stored_code != self.code:
                raise ValidationError({"code": "Segment code cannot be changed once assigned."})

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)

    def latest_inspection(self) -> "Inspection | None":
        return self.inspections.order_by("-inspected_at", "-id").first()


# ---------------------------------------------------------------------------
# Inspections and defects
# ---------------------------------------------------------------------------


class Inspection(models.Model):
    segment = models.ForeignKey(Segment, on_delete=models.CASCADE, related_name="inspections")
    inspector = models.ForeignKey(
        Inspector,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="inspections",
    )
    inspected_at = models.DateTimeField(default=timezone.now)
    surface_condition = models.TextField(blank=True)
    rci = models.DecimalField(
        max_digits=4,
        decimal_places=1,
        null=True,
        blank=True,
        editable=False,
        validators=[MinValueValidator(Decimal("0.0")), MaxValueValidator(Decimal("10.0"))],
        help_text="Road Condition Index 0.0 - 10.0 (higher is better), derived from defects",
    )
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = InspectionQuerySet.as_manager()

    class Meta:
        db_table = "inspections"
        ordering = ["-inspected_at", "-id"]
        verbose_name = "Inspection"
        verbose_name_plural = "Inspections"
        indexes = [
            models.Index(fields=["segment", "-inspected_at"], name="idx_inspections_segment_time"),
        ]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"Inspection {self.pk or '?'} of {self.segment_id} at {self.inspected_at:%Y-%m-%d}"

    def clean(self):
        errors = {}

        if self._state.adding:
            if self.rci is not None:
                errors["rci"] = "RCI is derived from the inspection's defects and cannot be set directly."
        elif self.pk is not None:
            stored_segment = _stored_value(self, "segment_id")
            if stored_segment is not None and stored_segment != self.segment_id:
                errors["segment"] = "An inspection cannot be moved to another segment."

        if errors:
            raise ValidationError(errors)

    def save(self, *args, **kwargs):
        self.full_clean()
        if self._state.adding or kwargs.get("force_insert"):
            super().save(*args, **kwargs)
            return

        # rci is owned by the recompute path; ordinary saves never write it.
        update_fields = kwargs.pop("update_fields", None)
        if update_fields is None:
            update_fields = [
                field.name for field in self._meta.concrete_fields if not field.primary_key
            ]
        kwargs["update_fields"] = [name for name in update_fields if name != "rci"]
        super().save(*args, **kwargs)
        self.rci = _stored_value(self, "rci")


class DefectQuerySet(ImmutableFieldsQuerySet):
    """QuerySet whose bulk write paths keep ``Inspection.rci`` consistent.

    ``update()`` and ``bulk_create()`` do not emit per-row signals, so they
    recompute every affected inspection inside the same transaction.
    ``delete()`` already sends ``post_delete`` for each row.
    """

    immutable_fields = ("inspection",)

    def update(self, **kwargs):
        from .signals import recompute_for_write

        with transaction.atomic(using=self.db):
            affected = set(self.values_list("inspection_id", flat=True))
            rows = super().update(**kwargs)
            for inspection_id in sorted(affected):
                recompute_for_write(inspection_id)
        return rows

    def bulk_create(self, objs, *args, **kwargs):
        from .signals import recompute_for_write

        objs = list(objs)
        with transaction.atomic(using=self.db):
            created = super().bulk_create(objs, *args, **kwargs)
            for inspection_id in sorted({obj.inspection_id for obj in objs}):
                recompute_for_write(inspection_id)
        return created


class Defect(models.Model):
    """One fault observed during an inspection."""

    inspection = models.ForeignKey(Inspection, on_delete=models.CASCADE, related_name="defects")
    defect_type = models.CharField(
        max_length=100,
        help_text="Open vocabulary: pothole*, crack*, rutting*, or any other tag",
    )
    severity = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(5)],
        help_text="Severity on a 1 (minor) to 5 (critical) scale",
    )
    length_m = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    width_m = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    depth_cm = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    location_lat = models.FloatField(null=True, blank=True)
    location_lon = models.FloatField(null=True, blank=True)
    comments = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = DefectQuerySet.as_manager()

    class Meta:
        db_table = "defects"
        ordering = ["-created_at", "-id"]
        verbose_name = "Defect"
        verbose_name_plural = "Defects"
        indexes = [
            models.Index(fields=["inspection"], name="idx_defects_inspection"),
            models.Index(fields=["defect_type", "severity"], name="idx_defects_type_severity"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(severity__gte=1) & models.Q(severity__lte=5),
                name="defect_severity_range",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.defect_type} (severity {self.severity})"

    def clean(self):
        if not self._state.adding and self.pk is not None:
            stored_inspection = _stored_value(self, "inspection_id")
            if stored_inspection is not None and stored_inspection != self.inspection_id:
                raise ValidationError(
                    {"inspection": "A defect cannot be moved to another inspection."}
                )

    def save(self, *args, **kwargs):
        self.full_clean()
        # post_save recomputes the inspection's RCI inside this transaction.
        with transaction.atomic():
            super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        with transaction.atomic():
            return super().delete(*args, **kwargs)


class DefectImage(models.Model):
    defect = models.ForeignKey(Defect, on_delete=models.CASCADE, related_name="images")
    image_url = models.URLField(max_length=500)
    caption = models.CharField(max_length=255, blank=True)
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "defect_images"
        ordering = ["uploaded_at", "id"]
        verbose_name = "Defect image"
        verbose_name_plural = "Defect images"

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return self.caption or self.image_url

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Maintenance
# ---------------------------------------------------------------------------


class MaintenanceAction(models.Model):
    class Status(models.TextChoices):
        PLANNED = "PLANNED", "Planned"
        IN_PROGRESS = "IN_PROGRESS", "In progress"
        COMPLETED = "COMPLETED", "Completed"
        CANCELLED = "CANCELLED", "Cancelled"

    segment = models.ForeignKey(Segment, on_delete=models.CASCADE, related_name="maintenance_actions")
    planned_date = models.DateField(null=True, blank=True)
    performed_date = models.DateField(null=True, blank=True)
    action_type = models.CharField(
        max_length=100,
        blank=True,
        help_text="e.g. patching, resurfacing, reconstruction, line_painting",
    )
    cost = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0"))],
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PLANNED)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "maintenance_actions"
        ordering = ["planned_date", "id"]
        verbose_name = "Maintenance action"
        verbose_name_plural = "Maintenance actions"
        indexes = [models.Index(fields=["status"], name="idx_maintenance_status")]

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"{self.action_type or 'Action'} on {self.segment_id} ({self.status})"

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


# ---------------------------------------------------------------------------
# Derived snapshot
# ---------------------------------------------------------------------------


class UrgentSegment(models.Model):
    """Snapshot row written by :func:`roads.services.urgent.refresh_urgent_segments`.

    Rows are a cache of the latest-inspection scores at refresh time and are
    expected to lag behind live data until the next refresh.
    """

    segment = models.ForeignKey(Segment, on_delete=models.CASCADE, related_name="urgent_snapshots")
    inspection = models.ForeignKey(Inspection, on_delete=models.CASCADE, related_name="+")
    segment_code = models.CharField(max_length=50)
    segment_name = models.CharField(max_length=200, blank=True)
    rci = models.DecimalField(max_digits=4, decimal_places=1)
    inspected_at = models.DateTimeField()
    position = models.PositiveIntegerField(help_text="Rank order (1 = worst condition)")
    threshold = models.DecimalField(max_digits=4, decimal_places=1)
    refreshed_at = models.DateTimeField()

    class Meta:
        db_table = "urgent_segments"
        ordering = ["position"]
        verbose_name = "Urgent segment"
        verbose_name_plural = "Urgent segments"

    def __str__(self) -> str:  # pragma: no cover - simple repr
        return f"#{self.position} {self.segment_code} (RCI {self.rci})"
