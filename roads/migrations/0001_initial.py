from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Inspector",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=150)),
                ("phone", models.CharField(blank=True, max_length=50)),
                ("email", models.EmailField(blank=True, max_length=254)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Inspector",
                "verbose_name_plural": "Inspectors",
                "db_table": "inspectors",
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Segment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Stable external identifier (e.g. SEG-001). Cannot be changed once assigned.",
                        max_length=50,
                        unique=True,
                    ),
                ),
                ("name", models.CharField(blank=True, max_length=200)),
                ("start_lat", models.FloatField(blank=True, null=True)),
                ("start_lon", models.FloatField(blank=True, null=True)),
                ("end_lat", models.FloatField(blank=True, null=True)),
                ("end_lon", models.FloatField(blank=True, null=True)),
                (
                    "length_m",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Segment length (m)",
                        max_digits=10,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Road segment",
                "verbose_name_plural": "Road segments",
                "db_table": "segments",
                "ordering": ["code"],
                "indexes": [models.Index(fields=["code"], name="idx_segments_code")],
            },
        ),
        migrations.CreateModel(
            name="Inspection",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("inspected_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("surface_condition", models.TextField(blank=True)),
                (
                    "rci",
                    models.DecimalField(
                        blank=True,
                        decimal_places=1,
                        editable=False,
                        help_text="Road Condition Index 0.0 - 10.0 (higher is better), derived from defects",
                        max_digits=4,
                        null=True,
                        validators=[
                            django.core.validators.MinValueValidator(Decimal("0.0")),
                            django.core.validators.MaxValueValidator(Decimal("10.0")),
                        ],
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "inspector",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="inspections",
                        to="roads.inspector",
                    ),
                ),
                (
                    "segment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="inspections",
                        to="roads.segment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Inspection",
                "verbose_name_plural": "Inspections",
                "db_table": "inspections",
                "ordering": ["-inspected_at", "-id"],
                "indexes": [
                    models.Index(fields=["segment", "-inspected_at"], name="idx_inspections_segment_time"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Defect",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "defect_type",
                    models.CharField(
                        help_text="Open vocabulary: pothole*, crack*, rutting*, or any other tag",
                        max_length=100,
                    ),
                ),
                (
                    "severity",
                    models.PositiveSmallIntegerField(
                        help_text="Severity on a 1 (minor) to 5 (critical) scale",
                        validators=[
                            django.core.validators.MinValueValidator(1),
                            django.core.validators.MaxValueValidator(5),
                        ],
                    ),
                ),
                ("length_m", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("width_m", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("depth_cm", models.DecimalField(blank=True, decimal_places=2, max_digits=8, null=True)),
                ("location_lat", models.FloatField(blank=True, null=True)),
                ("location_lon", models.FloatField(blank=True, null=True)),
                ("comments", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "inspection",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="defects",
                        to="roads.inspection",
                    ),
                ),
            ],
            options={
                "verbose_name": "Defect",
                "verbose_name_plural": "Defects",
                "db_table": "defects",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["inspection"], name="idx_defects_inspection"),
                    models.Index(fields=["defect_type", "severity"], name="idx_defects_type_severity"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("severity__gte", 1), ("severity__lte", 5)),
                        name="defect_severity_range",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="DefectImage",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("image_url", models.URLField(max_length=500)),
                ("caption", models.CharField(blank=True, max_length=255)),
                ("uploaded_at", models.DateTimeField(auto_now_add=True)),
                (
                    "defect",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="images",
                        to="roads.defect",
                    ),
                ),
            ],
            options={
                "verbose_name": "Defect image",
                "verbose_name_plural": "Defect images",
                "db_table": "defect_images",
                "ordering": ["uploaded_at", "id"],
            },
        ),
        migrations.CreateModel(
            name="MaintenanceAction",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("planned_date", models.DateField(blank=True, null=True)),
                ("performed_date", models.DateField(blank=True, null=True)),
                (
                    "action_type",
                    models.CharField(
                        blank=True,
                        help_text="e.g. patching, resurfacing, reconstruction, line_painting",
                        max_length=100,
                    ),
                ),
                (
                    "cost",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0"))],
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("PLANNED", "Planned"),
                            ("IN_PROGRESS", "In progress"),
                            ("COMPLETED", "Completed"),
                            ("CANCELLED", "Cancelled"),
                        ],
                        default="PLANNED",
                        max_length=20,
                    ),
                ),
                ("notes", models.TextField(blank=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "segment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="maintenance_actions",
                        to="roads.segment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Maintenance action",
                "verbose_name_plural": "Maintenance actions",
                "db_table": "maintenance_actions",
                "ordering": ["planned_date", "id"],
                "indexes": [models.Index(fields=["status"], name="idx_maintenance_status")],
            },
        ),
        migrations.CreateModel(
            name="UrgentSegment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("segment_code", models.CharField(max_length=50)),
                ("segment_name", models.CharField(blank=True, max_length=200)),
                ("rci", models.DecimalField(decimal_places=1, max_digits=4)),
                ("inspected_at", models.DateTimeField()),
                ("position", models.PositiveIntegerField(help_text="Rank order (1 = worst condition)")),
                ("threshold", models.DecimalField(decimal_places=1, max_digits=4)),
                ("refreshed_at", models.DateTimeField()),
                (
                    "inspection",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="+",
                        to="roads.inspection",
                    ),
                ),
                (
                    "segment",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="urgent_snapshots",
                        to="roads.segment",
                    ),
                ),
            ],
            options={
                "verbose_name": "Urgent segment",
                "verbose_name_plural": "Urgent segments",
                "db_table": "urgent_segments",
                "ordering": ["position"],
            },
        ),
    ]
