from __future__ import annotations

from django.contrib import admin, messages
from django.contrib.admin import AdminSite

from . import models
from .services import rci as rci_service
from .services.urgent import refresh_urgent_segments


class RoadConditionAdminSite(AdminSite):
    site_header = "Road condition administration"
    site_title = "Road condition"
    index_title = "Segments, inspections and defects"


roads_admin_site = RoadConditionAdminSite(name="roads_admin")


class DefectImageInline(admin.TabularInline):
    model = models.DefectImage
    extra = 0
    fields = ("image_url", "caption", "uploaded_at")
    readonly_fields = ("uploaded_at",)


class DefectInline(admin.TabularInline):
    model = models.Defect
    extra = 0
    fields = ("defect_type", "severity", "length_m", "width_m", "depth_cm", "comments")
    show_change_link = True


@admin.register(models.Inspector, site=roads_admin_site)
class InspectorAdmin(admin.ModelAdmin):
    list_display = ("name", "phone", "email")
    search_fields = ("name", "email")


@admin.register(models.Segment, site=roads_admin_site)
class SegmentAdmin(admin.ModelAdmin):
    list_display = ("code", "name", "length_m", "latest_rci")
    search_fields = ("code", "name")
    fieldsets = (
        ("Identification", {"fields": ("code", "name")}),
        (
            "Location",
            {"fields": (("start_lat", "start_lon"), ("end_lat", "end_lon"), "length_m")},
        ),
    )

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ("code",)
        return ()

    def latest_rci(self, obj):
        inspection = obj.latest_inspection()
        return inspection.rci if inspection else None

    latest_rci.short_description = "Latest RCI"


@admin.register(models.Inspection, site=roads_admin_site)
class InspectionAdmin(admin.ModelAdmin):
    list_display = ("id", "segment", "inspector", "inspected_at", "rci")
    list_select_related = ("segment", "inspector")
    list_filter = ("inspector",)
    search_fields = ("segment__code", "segment__name", "notes")
    readonly_fields = ("rci", "created_at")
    inlines = [DefectInline]
    actions = ["recompute_selected_rci"]

    def get_readonly_fields(self, request, obj=None):
        fields = list(super().get_readonly_fields(request, obj))
        if obj is not None:
            fields.append("segment")
        return fields

    def recompute_selected_rci(self, request, queryset):
        processed = rci_service.recompute_all(queryset.values_list("pk", flat=True))
        self.message_user(
            request,
            f"Recomputed RCI for {processed} inspection(s).",
            level=messages.SUCCESS,
        )

    recompute_selected_rci.short_description = "Recompute RCI"


@admin.register(models.Defect, site=roads_admin_site)
class DefectAdmin(admin.ModelAdmin):
    list_display = ("id", "inspection", "defect_type", "severity", "depth_cm", "length_m")
    list_filter = ("defect_type", "severity")
    search_fields = ("defect_type", "comments", "inspection__segment__code")
    inlines = [DefectImageInline]

    def get_readonly_fields(self, request, obj=None):
        if obj is not None:
            return ("inspection",)
        return ()


@admin.register(models.MaintenanceAction, site=roads_admin_site)
class MaintenanceActionAdmin(admin.ModelAdmin):
    list_display = ("segment", "action_type", "status", "planned_date", "performed_date", "cost")
    list_filter = ("status", "action_type")
    search_fields = ("segment__code", "notes")


@admin.register(models.UrgentSegment, site=roads_admin_site)
class UrgentSegmentAdmin(admin.ModelAdmin):
    list_display = ("position", "segment_code", "segment_name", "rci", "inspected_at", "refreshed_at")
    actions = ["refresh_snapshot"]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def refresh_snapshot(self, request, queryset):
        count = refresh_urgent_segments()
        self.message_user(
            request,
            f"Urgent segment list refreshed: {count} segment(s).",
            level=messages.SUCCESS,
        )

    refresh_snapshot.short_description = "Refresh urgent segment list"

