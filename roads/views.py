"""REST API views for road segments, inspections and condition scoring."""

from __future__ import annotations

from django.db.models import QuerySet
from django.http import HttpResponse
from rest_framework import exceptions, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.request import Request
from rest_framework.response import Response

from . import models, reports, serializers
from .exceptions import InspectionNotFound, RCIIntegrityError
from .services import rci as rci_service
from .services.urgent import (
    latest_inspection_per_segment,
    list_urgent_segments,
    refresh_urgent_segments,
)


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The write conflicts with concurrent changes."
    default_code = "conflict"


class DefectWriteMixin:
    """Report a defect written against a vanished inspection as 409."""

    def perform_create(self, serializer):
        try:
            super().perform_create(serializer)
        except RCIIntegrityError as exc:
            raise Conflict(str(exc))

    def perform_update(self, serializer):
        try:
            super().perform_update(serializer)
        except RCIIntegrityError as exc:
            raise Conflict(str(exc))


class InspectorViewSet(viewsets.ModelViewSet):
    queryset = models.Inspector.objects.all()
    serializer_class = serializers.InspectorSerializer


class SegmentViewSet(viewsets.ModelViewSet):
    queryset: QuerySet[models.Segment] = models.Segment.objects.all()
    serializer_class = serializers.SegmentSerializer

    @action(detail=True, methods=["get"])
    def defects(self, request: Request, pk=None) -> Response:
        """Defects recorded on the segment's most recent inspection."""

        defects = reports.segment_defects(self.get_object()).prefetch_related("images")
        return Response(serializers.DefectSerializer(defects, many=True).data)


class InspectionViewSet(viewsets.ModelViewSet):
    queryset = (
        models.Inspection.objects.select_related("segment", "inspector")
        .prefetch_related("defects__images")
        .all()
    )
    serializer_class = serializers.InspectionSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        segment_id = self.request.query_params.get("segment")
        if segment_id:
            queryset = queryset.filter(segment_id=segment_id)
        return queryset

    @action(detail=True, methods=["post"], url_path="recompute-rci")
    def recompute_rci(self, request: Request, pk=None) -> Response:
        try:
            inspection_id = int(pk)
        except (TypeError, ValueError):
            raise exceptions.NotFound(f"Inspection {pk} does not exist.")
        try:
            score = rci_service.recompute_rci(inspection_id)
        except InspectionNotFound as exc:
            raise exceptions.NotFound(str(exc))
        payload = serializers.RecomputeResultSerializer({"inspection": inspection_id, "rci": score}).data
        return Response(payload)


class DefectViewSet(DefectWriteMixin, viewsets.ModelViewSet):
    queryset = models.Defect.objects.select_related("inspection").prefetch_related("images").all()
    serializer_class = serializers.DefectSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        inspection_id = self.request.query_params.get("inspection")
        if inspection_id:
            queryset = queryset.filter(inspection_id=inspection_id)
        return queryset


class DefectImageViewSet(viewsets.ModelViewSet):
    queryset = models.DefectImage.objects.select_related("defect").all()
    serializer_class = serializers.DefectImageSerializer


class MaintenanceActionViewSet(viewsets.ModelViewSet):
    queryset = models.MaintenanceAction.objects.select_related("segment").all()
    serializer_class = serializers.MaintenanceActionSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        status_value = self.request.query_params.get("status")
        if status_value:
            queryset = queryset.filter(status=status_value)
        return queryset


@api_view(["GET"])
def latest_inspections(request: Request) -> Response:
    """Live projection of every segment with its latest inspection."""

    order_by_rci = request.query_params.get("order") == "rci"
    rows = latest_inspection_per_segment(order_by_rci=order_by_rci)
    return Response(serializers.LatestInspectionSerializer(rows, many=True).data)


@api_view(["GET"])
def urgent_segments(request: Request) -> Response:
    """Rows from the last urgent segment snapshot; may lag behind live scores."""

    rows = list_urgent_segments()
    return Response(serializers.UrgentSegmentSerializer(rows, many=True).data)


@api_view(["POST"])
def refresh_urgent(request: Request) -> Response:
    count = refresh_urgent_segments()
    return Response({"refreshed": count})


@api_view(["GET"])
def defect_summary(request: Request) -> Response:
    rows = reports.defect_summary_by_segment()
    return Response(serializers.DefectSummarySerializer(rows, many=True).data)


@api_view(["GET"])
def condition_report_xlsx(request: Request) -> HttpResponse:
    response = HttpResponse(
        reports.condition_workbook_bytes(),
        content_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )
    response["Content-Disposition"] = "attachment; filename=condition_report.xlsx"
    return response
