"""Serializers for the road condition REST API."""

from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers

from . import models


class ModelCleanMixin:
    """Surface model ``full_clean`` errors as field-keyed 400 responses."""

    def create(self, validated_data):
        try:
            return super().create(validated_data)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(serializers.as_serializer_error(exc))

    def update(self, instance, validated_data):
        try:
            return super().update(instance, validated_data)
        except DjangoValidationError as exc:
            raise serializers.ValidationError(serializers.as_serializer_error(exc))


class ImmutableOnUpdateMixin:
    """Reject changes to ``immutable_fields`` once the object exists."""

    immutable_fields: tuple = ()

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if self.instance is None:
            return attrs
        errors = {}
        for name in self.immutable_fields:
            if name in attrs and attrs[name] != getattr(self.instance, name):
                errors[name] = "This field cannot be changed once set."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class InspectorSerializer(ModelCleanMixin, serializers.ModelSerializer):
    class Meta:
        model = models.Inspector
        fields = ["id", "name", "phone", "email", "created_at"]


class SegmentSerializer(ImmutableOnUpdateMixin, ModelCleanMixin, serializers.ModelSerializer):
    immutable_fields = ("code",)

    class Meta:
        model = models.Segment
        fields = [
            "id",
            "code",
            "name",
            "start_lat",
            "start_lon",
            "end_lat",
            "end_lon",
            "length_m",
            "created_at",
        ]


class DefectImageSerializer(ModelCleanMixin, serializers.ModelSerializer):
    class Meta:
        model = models.DefectImage
        fields = ["id", "defect", "image_url", "caption", "uploaded_at"]


class DefectSerializer(ImmutableOnUpdateMixin, ModelCleanMixin, serializers.ModelSerializer):
    immutable_fields = ("inspection",)
    images = DefectImageSerializer(many=True, read_only=True)

    class Meta:
        model = models.Defect
        fields = [
            "id",
            "inspection",
            "defect_type",
            "severity",
            "length_m",
            "width_m",
            "depth_cm",
            "location_lat",
            "location_lon",
            "comments",
            "created_at",
            "images",
        ]


class InspectionSerializer(ImmutableOnUpdateMixin, ModelCleanMixin, serializers.ModelSerializer):
    immutable_fields = ("segment",)
    defects = DefectSerializer(many=True, read_only=True)

    class Meta:
        model = models.Inspection
        fields = [
            "id",
            "segment",
            "inspector",
            "inspected_at",
            "surface_condition",
            "rci",
            "notes",
            "created_at",
            "defects",
        ]
        read_only_fields = ("rci",)


class MaintenanceActionSerializer(ModelCleanMixin, serializers.ModelSerializer):
    class Meta:
        model = models.MaintenanceAction
        fields = [
            "id",
            "segment",
            "planned_date",
            "performed_date",
            "action_type",
            "cost",
            "status",
            "notes",
            "created_at",
        ]


class InspectionSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = models.Inspection
        fields = ["id", "inspector", "inspected_at", "surface_condition", "rci", "notes"]


class LatestInspectionSerializer(serializers.Serializer):
    segment = SegmentSerializer(read_only=True)
    latest_inspection = InspectionSummarySerializer(source="inspection", read_only=True, allow_null=True)


class UrgentSegmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = models.UrgentSegment
        fields = [
            "position",
            "segment",
            "segment_code",
            "segment_name",
            "inspection",
            "rci",
            "inspected_at",
            "threshold",
            "refreshed_at",
        ]


class DefectSummarySerializer(serializers.Serializer):
    segment_id = serializers.IntegerField()
    segment_code = serializers.CharField()
    segment_name = serializers.CharField()
    inspection_id = serializers.IntegerField()
    defect_count = serializers.IntegerField()
    avg_severity = serializers.DecimalField(max_digits=4, decimal_places=2, allow_null=True)


class RecomputeResultSerializer(serializers.Serializer):
    inspection = serializers.IntegerField()
    rci = serializers.DecimalField(max_digits=4, decimal_places=1)
