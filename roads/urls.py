"""URL configuration for the road condition API."""

from django.urls import include, path
from rest_framework import routers

from . import views


router = routers.DefaultRouter()
router.register(r"segments", views.SegmentViewSet)
router.register(r"inspectors", views.InspectorViewSet)
router.register(r"inspections", views.InspectionViewSet)
router.register(r"defects", views.DefectViewSet)
router.register(r"defect-images", views.DefectImageViewSet)
router.register(r"maintenance-actions", views.MaintenanceActionViewSet)


urlpatterns = [
    path("api/latest-inspections/", views.latest_inspections, name="latest_inspections"),
    path("api/urgent-segments/", views.urgent_segments, name="urgent_segments"),
    path("api/urgent-segments/refresh/", views.refresh_urgent, name="refresh_urgent_segments"),
    path("api/reports/defect-summary/", views.defect_summary, name="defect_summary"),
    path("api/reports/condition.xlsx", views.condition_report_xlsx, name="condition_report_xlsx"),
    path("api/", include(router.urls)),
]
