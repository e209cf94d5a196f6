from django.urls import path, include

from roads.admin import roads_admin_site

urlpatterns = [
    path('admin/', roads_admin_site.urls),
    path('', include('roads.urls')),
]
