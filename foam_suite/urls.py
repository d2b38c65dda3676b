"""
URL configuration for the foam_suite project.

The sync core is exposed under /api/sync/; everything else (estimating UI,
PDF builders, auth issuance) lives outside this project.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include


def healthz(request):
    return JsonResponse({"status": "ok"})


urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/sync/', include('fieldsync.api_urls')),
    path("healthz/", healthz),
]
