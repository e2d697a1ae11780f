"""Theatre backend URL Configuration.

API-Routen:
    /api/auth/          - Authentication (core)
    /api/health/        - Health check (core)
    /api/operations/    - OP-Planung, verfügbare Ressourcen (scheduling)
    /api/ot-rooms/      - OP-Säle (scheduling)
    /api/notifications/ - Benachrichtigungen für Personal (notifications)
"""

from django.contrib import admin
from django.http import HttpResponse
from django.urls import include, path


def root(request):
    """Plain-text root endpoint, doubles as a trivial liveness probe."""
    return HttpResponse("Theatre backend is running.")


urlpatterns = [
    path("", root, name="root"),
    path("admin/", admin.site.urls),

    path("api/", include("theatre_backend.core.urls")),
    path("api/", include("theatre_backend.scheduling.urls")),
    path("api/", include("theatre_backend.notifications.urls")),
]
