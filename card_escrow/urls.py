"""URL routing for API + local stubs (storage + notifications).


The /api/ namespace exposes the deal lifecycle; /stub/* exposes deterministic stubs
used by adapters. In production, stubs are replaced by real providers.
"""

from django.contrib import admin
from django.urls import path, include


urlpatterns = [
	path("admin/", admin.site.urls),
	path("api/", include("api.urls")),
	path("stub/storage/", include("storage_stub.urls")),
	path("stub/notifications/", include("notify_stub.urls")),
]
