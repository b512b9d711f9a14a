from django.urls import path
from .views import get_blob, put_blob


urlpatterns = [
	path("blobs/<path:blob_path>", get_blob),
	path("put", put_blob),
]
