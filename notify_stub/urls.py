from django.urls import path
from .views import inbox, mark_read, mark_all_read


urlpatterns = [
	path("<uuid:user_id>", inbox),
	path("<uuid:user_id>/read/<uuid:notification_id>", mark_read),
	path("<uuid:user_id>/read-all", mark_all_read),
]
