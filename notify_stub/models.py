"""In-app notification inbox standing in for the push/email dispatcher"""

import uuid
from django.db import models


class Notification(models.Model):
	"""
	One delivered notification per user; event is the core's event name (deal.approved, ...)
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	user_id = models.UUIDField(db_index=True)
	event = models.CharField(max_length=64)
	title = models.CharField(max_length=200)
	message = models.TextField()
	link = models.CharField(max_length=500, blank=True, default="")
	is_read = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "notifications"
