"""Deterministic in-process blob store.

Keeps uploaded bytes (order screenshots, KYC documents, delivery photos) in a table
keyed by path, so adapters can hand out stable URLs without network calls.
"""

import uuid
from django.db import models


class StoredBlob(models.Model):
	"""
	One uploaded object; path is unique and re-uploading to a path replaces it
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	path = models.CharField(max_length=500, unique=True) # e.g. order-screenshots/<user>/<order>.png
	content = models.BinaryField()
	content_type = models.CharField(max_length=100, default="application/octet-stream")
	size = models.IntegerField(default=0)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "stored_blobs"
