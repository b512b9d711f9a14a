"""Adapter over the local storage stub.

In production, this would upload to an object store (S3, Supabase storage, ...)
and return its public URL. Here we write the stub's ORM table directly for
repeatable, deterministic tests. The core only ever keeps the returned URL.
"""

from django.conf import settings
from storage_stub.models import StoredBlob


class StorageAdapter:
	"""
	put(path, bytes) -> url; the core never interprets the bytes
	"""

	provider_name = "stub-storage"

	@staticmethod
	def url_for(path: str) -> str:
		base = getattr(settings, "STORAGE_BASE_URL", "/stub/storage/blobs/")
		return base.rstrip("/") + "/" + path.lstrip("/")

	@staticmethod
	def put(path: str, content: bytes, content_type: str = "application/octet-stream") -> str:
		"""
		Store (or replace) the object at path and return its URL.
		"""
		content = bytes(content)
		StoredBlob.objects.update_or_create(
			path=path,
			defaults={"content": content, "content_type": content_type, "size": len(content)},
		)
		return StorageAdapter.url_for(path)

	@staticmethod
	def get(path: str) -> bytes:
		return bytes(StoredBlob.objects.get(path=path).content)
