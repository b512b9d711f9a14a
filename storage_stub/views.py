"""HTTP endpoints for the storage stub mirroring a put/get object surface.

The adapter uses ORM access for determinism; these endpoints mirror what a real
object store would expose.
"""

import base64
import json
from django.http import HttpResponse, JsonResponse, HttpResponseBadRequest, Http404
from django.views.decorators.csrf import csrf_exempt
from core.adapters.storage_adapter import StorageAdapter
from .models import StoredBlob


def get_blob(request, blob_path: str):
	"""
	GET: Raw bytes of a stored object
	"""
	try:
		blob = StoredBlob.objects.get(path=blob_path)
	except StoredBlob.DoesNotExist:
		raise Http404("no such blob")
	return HttpResponse(bytes(blob.content), content_type=blob.content_type)


@csrf_exempt
def put_blob(request):
	"""
	POST: Store base64 content at a path; returns its public URL
	"""
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")
	body = json.loads(request.body or b"{}")
	blob_path = body.get("path")
	content_b64 = body.get("content_b64")
	if not blob_path or content_b64 is None:
		return HttpResponseBadRequest("path and content_b64 required")
	try:
		content = base64.b64decode(content_b64, validate=True)
	except ValueError:
		return HttpResponseBadRequest("content_b64 is not valid base64")
	url = StorageAdapter.put(blob_path, content, body.get("content_type", "application/octet-stream"))
	return JsonResponse({"url": url}, status=201)
