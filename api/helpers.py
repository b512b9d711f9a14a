"""Request plumbing shared by the API views: identity, JSON bodies, error rendering."""

import functools
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass

from django.conf import settings
from django.http import JsonResponse

from core.errors import EscrowError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
	user_id: str
	is_admin: bool


class IdentityError(Exception):
	pass


def _hmac_valid(raw_body: bytes, provided_sig: str, secret: str) -> bool:
	mac = hmac.new(key=secret.encode("utf-8"), msg=raw_body, digestmod=hashlib.sha256)
	expected = mac.hexdigest()
	return hmac.compare_digest(expected, provided_sig or "")


def sign_identity(user_id: str, role: str, secret: str) -> str:
	return hmac.new(secret.encode("utf-8"), f"{user_id}:{role}".encode("utf-8"), hashlib.sha256).hexdigest()


def actor_from_request(request) -> Actor:
	"""
	The gateway authenticates the user and forwards X-User-Id / X-User-Role.
	With IDENTITY_HEADER_SECRET set, X-Identity-Signature must be HMAC(user_id:role).
	"""
	user_id = (request.headers.get("X-User-Id") or "").strip()
	role = (request.headers.get("X-User-Role") or "").strip().lower()
	if not user_id:
		raise IdentityError("missing X-User-Id")

	secret = getattr(settings, "IDENTITY_HEADER_SECRET", "")
	if secret:
		signature = request.headers.get("X-Identity-Signature") or ""
		if not _hmac_valid(f"{user_id}:{role}".encode("utf-8"), signature, secret):
			raise IdentityError("bad identity signature")
	return Actor(user_id=user_id, is_admin=(role == "admin"))


def read_json(request) -> dict:
	try:
		body = json.loads(request.body or b"{}")
	except (ValueError, UnicodeDecodeError):
		raise ValidationError("request body must be JSON")
	if not isinstance(body, dict):
		raise ValidationError("request body must be a JSON object")
	return body


def endpoint(*methods):
	"""
	Restrict HTTP methods, resolve the caller, and render domain errors as
	{"error": code, "message": ...} with the error's HTTP status.
	The wrapped view is called as view(request, actor, *args, **kwargs).
	"""
	def decorator(view):
		@functools.wraps(view)
		def wrapper(request, *args, **kwargs):
			if request.method not in methods:
				return JsonResponse(
					{"error": "method_not_allowed", "message": f"{'/'.join(methods)} only"}, status=405
				)
			try:
				actor = actor_from_request(request)
			except IdentityError as e:
				return JsonResponse({"error": "unauthenticated", "message": str(e)}, status=401)
			try:
				return view(request, actor, *args, **kwargs)
			except EscrowError as e:
				logger.info("%s %s -> %s: %s", request.method, request.path, e.code, e.message)
				return JsonResponse(e.as_dict(), status=e.http_status)
		return wrapper
	return decorator


def money(value) -> str:
	return f"{value:.2f}"
