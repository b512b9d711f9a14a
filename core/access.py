"""Lookups, capability checks and profile edits shared by the services."""

import logging
import re
import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from .errors import NotFoundError, PermissionDeniedError, ValidationError
from .models import User

logger = logging.getLogger(__name__)

PHONE_RE = re.compile(r"^\+?[0-9][0-9 -]{5,30}$")
PROFILE_FIELDS = ("display_name", "phone", "preferred_role")


def require_admin(is_admin: bool, action: str):
	if not is_admin:
		raise PermissionDeniedError(f"only an admin can {action}")


def fetch(queryset, pk, what: str):
	"""
	queryset.get(pk=pk) that maps missing rows and malformed ids to NotFoundError.
	Pass a select_for_update() queryset to lock the row.
	"""
	try:
		return queryset.get(pk=pk)
	except (queryset.model.DoesNotExist, DjangoValidationError, ValueError):
		raise NotFoundError(f"{what} {pk} not found")


def get_user(user_id) -> User:
	return fetch(User.objects.all(), user_id, "user")


def same_id(a, b) -> bool:
	if a is None or b is None:
		return False
	try:
		return uuid.UUID(str(a)) == uuid.UUID(str(b))
	except ValueError:
		return False


def known_user_id(user_id):
	"""
	The id if it names a stored user, else None. Gateway-asserted admins need not
	have a marketplace row, and audit FKs must not point at nothing.
	"""
	if user_id is None:
		return None
	try:
		return User.objects.filter(pk=user_id).values_list("pk", flat=True).first()
	except (DjangoValidationError, ValueError):
		return None


@transaction.atomic
def update_profile(user_id, changes: dict) -> User:
	"""
	Edit display_name, phone and preferred_role. Keys left out are untouched;
	email and the admin flag cannot be changed here.
	"""
	user = fetch(User.objects.select_for_update(), user_id, "user")
	unknown = sorted(set(changes) - set(PROFILE_FIELDS))
	if unknown:
		raise ValidationError(f"cannot update {', '.join(unknown)}", field=unknown[0])

	if "display_name" in changes:
		name = str(changes["display_name"] or "").strip()
		if not name or len(name) > 200:
			raise ValidationError("display_name must be 1-200 characters", field="display_name")
		user.display_name = name
	if "phone" in changes:
		phone = str(changes["phone"] or "").strip()
		if phone and (len(phone) > 32 or not PHONE_RE.match(phone)):
			raise ValidationError("phone must be digits, optionally with +, spaces or dashes", field="phone")
		user.phone = phone
	if "preferred_role" in changes:
		role = changes["preferred_role"]
		if role not in dict(User.PREFERRED_ROLES):
			raise ValidationError(
				f"preferred_role must be one of {', '.join(dict(User.PREFERRED_ROLES))}", field="preferred_role"
			)
		user.preferred_role = role

	user.save(update_fields=[f for f in PROFILE_FIELDS if f in changes])
	logger.info("profile of %s updated: %s", user.id, ", ".join(sorted(changes)))
	return user
