"""KYC gate: identity/bank verification that unlocks deal creation and acceptance."""

import logging
import re
from datetime import date

from django.conf import settings
from django.db import transaction, IntegrityError
from django.utils.dateparse import parse_date

from .access import get_user, known_user_id, require_admin
from .adapters.notification_adapter import NotificationAdapter
from .errors import ConflictError, InvalidStateError, KycRequiredError, ValidationError
from .models import KycRecord, KycStatus
from .states import ensure_transition, parse_status

logger = logging.getLogger(__name__)

PAN_RE = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
IFSC_RE = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")

REQUIRED_FIELDS = ("pan_number", "bank_name", "account_number", "ifsc_code", "document_url")
OPTIONAL_FIELDS = ("full_name", "account_holder_name", "selfie_url")


def get_status(user_id) -> str:
	record = KycRecord.objects.filter(user_id=user_id).only("status").first()
	return record.status if record else KycStatus.NOT_SUBMITTED


def can_create_deal(user_id) -> bool:
	return get_status(user_id) == KycStatus.APPROVED


def can_accept_deal(user_id) -> bool:
	return get_status(user_id) == KycStatus.APPROVED


def require_approved(user_id, action: str):
	status = get_status(user_id)
	if status != KycStatus.APPROVED:
		raise KycRequiredError(f"KYC must be approved to {action} (current status: {status})", kyc_status=status)


def clean_fields(fields: dict) -> dict:
	"""
	Normalise and validate a submission. Raises ValidationError naming the first bad field.
	"""
	cleaned = {}
	for name in REQUIRED_FIELDS:
		value = str(fields.get(name) or "").strip()
		if not value:
			raise ValidationError(f"{name} is required", field=name)
		cleaned[name] = value
	for name in OPTIONAL_FIELDS:
		cleaned[name] = str(fields.get(name) or "").strip()

	cleaned["pan_number"] = cleaned["pan_number"].upper()
	cleaned["ifsc_code"] = cleaned["ifsc_code"].upper()
	if not PAN_RE.match(cleaned["pan_number"]):
		raise ValidationError("PAN must look like ABCDE1234F", field="pan_number")
	if not IFSC_RE.match(cleaned["ifsc_code"]):
		raise ValidationError("IFSC must look like ABCD0123456", field="ifsc_code")
	if not cleaned["account_number"].isdigit() or not 6 <= len(cleaned["account_number"]) <= 18:
		raise ValidationError("account_number must be 6-18 digits", field="account_number")

	dob = fields.get("date_of_birth")
	if dob in (None, ""):
		cleaned["date_of_birth"] = None
	else:
		parsed = dob if isinstance(dob, date) else parse_date(str(dob))
		if parsed is None:
			raise ValidationError("date_of_birth must be YYYY-MM-DD", field="date_of_birth")
		cleaned["date_of_birth"] = parsed
	return cleaned


@transaction.atomic
def submit(user_id, fields: dict) -> KycRecord:
	"""
	First submission or resubmission; always lands in 'pending' with notes cleared.
	"""
	user = get_user(user_id)
	cleaned = clean_fields(fields)

	if KycRecord.objects.filter(pan_number=cleaned["pan_number"]).exclude(user=user).exists():
		raise ConflictError("this PAN is already registered to another account", field="pan_number")

	record = KycRecord.objects.select_for_update().filter(user=user).first()
	current = record.status if record else KycStatus.NOT_SUBMITTED
	if current == KycStatus.APPROVED:
		raise InvalidStateError("KYC is already approved")
	ensure_transition(KycStatus, current, KycStatus.PENDING, "KYC")

	try:
		with transaction.atomic():
			if record is None:
				record = KycRecord.objects.create(user=user, status=KycStatus.PENDING, **cleaned)
			else:
				for name, value in cleaned.items():
					setattr(record, name, value)
				record.status = KycStatus.PENDING
				record.admin_notes = ""
				record.reviewed_by = None
				record.save()
	except IntegrityError:
		# lost a race with another account claiming the same PAN
		raise ConflictError("this PAN is already registered to another account", field="pan_number")

	logger.info("KYC submitted by %s (was %s)", user.id, current)
	return record


@transaction.atomic
def decide(user_id, decision: str, admin_id=None, is_admin: bool = False, notes: str | None = None) -> KycRecord:
	"""
	Admin approve/reject. Repeating the decision already on file is a no-op.
	"""
	require_admin(is_admin, "review KYC")
	if decision not in ("approve", "reject"):
		raise ValidationError("decision must be 'approve' or 'reject'", field="decision")
	target = KycStatus.APPROVED if decision == "approve" else KycStatus.REJECTED

	record = KycRecord.objects.select_for_update().filter(user_id=user_id).first()
	if record is None:
		raise InvalidStateError("user has not submitted KYC")
	if record.status == target:
		return record
	ensure_transition(KycStatus, record.status, target, "KYC")

	record.status = target
	record.reviewed_by_id = known_user_id(admin_id)
	if target == KycStatus.REJECTED:
		record.admin_notes = (notes or "").strip() or settings.DEFAULT_KYC_REJECTION_NOTE
	else:
		record.admin_notes = ""
	record.save(update_fields=["status", "admin_notes", "reviewed_by", "updated_at"])

	if target == KycStatus.APPROVED:
		logger.info("KYC for %s approved by %s", record.user_id, admin_id)
		NotificationAdapter.emit(
			"kyc.approved", record.user_id, "KYC approved",
			"You are verified and can now create and accept deals.", link="/kyc",
		)
	else:
		logger.warning("KYC for %s rejected by %s: %s", record.user_id, admin_id, record.admin_notes)
		NotificationAdapter.emit("kyc.rejected", record.user_id, "KYC rejected", record.admin_notes, link="/kyc")
	return record


def list_by_status(status: str | None = None):
	qs = KycRecord.objects.select_related("user").order_by("-created_at")
	if status:
		qs = qs.filter(status=parse_status(KycStatus, status))
	return qs


def get_record(user_id) -> KycRecord | None:
	return KycRecord.objects.filter(user_id=user_id).first()
