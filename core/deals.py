"""Deal registry: creation, admin review, acceptance and the browse/query surface.

Status changes go through core.states; money moves only through core.settlement,
inside the same transaction as the status change.
"""

import logging
from datetime import datetime, timezone as dt_timezone

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import URLValidator
from django.db import transaction, IntegrityError
from django.db.models import F
from django.utils import timezone

from . import kyc, settlement
from .access import fetch, get_user, require_admin, same_id
from .adapters.notification_adapter import NotificationAdapter
from .constants import deal_amounts, to_money
from .errors import AlreadyAcceptedError, ConflictError, InvalidStateError, NoCapacityError, ValidationError
from .models import CUSTOMER_BOUND_STATUSES, AdminNumber, Deal, DealStatus
from .states import ensure_transition, parse_status

logger = logging.getLogger(__name__)

TEXT_TERMS = ("product_name", "product_link", "required_card")
PRICE_TERMS = ("original_price", "card_offer_price", "expected_buy_price")

_url_validator = URLValidator(schemes=["http", "https"])


def validate_terms(terms: dict) -> dict:
	"""
	Check required fields and the pricing invariants:
	card_offer_price <= original_price and expected_buy_price >= card_offer_price.
	"""
	cleaned = {}
	for name in TEXT_TERMS:
		value = str(terms.get(name) or "").strip()
		if not value:
			raise ValidationError(f"{name} is required", field=name)
		cleaned[name] = value
	try:
		_url_validator(cleaned["product_link"])
	except DjangoValidationError:
		raise ValidationError("product_link must be an http(s) URL", field="product_link")

	for name in PRICE_TERMS:
		cleaned[name] = to_money(terms.get(name), field=name)
		if cleaned[name] <= 0:
			raise ValidationError(f"{name} must be greater than 0", field=name)

	if cleaned["card_offer_price"] > cleaned["original_price"]:
		raise ValidationError("card_offer_price cannot exceed original_price", field="card_offer_price")
	if cleaned["expected_buy_price"] < cleaned["card_offer_price"]:
		raise ValidationError(
			"expected_buy_price cannot be below card_offer_price (what the customer pays online)",
			field="expected_buy_price",
		)
	cleaned["delivery_address"] = str(terms.get("delivery_address") or "").strip()
	return cleaned


@transaction.atomic
def create(merchant_id, terms: dict) -> Deal:
	merchant = get_user(merchant_id)
	kyc.require_approved(merchant.id, "create deals")
	cleaned = validate_terms(terms)
	amounts = deal_amounts(cleaned["card_offer_price"], cleaned["expected_buy_price"])

	deal = Deal.objects.create(
		merchant=merchant,
		status=DealStatus.PENDING,
		commission_amount=amounts.commission_amount,
		advance_amount=amounts.advance_amount,
		remaining_amount=amounts.remaining_amount,
		platform_fee=amounts.platform_fee,
		**cleaned,
	)
	logger.info(
		"deal %s created by %s: expected=%s commission=%s advance=%s",
		deal.id, merchant.id, deal.expected_buy_price, deal.commission_amount, deal.advance_amount,
	)
	return deal


def _claim_admin_number() -> AdminNumber:
	"""
	Lock every active number, then pick the least loaded (fewest assignments, then
	longest idle) and bump its counter in the same transaction.
	"""
	active = list(AdminNumber.objects.select_for_update().filter(is_active=True).order_by("id"))
	if not active:
		raise NoCapacityError("no active admin contact number is available; add or activate one and retry")

	never = datetime.min.replace(tzinfo=dt_timezone.utc)
	number = min(active, key=lambda n: (n.assignment_count, n.last_assigned_at or never, n.created_at))
	now = timezone.now()
	AdminNumber.objects.filter(pk=number.pk).update(
		assignment_count=F("assignment_count") + 1,
		last_assigned_at=now,
	)
	number.refresh_from_db(fields=["assignment_count", "last_assigned_at"])
	return number


@transaction.atomic
def approve(deal_id, admin_id=None, is_admin: bool = False) -> Deal:
	require_admin(is_admin, "approve deals")
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	ensure_transition(DealStatus, deal.status, DealStatus.APPROVED, "deal")

	number = _claim_admin_number()
	deal.status = DealStatus.APPROVED
	deal.admin_contact_number = number.phone_number
	deal.admin_notes = ""
	deal.approved_at = timezone.now()
	deal.save(update_fields=["status", "admin_contact_number", "admin_notes", "approved_at", "updated_at"])
	logger.info("deal %s approved by %s; contact %s", deal.id, admin_id, number.phone_number)

	NotificationAdapter.emit(
		"deal.approved", deal.merchant_id, "Deal approved",
		f"Your deal for {deal.product_name} is live. Admin contact: {number.phone_number}.",
		link="/my-deals",
	)
	return deal


@transaction.atomic
def reject(deal_id, admin_id=None, is_admin: bool = False, notes: str | None = None) -> Deal:
	require_admin(is_admin, "reject deals")
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	ensure_transition(DealStatus, deal.status, DealStatus.REJECTED, "deal")

	deal.status = DealStatus.REJECTED
	deal.admin_notes = (notes or "").strip() or settings.DEFAULT_DEAL_REJECTION_NOTE
	deal.save(update_fields=["status", "admin_notes", "updated_at"])
	logger.warning("deal %s rejected by %s: %s", deal.id, admin_id, deal.admin_notes)

	NotificationAdapter.emit("deal.rejected", deal.merchant_id, "Deal rejected", deal.admin_notes, link="/my-deals")
	return deal


@transaction.atomic
def accept(customer_id, deal_id, delivery_address: str = "") -> Deal:
	"""
	Claim an approved deal. The conditional UPDATE on (status=approved, customer IS NULL)
	admits exactly one winner; the advance is locked in the same transaction, so an
	InsufficientFundsError leaves the deal approved and unclaimed.
	"""
	customer = get_user(customer_id)
	kyc.require_approved(customer.id, "accept deals")
	deal = fetch(Deal.objects.all(), deal_id, "deal")
	if same_id(deal.merchant_id, customer.id):
		raise ValidationError("you cannot accept your own deal")

	address = (delivery_address or "").strip() or deal.delivery_address
	if not address:
		raise ValidationError("delivery_address is required", field="delivery_address")

	claimed = Deal.objects.filter(
		pk=deal.pk,
		status=DealStatus.APPROVED,
		customer__isnull=True,
	).update(
		customer=customer,
		status=DealStatus.ACCEPTED,
		delivery_address=address,
		accepted_at=timezone.now(),
		updated_at=timezone.now(),
	)
	if not claimed:
		deal.refresh_from_db()
		if deal.customer_id is not None or deal.status in CUSTOMER_BOUND_STATUSES:
			logger.warning("deal %s already claimed; accept by %s refused", deal.id, customer.id)
			raise AlreadyAcceptedError("this deal has already been accepted by another customer")
		raise InvalidStateError(f"deal is '{deal.status}' and cannot be accepted")

	settlement.lock_advance(deal.pk)
	deal.refresh_from_db()
	logger.info("deal %s accepted by %s", deal.id, customer.id)

	NotificationAdapter.emit(
		"deal.accepted", deal.merchant_id, "Deal accepted",
		f"A customer accepted your deal for {deal.product_name}; ₹{deal.advance_amount} advance is locked.",
		link="/my-deals",
	)
	NotificationAdapter.emit(
		"deal.accepted", customer.id, "You accepted a deal",
		f"Coordinate with the admin at {deal.admin_contact_number} for {deal.product_name}.",
		link="/my-deals",
	)
	return deal


def get(deal_id) -> Deal:
	return fetch(Deal.objects.select_related("merchant", "customer"), deal_id, "deal")


def list_for_merchant(merchant_id):
	return Deal.objects.filter(merchant_id=merchant_id).order_by("-created_at")


def list_for_customer(customer_id):
	return Deal.objects.filter(customer_id=customer_id).order_by("-created_at")


def list_open(exclude_user_id=None):
	"""
	Approved, unclaimed deals for browsing; a merchant never sees their own.
	"""
	qs = Deal.objects.filter(status=DealStatus.APPROVED, customer__isnull=True).order_by("-created_at")
	if exclude_user_id is not None:
		qs = qs.exclude(merchant_id=exclude_user_id)
	return qs


def list_all(status: str | None = None):
	qs = Deal.objects.select_related("merchant", "customer").order_by("-created_at")
	if status:
		qs = qs.filter(status=parse_status(DealStatus, status))
	return qs


# --- Admin contact numbers ---------------------------------------------------

def add_admin_number(phone_number: str, is_admin: bool = False) -> AdminNumber:
	require_admin(is_admin, "manage contact numbers")
	phone_number = (phone_number or "").strip()
	if not phone_number:
		raise ValidationError("phone_number is required", field="phone_number")
	try:
		with transaction.atomic():
			number = AdminNumber.objects.create(phone_number=phone_number)
	except IntegrityError:
		raise ConflictError(f"{phone_number} is already in the pool", field="phone_number")
	logger.info("admin number %s added", phone_number)
	return number


@transaction.atomic
def set_admin_number_active(number_id, active: bool, is_admin: bool = False) -> AdminNumber:
	require_admin(is_admin, "manage contact numbers")
	number = fetch(AdminNumber.objects.select_for_update(), number_id, "admin number")
	number.is_active = bool(active)
	number.save(update_fields=["is_active"])
	logger.info("admin number %s active=%s", number.phone_number, number.is_active)
	return number


def list_admin_numbers():
	return AdminNumber.objects.order_by("assignment_count", "phone_number")
