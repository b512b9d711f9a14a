"""OTP verification queue: delivery codes submitted by customers, adjudicated by admins.

A code may only be submitted once the merchant has funded the remaining amount,
so an admin never acts on an OTP for an under-funded deal. Verification settles
the deal in the same transaction.
"""

import logging

from django.conf import settings
from django.db import transaction, IntegrityError
from django.utils import timezone

from . import settlement
from .access import fetch, known_user_id, require_admin, same_id
from .adapters.notification_adapter import NotificationAdapter
from .errors import ConflictError, InvalidStateError, PaymentPendingError, PermissionDeniedError, ValidationError
from .models import DealStatus, Order, OrderStatus, OtpRecord, OtpStatus
from .states import ensure_transition

logger = logging.getLogger(__name__)

MAX_OTP_LENGTH = 32


@transaction.atomic
def submit(order_id, code: str, submitter_id) -> OtpRecord:
	order = fetch(Order.objects.select_for_update().select_related("deal"), order_id, "order")
	if not same_id(order.customer_id, submitter_id):
		raise PermissionDeniedError("only the order's customer can submit its delivery OTP")

	code = (code or "").strip()
	if not code:
		raise ValidationError("otp_code is required", field="otp_code")
	if len(code) > MAX_OTP_LENGTH:
		raise ValidationError(f"otp_code is longer than {MAX_OTP_LENGTH} characters", field="otp_code")

	if order.status not in (OrderStatus.SHIPPED, OrderStatus.DELIVERED):
		raise InvalidStateError(f"OTP can be submitted once the order has shipped (status is '{order.status}')")
	deal = order.deal
	if deal.status == DealStatus.ORDER_PLACED:
		raise PaymentPendingError("the merchant has not paid the remaining amount yet")
	if deal.status != DealStatus.IN_PROGRESS:
		raise InvalidStateError(f"deal is '{deal.status}'; OTP is not expected")

	try:
		with transaction.atomic():
			record = OtpRecord.objects.create(
				order=order,
				otp_code=code,
				submitted_by_id=order.customer_id,
				status=OtpStatus.PENDING,
			)
	except IntegrityError:
		raise ConflictError("an OTP for this order is already awaiting review")

	logger.info("OTP %s submitted for order %s", record.id, order.id)
	NotificationAdapter.emit(
		"otp.submitted", deal.merchant_id, "Delivery OTP submitted",
		f"The customer submitted the delivery OTP for {deal.product_name}; an admin is reviewing it.",
		link="/my-deals",
	)
	return record


@transaction.atomic
def verify(otp_id, admin_id=None, is_admin: bool = False) -> OtpRecord:
	"""
	Accept the code: confirm the order and settle the deal. A retry on an
	already-verified record returns it without touching any wallet.
	"""
	require_admin(is_admin, "verify OTPs")
	record = fetch(OtpRecord.objects.select_for_update(), otp_id, "OTP record")
	if record.status == OtpStatus.VERIFIED:
		logger.info("OTP %s already verified; nothing to do", record.id)
		return record
	ensure_transition(OtpStatus, record.status, OtpStatus.VERIFIED, "OTP")

	order = fetch(Order.objects.select_for_update(), record.order_id, "order")
	ensure_transition(OrderStatus, order.status, OrderStatus.CONFIRMED, "order")

	record.status = OtpStatus.VERIFIED
	record.verified_by_id = known_user_id(admin_id)
	record.verified_at = timezone.now()
	record.save(update_fields=["status", "verified_by", "verified_at"])

	order.status = OrderStatus.CONFIRMED
	order.otp_verified = True
	order.save(update_fields=["status", "otp_verified", "updated_at"])

	settlement.complete_deal(order.deal_id)
	logger.info("OTP %s verified by %s; order %s confirmed", record.id, admin_id, order.id)

	NotificationAdapter.emit(
		"otp.verified", order.customer_id, "OTP verified",
		"Your delivery OTP was verified and the deal is settled.",
		link="/wallet",
	)
	return record


@transaction.atomic
def reject(otp_id, admin_id=None, is_admin: bool = False, notes: str | None = None) -> OtpRecord:
	"""
	Mark the code invalid. Order and deal are untouched; the customer may submit again.
	"""
	require_admin(is_admin, "reject OTPs")
	record = fetch(OtpRecord.objects.select_for_update(), otp_id, "OTP record")
	if record.status == OtpStatus.REJECTED:
		return record
	ensure_transition(OtpStatus, record.status, OtpStatus.REJECTED, "OTP")

	record.status = OtpStatus.REJECTED
	record.notes = (notes or "").strip() or settings.DEFAULT_OTP_REJECTION_NOTE
	record.verified_by_id = known_user_id(admin_id)
	record.verified_at = timezone.now()
	record.save(update_fields=["status", "notes", "verified_by", "verified_at"])
	logger.warning("OTP %s rejected by %s: %s", record.id, admin_id, record.notes)

	NotificationAdapter.emit("otp.rejected", record.submitted_by_id, "OTP rejected", record.notes, link="/my-deals")
	return record


def list_pending():
	return (
		OtpRecord.objects.filter(status=OtpStatus.PENDING)
		.select_related("order", "order__deal", "submitted_by")
		.order_by("submitted_at")
	)


def list_for_order(order_id):
	return OtpRecord.objects.filter(order_id=order_id).order_by("-submitted_at")
