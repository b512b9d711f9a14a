"""Order tracker: the customer's fulfilment steps for an accepted deal.

placed --screenshot--> otp_pending --lock details--> shipped [deal: order_placed]
shipped --merchant confirms delivery--> delivered
Locking the details is irreversible: nothing clears tracking_id afterwards.
"""

import logging
import os

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone

from . import settlement
from .access import fetch, get_user, same_id
from .adapters.notification_adapter import NotificationAdapter
from .adapters.storage_adapter import StorageAdapter
from .errors import ConflictError, InvalidStateError, IrreversibleStateError, NotFoundError, PermissionDeniedError, ValidationError
from .models import Deal, DealStatus, DeliveryConfirmation, Order, OrderStatus
from .states import ensure_transition

logger = logging.getLogger(__name__)

SCREENSHOT_TYPES = {
	".png": "image/png",
	".jpg": "image/jpeg",
	".jpeg": "image/jpeg",
	".webp": "image/webp",
}
MAX_SCREENSHOT_BYTES = 5 * 1024 * 1024


def _own_order(order_id, customer_id) -> Order:
	order = fetch(Order.objects.select_for_update(), order_id, "order")
	if not same_id(order.customer_id, customer_id):
		raise PermissionDeniedError("only the customer who accepted the deal can update its order")
	return order


@transaction.atomic
def create_order(deal_id, customer_id) -> Order:
	"""
	One order per deal, enforced by the unique deal_id column rather than a read-then-insert.
	"""
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if not same_id(deal.customer_id, customer_id):
		raise PermissionDeniedError("only the customer who accepted the deal can place its order")
	if deal.status != DealStatus.ACCEPTED:
		raise InvalidStateError(f"an order can only be created for an accepted deal (status is '{deal.status}')")

	try:
		with transaction.atomic():
			order = Order.objects.create(deal=deal, customer_id=deal.customer_id, status=OrderStatus.PLACED)
	except IntegrityError:
		raise ConflictError("an order already exists for this deal")
	logger.info("order %s created for deal %s", order.id, deal.id)
	return order


@transaction.atomic
def attach_screenshot(order_id, customer_id, url: str) -> Order:
	order = _own_order(order_id, customer_id)
	if order.is_locked or order.status not in (OrderStatus.PLACED, OrderStatus.OTP_PENDING):
		raise IrreversibleStateError("order details are locked; the screenshot can no longer change")
	url = (url or "").strip()
	if not url:
		raise ValidationError("screenshot url is required", field="order_screenshot_url")
	ensure_transition(OrderStatus, order.status, OrderStatus.OTP_PENDING, "order")

	order.order_screenshot_url = url
	order.status = OrderStatus.OTP_PENDING
	order.save(update_fields=["order_screenshot_url", "status", "updated_at"])
	logger.info("screenshot attached to order %s", order.id)
	return order


def upload_screenshot(order_id, customer_id, filename: str, content: bytes) -> Order:
	"""
	Store the bytes through the storage adapter and attach the resulting URL.
	"""
	ext = os.path.splitext(filename or "")[1].lower()
	if ext not in SCREENSHOT_TYPES:
		raise ValidationError(f"screenshot must be one of {', '.join(sorted(SCREENSHOT_TYPES))}", field="file")
	if not content:
		raise ValidationError("screenshot file is empty", field="file")
	if len(content) > MAX_SCREENSHOT_BYTES:
		raise ValidationError("screenshot is larger than 5 MB", field="file")

	with transaction.atomic():
		order = _own_order(order_id, customer_id)
		if order.is_locked:
			raise IrreversibleStateError("order details are locked; the screenshot can no longer change")
		url = StorageAdapter.put(f"order-screenshots/{order.customer_id}/{order.id}{ext}", content, SCREENSHOT_TYPES[ext])
		return attach_screenshot(order.id, customer_id, url)


@transaction.atomic
def lock_details(order_id, customer_id, ecommerce_order_id: str, tracking_id: str, phone: str) -> Order:
	"""
	Record the shop's order id, tracking id and contact phone, ship the order and move
	the deal to order_placed. Repeating the call with the same values is a no-op.
	"""
	order = _own_order(order_id, customer_id)
	values = {
		"ecommerce_order_id": (ecommerce_order_id or "").strip(),
		"tracking_id": (tracking_id or "").strip(),
		"customer_phone": (phone or "").strip(),
	}

	if order.is_locked:
		if all(getattr(order, name) == value for name, value in values.items()):
			return order
		logger.warning("attempt to change locked order %s refused", order.id)
		raise IrreversibleStateError("order details are locked and cannot be changed")

	for name, value in values.items():
		if not value:
			raise ValidationError(f"{name} is required", field=name)
	if not order.order_screenshot_url:
		raise InvalidStateError("upload the order screenshot before locking the order details")
	ensure_transition(OrderStatus, order.status, OrderStatus.SHIPPED, "order")

	deal = fetch(Deal.objects.select_for_update(), order.deal_id, "deal")
	ensure_transition(DealStatus, deal.status, DealStatus.ORDER_PLACED, "deal")

	for name, value in values.items():
		setattr(order, name, value)
	order.status = OrderStatus.SHIPPED
	order.locked_at = timezone.now()
	order.save(update_fields=[*values, "status", "locked_at", "updated_at"])

	deal.status = DealStatus.ORDER_PLACED
	deal.save(update_fields=["status", "updated_at"])
	logger.info("order %s locked (tracking %s); deal %s order_placed", order.id, order.tracking_id, deal.id)

	NotificationAdapter.emit(
		"order.locked", deal.merchant_id, "Order placed",
		f"The order for {deal.product_name} is placed (tracking {order.tracking_id}). Pay the remaining ₹{deal.remaining_amount} to continue.",
		link="/my-deals",
	)
	return order


@transaction.atomic
def merchant_pay_remaining(deal_id, merchant_id) -> Deal:
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if not same_id(deal.merchant_id, merchant_id):
		raise PermissionDeniedError("only the deal's merchant can pay the remaining amount")
	if deal.status != DealStatus.ORDER_PLACED:
		raise InvalidStateError(f"remaining amount is payable once the order is placed (status is '{deal.status}')")

	settlement.lock_remaining(deal.pk)
	ensure_transition(DealStatus, deal.status, DealStatus.IN_PROGRESS, "deal")
	deal.status = DealStatus.IN_PROGRESS
	deal.save(update_fields=["status", "updated_at"])
	logger.info("deal %s remaining %s paid; in_progress", deal.id, deal.remaining_amount)

	NotificationAdapter.emit(
		"deal.remaining_paid", deal.customer_id, "Remaining amount paid",
		f"The merchant funded {deal.product_name}. Submit the delivery OTP when it arrives.",
		link="/my-deals",
	)
	return deal


@transaction.atomic
def confirm_delivery(order_id, merchant_id, photo_url: str, notes: str = "") -> DeliveryConfirmation:
	order = fetch(Order.objects.select_for_update().select_related("deal"), order_id, "order")
	if not same_id(order.deal.merchant_id, merchant_id):
		raise PermissionDeniedError("only the deal's merchant can confirm delivery")
	photo_url = (photo_url or "").strip()
	if not photo_url:
		raise ValidationError("confirmation photo is required", field="confirmation_photo_url")
	ensure_transition(OrderStatus, order.status, OrderStatus.DELIVERED, "order")

	confirmation = DeliveryConfirmation.objects.create(
		order=order,
		merchant=get_user(merchant_id),
		confirmation_photo_url=photo_url,
		notes=(notes or "").strip(),
	)
	order.status = OrderStatus.DELIVERED
	order.save(update_fields=["status", "updated_at"])
	logger.info("delivery of order %s confirmed by merchant", order.id)
	return confirmation


def get_for_deal(deal_id) -> Order:
	try:
		return Order.objects.get(deal_id=deal_id)
	except (Order.DoesNotExist, DjangoValidationError, ValueError):
		raise NotFoundError(f"no order for deal {deal_id}")


def get(order_id) -> Order:
	return fetch(Order.objects.select_related("deal"), order_id, "order")
