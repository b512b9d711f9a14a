"""Escrow settlement engine: the only code that mutates Wallet rows or writes Payments.

Every function is @transaction.atomic and locks the wallets it touches with
select_for_update() in user-id order, so concurrent locks against the same merchant
serialize instead of reading a stale balance, and two wallets are never locked in
opposite orders. Any error raised here rolls back the ledger and the deal together.
"""

import logging
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Q, Sum
from django.utils import timezone

from .access import fetch, get_user, require_admin, same_id
from .adapters.notification_adapter import NotificationAdapter
from .constants import ZERO, to_money
from .errors import InsufficientFundsError, InvalidStateError, IrreversibleStateError, PermissionDeniedError, ValidationError
from .models import Deal, DealStatus, Payment, PaymentStatus, PaymentType, User, Wallet
from .states import LOCKED_DEAL_STATUSES, ensure_transition

logger = logging.getLogger(__name__)


def platform_user() -> User:
	"""
	The account that receives the platform's share of each settled deal.
	"""
	user, _ = User.objects.get_or_create(
		email=settings.PLATFORM_USER_EMAIL,
		defaults={"display_name": "Platform"},
	)
	return user


def wallet_for(user_id) -> Wallet:
	wallet, _ = Wallet.objects.get_or_create(user_id=user_id)
	return wallet


def payments_for(user_id):
	return (
		Payment.objects.filter(Q(from_user_id=user_id) | Q(to_user_id=user_id))
		.select_related("deal")
		.order_by("-created_at")
	)


def _lock_wallets(*user_ids) -> dict:
	"""
	Create missing wallets, then lock all of them in a stable order. Returns {user_id: Wallet}.
	"""
	ids = sorted({uid for uid in user_ids if uid is not None}, key=str)
	for uid in ids:
		Wallet.objects.get_or_create(user_id=uid)
	locked = Wallet.objects.select_for_update().filter(user_id__in=ids).order_by("user_id")
	return {w.user_id: w for w in locked}


def _lock_funds(deal: Deal, amount: Decimal, payment_type: str, label: str) -> Payment:
	existing = Payment.objects.filter(deal=deal, payment_type=payment_type).first()
	if existing:
		# retried request; the reservation is already in place
		return existing

	wallet = _lock_wallets(deal.merchant_id)[deal.merchant_id]
	if wallet.balance < amount:
		logger.warning(
			"insufficient funds for %s on deal %s: balance=%s needed=%s",
			label, deal.id, wallet.balance, amount,
		)
		raise InsufficientFundsError(
			f"wallet balance {wallet.balance} is below the {label} of {amount}",
			balance=wallet.balance,
			required=amount,
		)

	wallet.balance -= amount
	wallet.locked_amount += amount
	wallet.save(update_fields=["balance", "locked_amount", "updated_at"])

	payment = Payment.objects.create(
		deal=deal,
		from_user_id=deal.merchant_id,
		to_user=None,
		amount=amount,
		payment_type=payment_type,
		status=PaymentStatus.LOCKED,
		description=f"{label} locked for {deal.product_name}",
	)
	logger.info("locked %s %s for deal %s", label, amount, deal.id)
	return payment


@transaction.atomic
def lock_advance(deal_id) -> Payment:
	"""
	On acceptance: move advance_amount from the merchant's balance into locked_amount.
	"""
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if deal.status != DealStatus.ACCEPTED:
		raise InvalidStateError(f"advance can only be locked for an accepted deal (status is '{deal.status}')")
	return _lock_funds(deal, deal.advance_amount, PaymentType.ADVANCE_LOCK, "advance")


@transaction.atomic
def lock_remaining(deal_id) -> Payment:
	"""
	After the order lock: reserve remaining_amount the same way.
	"""
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if deal.status != DealStatus.ORDER_PLACED:
		raise InvalidStateError(f"remaining can only be locked once the order is placed (status is '{deal.status}')")
	return _lock_funds(deal, deal.remaining_amount, PaymentType.REMAINING_LOCK, "remaining amount")


@transaction.atomic
def complete_deal(deal_id) -> Deal:
	"""
	Release the merchant's reservation and pay out every leg in one unit:
	  - customer: card_offer_price (reimburses the online purchase) + commission
	  - platform: platform_fee (the rest of the spread)
	The released legs always sum to advance_amount + remaining_amount.
	Safe to call twice: a completed deal is returned untouched.
	"""
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if deal.status == DealStatus.COMPLETED:
		logger.info("deal %s already completed; settlement skipped", deal.id)
		return deal
	ensure_transition(DealStatus, deal.status, DealStatus.COMPLETED, "deal")

	platform = platform_user()
	wallets = _lock_wallets(deal.merchant_id, deal.customer_id, platform.id)
	merchant = wallets[deal.merchant_id]
	customer = wallets[deal.customer_id]
	platform_wallet = wallets[platform.id]

	total = deal.total_locked_amount
	if merchant.locked_amount < total:
		# the reservation is gone: never pay out of thin air
		logger.error("deal %s: merchant locked %s < reservation %s", deal.id, merchant.locked_amount, total)
		raise InvalidStateError("merchant reservation for this deal is missing")

	legs = [
		(deal.customer_id, deal.card_offer_price, PaymentType.PURCHASE_REIMBURSEMENT, "purchase reimbursement"),
		(deal.customer_id, deal.commission_amount, PaymentType.COMMISSION_RELEASE, "commission"),
		(platform.id, deal.platform_fee, PaymentType.PLATFORM_FEE, "platform fee"),
	]
	if sum(amount for _, amount, _, _ in legs) != total:
		raise InvalidStateError("settlement legs do not add up to the locked amount")

	merchant.locked_amount -= total
	merchant.save(update_fields=["locked_amount", "updated_at"])
	customer.balance += deal.card_offer_price + deal.commission_amount
	customer.save(update_fields=["balance", "updated_at"])
	if deal.platform_fee:
		platform_wallet.balance += deal.platform_fee
		platform_wallet.save(update_fields=["balance", "updated_at"])

	Payment.objects.bulk_create([
		Payment(
			deal=deal,
			from_user_id=deal.merchant_id,
			to_user_id=to_user_id,
			amount=amount,
			payment_type=payment_type,
			status=PaymentStatus.RELEASED,
			description=f"{label} for {deal.product_name}",
		)
		for to_user_id, amount, payment_type, label in legs
		if amount > 0
	])

	deal.status = DealStatus.COMPLETED
	deal.completed_at = timezone.now()
	deal.save(update_fields=["status", "completed_at", "updated_at"])
	logger.info("deal %s completed: released %s (commission %s)", deal.id, total, deal.commission_amount)

	NotificationAdapter.emit(
		"deal.completed", deal.customer_id, "Commission released",
		f"₹{deal.commission_amount} commission and ₹{deal.card_offer_price} reimbursement credited for {deal.product_name}.",
		link="/wallet",
	)
	NotificationAdapter.emit(
		"deal.completed", deal.merchant_id, "Deal completed",
		f"Delivery of {deal.product_name} was verified and the deal is complete.",
		link="/my-deals",
	)
	return deal


@transaction.atomic
def cancel(deal_id, actor_id, is_admin: bool = False) -> Deal:
	"""
	Undo an acceptance before the order is locked: the advance goes back to the
	merchant's balance and the deal is closed. Past the lock this is refused.
	"""
	deal = fetch(Deal.objects.select_for_update(), deal_id, "deal")
	if not (is_admin or same_id(actor_id, deal.merchant_id) or same_id(actor_id, deal.customer_id)):
		raise PermissionDeniedError("only the deal's participants or an admin can cancel it")
	if deal.status in LOCKED_DEAL_STATUSES:
		raise IrreversibleStateError(f"deal is '{deal.status}'; an order-locked deal cannot be cancelled")
	ensure_transition(DealStatus, deal.status, DealStatus.CANCELLED, "deal")

	reserved = (
		Payment.objects.filter(deal=deal, payment_type=PaymentType.ADVANCE_LOCK)
		.aggregate(s=Sum("amount"))["s"] or ZERO
	)
	if reserved:
		merchant = _lock_wallets(deal.merchant_id)[deal.merchant_id]
		if merchant.locked_amount < reserved:
			logger.error("deal %s: merchant locked %s < advance %s", deal.id, merchant.locked_amount, reserved)
			raise InvalidStateError("merchant reservation for this deal is missing")
		merchant.locked_amount -= reserved
		merchant.balance += reserved
		merchant.save(update_fields=["balance", "locked_amount", "updated_at"])
		Payment.objects.create(
			deal=deal,
			from_user=None,
			to_user_id=deal.merchant_id,
			amount=reserved,
			payment_type=PaymentType.REFUND,
			status=PaymentStatus.REFUNDED,
			description=f"advance refunded for {deal.product_name}",
		)

	former_customer_id = deal.customer_id
	deal.customer = None
	deal.status = DealStatus.CANCELLED
	deal.save(update_fields=["customer", "status", "updated_at"])
	logger.info("deal %s cancelled by %s; refunded %s", deal.id, actor_id, reserved)

	for user_id in (deal.merchant_id, former_customer_id):
		NotificationAdapter.emit(
			"deal.cancelled", user_id, "Deal cancelled",
			f"The deal for {deal.product_name} was cancelled.",
			link="/my-deals",
		)
	return deal


@transaction.atomic
def deposit(user_id, amount, admin_id=None, is_admin: bool = False, memo: str = "") -> Payment:
	"""
	Admin-recorded funding of a wallet (bank transfer received out of band).
	"""
	require_admin(is_admin, "fund a wallet")
	amount = to_money(amount)
	if amount <= 0:
		raise ValidationError("deposit amount must be positive", field="amount")
	user = get_user(user_id)

	wallet = _lock_wallets(user.id)[user.id]
	wallet.balance += amount
	wallet.save(update_fields=["balance", "updated_at"])
	payment = Payment.objects.create(
		from_user=None,
		to_user=user,
		amount=amount,
		payment_type=PaymentType.DEPOSIT,
		status=PaymentStatus.RELEASED,
		description=memo or "wallet deposit",
	)
	logger.info("deposit %s to %s recorded by %s", amount, user.id, admin_id)
	NotificationAdapter.emit("wallet.deposit", user.id, "Wallet funded", f"₹{amount} was added to your wallet.", link="/wallet")
	return payment
