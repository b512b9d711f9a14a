"""Database models for the card-offer escrow marketplace.


Tables:
- User: marketplace identity (merchant, customer or admin)
- Wallet: per-user ledger position (spendable balance + amount locked for active deals)
- Payment: append-only audit row, one per money movement
- KycRecord: identity/bank verification gating deal creation and acceptance
- AdminNumber: pool of admin contact numbers handed out on deal approval
- Deal: a card-offer purchase request and its single authoritative status
- Order: the fulfilment record of an accepted deal (1:1)
- DeliveryConfirmation: merchant's proof that the parcel arrived
- OtpRecord: delivery OTP submissions awaiting admin adjudication
"""

import uuid
from django.db import models
from django.db.models import Q


class User(models.Model):
	"""
	Marketplace identity. The gateway's admin claim is authoritative per request;
	is_admin here only seeds demo data.
	"""
	PREFERRED_ROLES = (("create_deals", "Create deals"), ("accept_deals", "Accept deals"), ("both", "Both"))

	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	email = models.EmailField(unique=True)
	display_name = models.CharField(max_length=200)
	phone = models.CharField(max_length=32, blank=True, default="")
	preferred_role = models.CharField(max_length=16, choices=PREFERRED_ROLES, default="both")
	is_admin = models.BooleanField(default=False)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "users"

	def __str__(self):
		return self.email


class Wallet(models.Model):
	"""
	balance is spendable; locked_amount is reserved for active deals.
	Always mutate under select_for_update() inside the triggering transaction.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	user = models.OneToOneField(User, on_delete=models.PROTECT, related_name="wallet")
	balance = models.DecimalField(max_digits=18, decimal_places=2, default=0)
	locked_amount = models.DecimalField(max_digits=18, decimal_places=2, default=0)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		db_table = "wallets"
		constraints = [
			models.CheckConstraint(condition=Q(balance__gte=0), name="wallet_balance_non_negative"),
			models.CheckConstraint(condition=Q(locked_amount__gte=0), name="wallet_locked_non_negative"),
		]


class PaymentType(models.TextChoices):
	DEPOSIT = "deposit", "Deposit"
	ADVANCE_LOCK = "advance_lock", "Advance lock"
	REMAINING_LOCK = "remaining_lock", "Remaining lock"
	PURCHASE_REIMBURSEMENT = "purchase_reimbursement", "Purchase reimbursement"
	COMMISSION_RELEASE = "commission_release", "Commission release"
	PLATFORM_FEE = "platform_fee", "Platform fee"
	REFUND = "refund", "Refund"


class PaymentStatus(models.TextChoices):
	PENDING = "pending", "Pending"
	LOCKED = "locked", "Locked"
	RELEASED = "released", "Released"
	REFUNDED = "refunded", "Refunded"


class Payment(models.Model):
	"""
	Immutable log of money movements. from_user/to_user are null for the outside
	world (deposits) and never both null.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	deal = models.ForeignKey("Deal", null=True, blank=True, on_delete=models.PROTECT, related_name="payments")
	from_user = models.ForeignKey(User, null=True, blank=True, on_delete=models.PROTECT, related_name="payments_out")
	to_user = models.ForeignKey(User, null=True, blank=True, on_delete=models.PROTECT, related_name="payments_in")
	amount = models.DecimalField(max_digits=18, decimal_places=2)
	payment_type = models.CharField(max_length=32, choices=PaymentType.choices)
	status = models.CharField(max_length=16, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
	description = models.TextField(blank=True, default="")
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "payments"
		indexes = [
			models.Index(fields=["deal", "payment_type"]),
		]
		constraints = [
			models.CheckConstraint(condition=Q(amount__gte=0), name="payment_amount_non_negative"),
		]


class KycStatus(models.TextChoices):
	# NOT_SUBMITTED is never stored: it is the status of a user without a row.
	NOT_SUBMITTED = "not_submitted", "Not submitted"
	PENDING = "pending", "Pending"
	APPROVED = "approved", "Approved"
	REJECTED = "rejected", "Rejected"


class KycRecord(models.Model):
	"""
	One verification record per user; pan_number is bound to a single user.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="kyc")
	status = models.CharField(max_length=16, choices=KycStatus.choices, default=KycStatus.PENDING)
	pan_number = models.CharField(max_length=10, unique=True)
	full_name = models.CharField(max_length=200, blank=True, default="")
	date_of_birth = models.DateField(null=True, blank=True)
	bank_name = models.CharField(max_length=120)
	account_number = models.CharField(max_length=34)
	account_holder_name = models.CharField(max_length=200, blank=True, default="")
	ifsc_code = models.CharField(max_length=11)
	document_url = models.URLField(max_length=500)
	selfie_url = models.URLField(max_length=500, blank=True, default="")
	admin_notes = models.TextField(blank=True, default="")
	reviewed_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		db_table = "kycs"


class AdminNumber(models.Model):
	"""
	Contact numbers handed to approved deals; the least-loaded active one wins.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	phone_number = models.CharField(max_length=32, unique=True)
	is_active = models.BooleanField(default=True)
	assignment_count = models.IntegerField(default=0)
	last_assigned_at = models.DateTimeField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "admin_numbers"


class DealStatus(models.TextChoices):
	PENDING = "pending", "Pending"
	APPROVED = "approved", "Approved"
	REJECTED = "rejected", "Rejected"
	ACCEPTED = "accepted", "Accepted"
	ORDER_PLACED = "order_placed", "Order placed"
	IN_PROGRESS = "in_progress", "In progress"
	COMPLETED = "completed", "Completed"
	CANCELLED = "cancelled", "Cancelled"


# A deal has a customer exactly while it is in one of these states.
CUSTOMER_BOUND_STATUSES = (
	DealStatus.ACCEPTED,
	DealStatus.ORDER_PLACED,
	DealStatus.IN_PROGRESS,
	DealStatus.COMPLETED,
)


class Deal(models.Model):
	"""
	Commercial terms are fixed at creation. Amounts are derived from the configured
	rates (see core.constants.deal_amounts).
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	merchant = models.ForeignKey(User, on_delete=models.PROTECT, related_name="merchant_deals")
	customer = models.ForeignKey(User, null=True, blank=True, on_delete=models.PROTECT, related_name="customer_deals")

	product_name = models.CharField(max_length=255)
	product_link = models.URLField(max_length=1000)
	original_price = models.DecimalField(max_digits=18, decimal_places=2)
	card_offer_price = models.DecimalField(max_digits=18, decimal_places=2)
	expected_buy_price = models.DecimalField(max_digits=18, decimal_places=2)
	required_card = models.CharField(max_length=200)

	commission_amount = models.DecimalField(max_digits=18, decimal_places=2)
	advance_amount = models.DecimalField(max_digits=18, decimal_places=2)
	remaining_amount = models.DecimalField(max_digits=18, decimal_places=2)
	platform_fee = models.DecimalField(max_digits=18, decimal_places=2, default=0)

	delivery_address = models.TextField(blank=True, default="")
	status = models.CharField(max_length=16, choices=DealStatus.choices, default=DealStatus.PENDING)
	admin_notes = models.TextField(blank=True, default="")
	admin_contact_number = models.CharField(max_length=32, blank=True, default="")

	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)
	approved_at = models.DateTimeField(null=True, blank=True)
	accepted_at = models.DateTimeField(null=True, blank=True)
	completed_at = models.DateTimeField(null=True, blank=True)

	class Meta:
		db_table = "deals"
		indexes = [
			models.Index(fields=["status", "customer"]),
		]
		constraints = [
			models.CheckConstraint(
				condition=Q(card_offer_price__lte=models.F("original_price")),
				name="deal_card_offer_not_above_original",
			),
			models.CheckConstraint(
				condition=Q(expected_buy_price__gte=models.F("card_offer_price")),
				name="deal_expected_not_below_card_offer",
			),
			models.CheckConstraint(
				condition=(
					Q(customer__isnull=False, status__in=CUSTOMER_BOUND_STATUSES)
					| (Q(customer__isnull=True) & ~Q(status__in=CUSTOMER_BOUND_STATUSES))
				),
				name="deal_customer_iff_claimed",
			),
		]

	@property
	def total_locked_amount(self):
		return self.advance_amount + self.remaining_amount


class OrderStatus(models.TextChoices):
	PLACED = "placed", "Placed"
	OTP_PENDING = "otp_pending", "OTP pending"
	SHIPPED = "shipped", "Shipped"
	DELIVERED = "delivered", "Delivered"
	CONFIRMED = "confirmed", "Confirmed"


class Order(models.Model):
	"""
	Exactly one order per deal (unique deal_id). Once tracking_id is set the order
	is locked and its deal can no longer be cancelled.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	deal = models.OneToOneField(Deal, on_delete=models.PROTECT, related_name="order")
	customer = models.ForeignKey(User, on_delete=models.PROTECT, related_name="orders")
	order_screenshot_url = models.URLField(max_length=1000, blank=True, default="")
	ecommerce_order_id = models.CharField(max_length=128, blank=True, default="")
	tracking_id = models.CharField(max_length=128, blank=True, default="")
	customer_phone = models.CharField(max_length=32, blank=True, default="")
	otp_verified = models.BooleanField(default=False)
	status = models.CharField(max_length=16, choices=OrderStatus.choices, default=OrderStatus.PLACED)
	locked_at = models.DateTimeField(null=True, blank=True)
	created_at = models.DateTimeField(auto_now_add=True)
	updated_at = models.DateTimeField(auto_now=True)

	class Meta:
		db_table = "orders"

	@property
	def is_locked(self) -> bool:
		return bool(self.tracking_id)


class DeliveryConfirmation(models.Model):
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="delivery_confirmations")
	merchant = models.ForeignKey(User, on_delete=models.PROTECT, related_name="+")
	confirmation_photo_url = models.URLField(max_length=1000)
	notes = models.TextField(blank=True, default="")
	confirmed_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		db_table = "delivery_confirmations"


class OtpStatus(models.TextChoices):
	PENDING = "pending", "Pending"
	VERIFIED = "verified", "Verified"
	REJECTED = "rejected", "Rejected"


class OtpRecord(models.Model):
	"""
	Customer-entered delivery OTP. The code is opaque: an admin adjudicates it.
	At most one pending record per order.
	"""
	id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
	order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="otp_records")
	otp_code = models.CharField(max_length=32)
	submitted_by = models.ForeignKey(User, on_delete=models.PROTECT, related_name="+")
	status = models.CharField(max_length=16, choices=OtpStatus.choices, default=OtpStatus.PENDING)
	verified_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL, related_name="+")
	notes = models.TextField(blank=True, default="")
	submitted_at = models.DateTimeField(auto_now_add=True)
	verified_at = models.DateTimeField(null=True, blank=True)

	class Meta:
		db_table = "otp_records"
		constraints = [
			models.UniqueConstraint(
				fields=["order"],
				condition=Q(status="pending"),
				name="one_pending_otp_per_order",
			),
		]
