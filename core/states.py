"""Transition tables for every status field.

Each status column has exactly one table here; services call ensure_transition()
before writing a new status, and parse_status() at the API boundary so unknown
tokens never reach the database.
"""

from .errors import InvalidStateError, ValidationError
from .models import DealStatus, OrderStatus, OtpStatus, KycStatus


DEAL_TRANSITIONS = {
	DealStatus.PENDING: {DealStatus.APPROVED, DealStatus.REJECTED},
	DealStatus.APPROVED: {DealStatus.ACCEPTED},
	DealStatus.REJECTED: set(),
	DealStatus.ACCEPTED: {DealStatus.ORDER_PLACED, DealStatus.CANCELLED},
	DealStatus.ORDER_PLACED: {DealStatus.IN_PROGRESS},
	DealStatus.IN_PROGRESS: {DealStatus.COMPLETED},
	DealStatus.COMPLETED: set(),
	DealStatus.CANCELLED: set(),
}

ORDER_TRANSITIONS = {
	# re-attaching a screenshot before the lock keeps the order in otp_pending
	OrderStatus.PLACED: {OrderStatus.OTP_PENDING},
	OrderStatus.OTP_PENDING: {OrderStatus.OTP_PENDING, OrderStatus.SHIPPED},
	OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.CONFIRMED},
	OrderStatus.DELIVERED: {OrderStatus.CONFIRMED},
	OrderStatus.CONFIRMED: set(),
}

OTP_TRANSITIONS = {
	OtpStatus.PENDING: {OtpStatus.VERIFIED, OtpStatus.REJECTED},
	OtpStatus.VERIFIED: set(),
	OtpStatus.REJECTED: set(),
}

KYC_TRANSITIONS = {
	KycStatus.NOT_SUBMITTED: {KycStatus.PENDING},
	KycStatus.PENDING: {KycStatus.PENDING, KycStatus.APPROVED, KycStatus.REJECTED},
	KycStatus.APPROVED: set(),
	KycStatus.REJECTED: {KycStatus.PENDING},
}

TABLES = {
	DealStatus: DEAL_TRANSITIONS,
	OrderStatus: ORDER_TRANSITIONS,
	OtpStatus: OTP_TRANSITIONS,
	KycStatus: KYC_TRANSITIONS,
}

# Deal states past the order lock: nothing may move them back.
LOCKED_DEAL_STATUSES = frozenset({DealStatus.ORDER_PLACED, DealStatus.IN_PROGRESS, DealStatus.COMPLETED})


def parse_status(enum_cls, token):
	"""
	Map a wire token to its enum member, rejecting anything unrecognized.
	"""
	try:
		return enum_cls(token)
	except ValueError:
		allowed = ", ".join(enum_cls.values)
		raise ValidationError(f"unknown {enum_cls.__name__} '{token}' (expected one of: {allowed})")


def can_transition(enum_cls, current, target) -> bool:
	table = TABLES[enum_cls]
	return parse_status(enum_cls, target) in table[parse_status(enum_cls, current)]


def ensure_transition(enum_cls, current, target, what: str = "record"):
	if not can_transition(enum_cls, current, target):
		raise InvalidStateError(
			f"{what} cannot move from '{current}' to '{target}'",
			current=current,
			target=target,
		)
