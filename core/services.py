"""Demo seeding and dashboard aggregates.

This module coordinates: seed admin/merchant/customer → approve their KYC → fund the
merchant wallet → register an admin contact number, so the whole lifecycle can be
driven from the API right after startup.
"""
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Sum

from .models import (
	AdminNumber, Deal, DealStatus, KycRecord, KycStatus, OtpRecord, OtpStatus, User, Wallet
)
from . import settlement

DEMO_NUMBER = "+91-90000-00001"


class DemoServices:

	@staticmethod
	@transaction.atomic
	def seed_demo_users(merchant_funds: str = "50000.00"):
		"""
		Create (or fetch) the demo admin, merchant and customer with approved KYC.
		The merchant wallet is topped up to merchant_funds on first seed only.
		"""
		admin, _ = User.objects.get_or_create(
			email=settings.DEMO_ADMIN_EMAIL, defaults={"display_name": "Demo Admin", "is_admin": True}
		)
		merchant, _ = User.objects.get_or_create(
			email=settings.DEMO_MERCHANT_EMAIL, defaults={"display_name": "Demo Merchant", "preferred_role": "create_deals"}
		)
		customer, _ = User.objects.get_or_create(
			email=settings.DEMO_CUSTOMER_EMAIL, defaults={"display_name": "Demo Customer", "preferred_role": "accept_deals"}
		)

		for user, pan in ((merchant, "AAAAA1111A"), (customer, "BBBBB2222B")):
			KycRecord.objects.get_or_create(
				user=user,
				defaults=dict(
					status=KycStatus.APPROVED,
					pan_number=pan,
					full_name=user.display_name,
					bank_name="Demo Bank",
					account_number="000111222333",
					ifsc_code="DEMO0000001",
					document_url="https://example.com/kyc/demo.pdf",
				),
			)

		AdminNumber.objects.get_or_create(phone_number=DEMO_NUMBER)

		wallet = settlement.wallet_for(merchant.id)
		if wallet.balance == 0 and wallet.locked_amount == 0:
			settlement.deposit(merchant.id, merchant_funds, admin_id=admin.id, is_admin=True, memo="demo seed")
		settlement.wallet_for(customer.id)
		return admin, merchant, customer


def admin_summary() -> dict:
	"""
	Counts per deal status, review queues and escrow totals for the admin dashboard.
	"""
	by_status = dict(Deal.objects.values_list("status").annotate(n=Count("id")))
	totals = Wallet.objects.aggregate(balance=Sum("balance"), locked=Sum("locked_amount"))
	completed = Deal.objects.filter(status=DealStatus.COMPLETED).aggregate(
		commission=Sum("commission_amount"), fees=Sum("platform_fee")
	)
	return {
		"deals": {status: by_status.get(status, 0) for status in DealStatus.values},
		"pending_kyc": KycRecord.objects.filter(status=KycStatus.PENDING).count(),
		"pending_otp": OtpRecord.objects.filter(status=OtpStatus.PENDING).count(),
		"wallets": {
			"balance": str(totals["balance"] or Decimal("0.00")),
			"locked": str(totals["locked"] or Decimal("0.00")),
		},
		"completed": {
			"commission_paid": str(completed["commission"] or Decimal("0.00")),
			"platform_fees": str(completed["fees"] or Decimal("0.00")),
		},
	}
