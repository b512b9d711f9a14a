"""Public API surface for the card-offer escrow service.

- /demo/seed: convenience helper to create demo users (DEBUG only)
- /deals/*, /orders/*, /otp/*: lifecycle transitions (POST)
- /kyc/*: identity verification submit + admin review
- /me (GET, PATCH profile), /wallet, /payments, /notifications: views for the caller
- /admin/*: review queues, admin contact numbers, wallet top-ups, dashboard
"""

from django.urls import path
from .views_demo import seed
from .views_ops import (
	health, create_deal, approve_deal, reject_deal, accept_deal, cancel_deal, pay_remaining,
	create_order, order_screenshot, lock_order, confirm_delivery,
	submit_otp, verify_otp, reject_otp, submit_kyc, decide_kyc,
	add_admin_number, update_admin_number, deposit,
)
from .views_read import (
	me, wallet, payments, my_deals, open_deals, deal_detail, deal_order, my_kyc,
	notifications, notifications_read,
	admin_deals, admin_kyc, admin_otp_queue, admin_numbers, admin_dashboard,
)


urlpatterns = [
	path("health", health),
	path("demo/seed", seed),
	# caller
	path("me", me),
	path("wallet", wallet),
	path("payments", payments),
	path("notifications", notifications),
	path("notifications/read-all", notifications_read),
	path("notifications/<uuid:notification_id>/read", notifications_read),
	# deals
	path("deals", my_deals),
	path("deals/open", open_deals),
	path("deals/create", create_deal),
	path("deals/<uuid:deal_id>", deal_detail),
	path("deals/<uuid:deal_id>/approve", approve_deal),
	path("deals/<uuid:deal_id>/reject", reject_deal),
	path("deals/<uuid:deal_id>/accept", accept_deal),
	path("deals/<uuid:deal_id>/cancel", cancel_deal),
	path("deals/<uuid:deal_id>/pay-remaining", pay_remaining),
	path("deals/<uuid:deal_id>/order", deal_order),
	path("deals/<uuid:deal_id>/order/create", create_order),
	# orders + otp
	path("orders/<uuid:order_id>/screenshot", order_screenshot),
	path("orders/<uuid:order_id>/lock", lock_order),
	path("orders/<uuid:order_id>/delivery", confirm_delivery),
	path("orders/<uuid:order_id>/otp", submit_otp),
	path("otp/<uuid:otp_id>/verify", verify_otp),
	path("otp/<uuid:otp_id>/reject", reject_otp),
	# kyc
	path("kyc", my_kyc),
	path("kyc/submit", submit_kyc),
	path("kyc/<uuid:user_id>/decide", decide_kyc),
	# admin
	path("admin/deals", admin_deals),
	path("admin/kyc", admin_kyc),
	path("admin/otp", admin_otp_queue),
	path("admin/numbers", admin_numbers),
	path("admin/numbers/add", add_admin_number),
	path("admin/numbers/<uuid:number_id>", update_admin_number),
	path("admin/wallets/<uuid:user_id>/deposit", deposit),
	path("admin/summary", admin_dashboard),
]
