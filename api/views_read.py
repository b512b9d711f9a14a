"""Caller-facing endpoints: the caller's profile, wallet, deals, queues and inbox."""

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from core import deals, kyc, orders, otp, settlement
from core.access import get_user, same_id, update_profile
from core.adapters.notification_adapter import NotificationAdapter
from core.errors import NotFoundError, PermissionDeniedError
from core.models import DealStatus
from core.services import admin_summary
from .helpers import endpoint, read_json
from .serializers import (
	admin_number_to_dict, deal_to_dict, kyc_to_dict, order_to_dict, otp_to_dict, payment_to_dict, wallet_to_dict,
)


def _can_see_deal(actor, deal) -> bool:
	if actor.is_admin or same_id(actor.user_id, deal.merchant_id) or same_id(actor.user_id, deal.customer_id):
		return True
	return deal.status == DealStatus.APPROVED and deal.customer_id is None


@csrf_exempt
@endpoint("GET", "PATCH")
def me(request, actor):
	"""
	GET: The caller's profile with KYC status and wallet position
	PATCH: {display_name?, phone?, preferred_role?}; returns the updated profile
	"""
	if request.method == "PATCH":
		user = update_profile(actor.user_id, read_json(request))
	else:
		user = get_user(actor.user_id)
	wallet = settlement.wallet_for(user.id)
	return JsonResponse({
		"user_id": str(user.id),
		"email": user.email,
		"display_name": user.display_name,
		"phone": user.phone or None,
		"preferred_role": user.preferred_role,
		"is_admin": actor.is_admin,
		"kyc_status": kyc.get_status(user.id),
		"wallet": wallet_to_dict(wallet),
	})


@endpoint("GET")
def wallet(request, actor):
	w = settlement.wallet_for(get_user(actor.user_id).id)
	return JsonResponse(wallet_to_dict(w))


@endpoint("GET")
def payments(request, actor):
	"""
	GET: Most recent money movements touching the caller's wallet
	"""
	rows = settlement.payments_for(get_user(actor.user_id).id)[:50]
	return JsonResponse([payment_to_dict(p) for p in rows], safe=False)


@endpoint("GET")
def my_deals(request, actor):
	"""
	GET: ?role=merchant (default) or ?role=customer
	"""
	user = get_user(actor.user_id)
	if request.GET.get("role", "merchant") == "customer":
		rows = deals.list_for_customer(user.id)
	else:
		rows = deals.list_for_merchant(user.id)
	return JsonResponse([deal_to_dict(d) for d in rows], safe=False)


@endpoint("GET")
def open_deals(request, actor):
	"""
	GET: Approved deals nobody has claimed yet (the caller's own are hidden)
	"""
	rows = deals.list_open(exclude_user_id=get_user(actor.user_id).id)
	return JsonResponse([deal_to_dict(d) for d in rows], safe=False)


@endpoint("GET")
def deal_detail(request, actor, deal_id):
	deal = deals.get(deal_id)
	if not _can_see_deal(actor, deal):
		raise NotFoundError(f"deal {deal_id} not found")
	return JsonResponse(deal_to_dict(deal))


@endpoint("GET")
def deal_order(request, actor, deal_id):
	"""
	GET: The order attached to a deal, with its OTP history
	"""
	deal = deals.get(deal_id)
	if not (actor.is_admin or same_id(actor.user_id, deal.merchant_id) or same_id(actor.user_id, deal.customer_id)):
		raise PermissionDeniedError("only the deal's participants can view its order")
	order = orders.get_for_deal(deal.id)
	data = order_to_dict(order)
	data["otp_records"] = [otp_to_dict(r) for r in otp.list_for_order(order.id)]
	return JsonResponse(data)


@endpoint("GET")
def my_kyc(request, actor):
	user = get_user(actor.user_id)
	record = kyc.get_record(user.id)
	if record is None:
		return JsonResponse({"status": kyc.get_status(user.id)})
	return JsonResponse(kyc_to_dict(record))


@endpoint("GET")
def notifications(request, actor):
	user = get_user(actor.user_id)
	unread_only = request.GET.get("unread") in ("1", "true")
	return JsonResponse(NotificationAdapter.inbox(user.id, unread_only=unread_only), safe=False)


@csrf_exempt
@endpoint("POST")
def notifications_read(request, actor, notification_id=None):
	"""
	POST: Mark one notification (or, without an id, all of them) as read
	"""
	user = get_user(actor.user_id)
	if notification_id is None:
		updated = NotificationAdapter.mark_all_read(user.id)
	else:
		updated = NotificationAdapter.mark_read(user.id, notification_id)
	return JsonResponse({"updated": updated})


# --- Admin views -------------------------------------------------------------

def _admin_only(actor):
	if not actor.is_admin:
		raise PermissionDeniedError("admin only")


@endpoint("GET")
def admin_deals(request, actor):
	_admin_only(actor)
	rows = deals.list_all(request.GET.get("status"))
	return JsonResponse([deal_to_dict(d) for d in rows], safe=False)


@endpoint("GET")
def admin_kyc(request, actor):
	_admin_only(actor)
	rows = kyc.list_by_status(request.GET.get("status"))
	return JsonResponse([kyc_to_dict(k) for k in rows], safe=False)


@endpoint("GET")
def admin_otp_queue(request, actor):
	"""
	GET: Pending OTP submissions, oldest first, with the deal they would settle
	"""
	_admin_only(actor)
	data = []
	for record in otp.list_pending():
		row = otp_to_dict(record)
		row["order"] = order_to_dict(record.order)
		row["deal"] = deal_to_dict(record.order.deal)
		data.append(row)
	return JsonResponse(data, safe=False)


@endpoint("GET")
def admin_numbers(request, actor):
	_admin_only(actor)
	return JsonResponse([admin_number_to_dict(n) for n in deals.list_admin_numbers()], safe=False)


@endpoint("GET")
def admin_dashboard(request, actor):
	_admin_only(actor)
	return JsonResponse(admin_summary())
