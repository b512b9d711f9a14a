"""Operational endpoints that move deals, orders and OTPs through their lifecycle."""

from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt

from core import deals, kyc, orders, otp, settlement
from core.errors import ValidationError
from .helpers import endpoint, read_json
from .serializers import (
	admin_number_to_dict, deal_to_dict, kyc_to_dict, order_to_dict, otp_to_dict, payment_to_dict,
)


def health(request):
	return JsonResponse({"ok": True})


# --- Deals -------------------------------------------------------------------

@csrf_exempt
@endpoint("POST")
def create_deal(request, actor):
	"""
	POST: Merchant posts a new deal (pending admin approval)
	"""
	deal = deals.create(actor.user_id, read_json(request))
	return JsonResponse(deal_to_dict(deal), status=201)


@csrf_exempt
@endpoint("POST")
def approve_deal(request, actor, deal_id):
	"""
	POST: Admin approves a pending deal; an admin contact number is assigned
	"""
	deal = deals.approve(deal_id, admin_id=actor.user_id, is_admin=actor.is_admin)
	return JsonResponse(deal_to_dict(deal))


@csrf_exempt
@endpoint("POST")
def reject_deal(request, actor, deal_id):
	body = read_json(request)
	deal = deals.reject(deal_id, admin_id=actor.user_id, is_admin=actor.is_admin, notes=body.get("notes"))
	return JsonResponse(deal_to_dict(deal))


@csrf_exempt
@endpoint("POST")
def accept_deal(request, actor, deal_id):
	"""
	POST: Customer claims an approved deal; the merchant's advance is locked
	"""
	body = read_json(request)
	deal = deals.accept(actor.user_id, deal_id, body.get("delivery_address", ""))
	return JsonResponse(deal_to_dict(deal))


@csrf_exempt
@endpoint("POST")
def cancel_deal(request, actor, deal_id):
	deal = settlement.cancel(deal_id, actor.user_id, is_admin=actor.is_admin)
	return JsonResponse(deal_to_dict(deal))


@csrf_exempt
@endpoint("POST")
def pay_remaining(request, actor, deal_id):
	"""
	POST: Merchant funds the remaining amount after the order is locked
	"""
	deal = orders.merchant_pay_remaining(deal_id, actor.user_id)
	return JsonResponse(deal_to_dict(deal))


# --- Orders ------------------------------------------------------------------

@csrf_exempt
@endpoint("POST")
def create_order(request, actor, deal_id):
	order = orders.create_order(deal_id, actor.user_id)
	return JsonResponse(order_to_dict(order), status=201)


@csrf_exempt
@endpoint("POST")
def order_screenshot(request, actor, order_id):
	"""
	POST: multipart "file" upload, or JSON {"order_screenshot_url": ...} for an already stored image
	"""
	upload = request.FILES.get("file")
	if upload is not None:
		order = orders.upload_screenshot(order_id, actor.user_id, upload.name, upload.read())
	else:
		body = read_json(request)
		order = orders.attach_screenshot(order_id, actor.user_id, body.get("order_screenshot_url", ""))
	return JsonResponse(order_to_dict(order))


@csrf_exempt
@endpoint("POST")
def lock_order(request, actor, order_id):
	"""
	POST: Lock e-commerce order id + tracking id + phone (irreversible)
	"""
	body = read_json(request)
	order = orders.lock_details(
		order_id,
		actor.user_id,
		body.get("ecommerce_order_id", ""),
		body.get("tracking_id", ""),
		body.get("customer_phone", ""),
	)
	return JsonResponse(order_to_dict(order))


@csrf_exempt
@endpoint("POST")
def confirm_delivery(request, actor, order_id):
	body = read_json(request)
	confirmation = orders.confirm_delivery(
		order_id, actor.user_id, body.get("confirmation_photo_url", ""), body.get("notes", "")
	)
	return JsonResponse({
		"id": str(confirmation.id),
		"order_id": str(confirmation.order_id),
		"confirmation_photo_url": confirmation.confirmation_photo_url,
		"confirmed_at": confirmation.confirmed_at.isoformat(),
	}, status=201)


# --- OTP ---------------------------------------------------------------------

@csrf_exempt
@endpoint("POST")
def submit_otp(request, actor, order_id):
	body = read_json(request)
	record = otp.submit(order_id, body.get("otp_code", ""), actor.user_id)
	return JsonResponse(otp_to_dict(record), status=201)


@csrf_exempt
@endpoint("POST")
def verify_otp(request, actor, otp_id):
	"""
	POST: Admin accepts the OTP; the deal settles in the same transaction
	"""
	record = otp.verify(otp_id, admin_id=actor.user_id, is_admin=actor.is_admin)
	return JsonResponse(otp_to_dict(record))


@csrf_exempt
@endpoint("POST")
def reject_otp(request, actor, otp_id):
	body = read_json(request)
	record = otp.reject(otp_id, admin_id=actor.user_id, is_admin=actor.is_admin, notes=body.get("notes"))
	return JsonResponse(otp_to_dict(record))


# --- KYC ---------------------------------------------------------------------

@csrf_exempt
@endpoint("POST")
def submit_kyc(request, actor):
	record = kyc.submit(actor.user_id, read_json(request))
	return JsonResponse(kyc_to_dict(record), status=201)


@csrf_exempt
@endpoint("POST")
def decide_kyc(request, actor, user_id):
	body = read_json(request)
	record = kyc.decide(
		user_id, body.get("decision", ""), admin_id=actor.user_id, is_admin=actor.is_admin, notes=body.get("notes")
	)
	return JsonResponse(kyc_to_dict(record))


# --- Admin tools -------------------------------------------------------------

@csrf_exempt
@endpoint("POST")
def add_admin_number(request, actor):
	body = read_json(request)
	number = deals.add_admin_number(body.get("phone_number", ""), is_admin=actor.is_admin)
	return JsonResponse(admin_number_to_dict(number), status=201)


@csrf_exempt
@endpoint("POST")
def update_admin_number(request, actor, number_id):
	body = read_json(request)
	if not isinstance(body.get("is_active"), bool):
		raise ValidationError("is_active must be true or false", field="is_active")
	number = deals.set_admin_number_active(number_id, body["is_active"], is_admin=actor.is_admin)
	return JsonResponse(admin_number_to_dict(number))


@csrf_exempt
@endpoint("POST")
def deposit(request, actor, user_id):
	"""
	POST: Admin records an external top-up of a user's wallet
	"""
	body = read_json(request)
	payment = settlement.deposit(
		user_id, body.get("amount"), admin_id=actor.user_id, is_admin=actor.is_admin, memo=body.get("memo", "")
	)
	return JsonResponse(payment_to_dict(payment), status=201)
