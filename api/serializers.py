"""Plain-dict renderings of the core models for JsonResponse."""

from .helpers import money


def _ts(value):
	return value.isoformat() if value else None


def _id(value):
	return str(value) if value else None


def deal_to_dict(d) -> dict:
	return {
		"id": str(d.id),
		"merchant_id": str(d.merchant_id),
		"customer_id": _id(d.customer_id),
		"product_name": d.product_name,
		"product_link": d.product_link,
		"original_price": money(d.original_price),
		"card_offer_price": money(d.card_offer_price),
		"expected_buy_price": money(d.expected_buy_price),
		"required_card": d.required_card,
		"commission_amount": money(d.commission_amount),
		"advance_amount": money(d.advance_amount),
		"remaining_amount": money(d.remaining_amount),
		"platform_fee": money(d.platform_fee),
		"delivery_address": d.delivery_address,
		"status": d.status,
		"admin_notes": d.admin_notes or None,
		"admin_contact_number": d.admin_contact_number or None,
		"created_at": _ts(d.created_at),
		"updated_at": _ts(d.updated_at),
		"approved_at": _ts(d.approved_at),
		"accepted_at": _ts(d.accepted_at),
		"completed_at": _ts(d.completed_at),
	}


def order_to_dict(o) -> dict:
	return {
		"id": str(o.id),
		"deal_id": str(o.deal_id),
		"customer_id": str(o.customer_id),
		"order_screenshot_url": o.order_screenshot_url or None,
		"ecommerce_order_id": o.ecommerce_order_id or None,
		"tracking_id": o.tracking_id or None,
		"customer_phone": o.customer_phone or None,
		"otp_verified": o.otp_verified,
		"status": o.status,
		"locked_at": _ts(o.locked_at),
		"created_at": _ts(o.created_at),
	}


def otp_to_dict(r) -> dict:
	return {
		"id": str(r.id),
		"order_id": str(r.order_id),
		"otp_code": r.otp_code,
		"submitted_by": str(r.submitted_by_id),
		"status": r.status,
		"verified_by": _id(r.verified_by_id),
		"notes": r.notes or None,
		"submitted_at": _ts(r.submitted_at),
		"verified_at": _ts(r.verified_at),
	}


def kyc_to_dict(k) -> dict:
	return {
		"id": str(k.id),
		"user_id": str(k.user_id),
		"status": k.status,
		"pan_number": k.pan_number,
		"full_name": k.full_name,
		"date_of_birth": k.date_of_birth.isoformat() if k.date_of_birth else None,
		"bank_name": k.bank_name,
		"account_number": k.account_number,
		"account_holder_name": k.account_holder_name,
		"ifsc_code": k.ifsc_code,
		"document_url": k.document_url,
		"selfie_url": k.selfie_url or None,
		"admin_notes": k.admin_notes or None,
		"created_at": _ts(k.created_at),
		"updated_at": _ts(k.updated_at),
	}


def wallet_to_dict(w) -> dict:
	return {
		"user_id": str(w.user_id),
		"balance": money(w.balance),
		"locked_amount": money(w.locked_amount),
		"updated_at": _ts(w.updated_at),
	}


def payment_to_dict(p) -> dict:
	return {
		"id": str(p.id),
		"deal_id": _id(p.deal_id),
		"from_user_id": _id(p.from_user_id),
		"to_user_id": _id(p.to_user_id),
		"amount": money(p.amount),
		"payment_type": p.payment_type,
		"status": p.status,
		"description": p.description,
		"created_at": _ts(p.created_at),
	}


def admin_number_to_dict(n) -> dict:
	return {
		"id": str(n.id),
		"phone_number": n.phone_number,
		"is_active": n.is_active,
		"assignment_count": n.assignment_count,
		"last_assigned_at": _ts(n.last_assigned_at),
	}
