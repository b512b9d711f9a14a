"""Demo helper: seed an admin, a merchant and a customer ready to trade."""

import json
from django.conf import settings
from django.http import JsonResponse, HttpResponseBadRequest, HttpResponseNotFound
from django.views.decorators.csrf import csrf_exempt

from core.constants import to_money
from core.errors import ValidationError
from core.services import DemoServices


@csrf_exempt
def seed(request):
	"""
	POST: Create/fetch the demo users; the merchant wallet is funded on first run.
	Only served with DEBUG on.
	"""
	if not settings.DEBUG:
		return HttpResponseNotFound()
	if request.method != "POST":
		return HttpResponseBadRequest("POST only")
	body = json.loads(request.body or b"{}")
	funds = body.get("merchant_funds", "50000.00")
	try:
		funds = str(to_money(funds, "merchant_funds"))
	except ValidationError as e:
		return HttpResponseBadRequest(e.message)
	admin, merchant, customer = DemoServices.seed_demo_users(merchant_funds=funds)
	return JsonResponse({
		"admin_id": str(admin.id),
		"merchant_id": str(merchant.id),
		"customer_id": str(customer.id),
	}, status=201)
