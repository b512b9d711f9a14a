"""
Tests for the HTTP surface (api.*): identity headers, error rendering and an
end-to-end deal driven purely through the endpoints.
"""

import json
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile

from api.helpers import sign_identity
from core.models import DealStatus, KycStatus, User


def _headers(user, admin=False):
    headers = {"X-User-Id": str(user.id)}
    if admin:
        headers["X-User-Role"] = "admin"
    return headers


@pytest.fixture
def api(client):
    """Thin wrapper so tests read as (verb, path, caller)."""

    class Api:
        def get(self, path, user, admin=False, **params):
            return client.get(f"/api/{path}", params, headers=_headers(user, admin))

        def post(self, path, user, body=None, admin=False):
            return client.post(
                f"/api/{path}",
                data=json.dumps(body or {}),
                content_type="application/json",
                headers=_headers(user, admin),
            )

        def patch(self, path, user, body=None):
            return client.patch(
                f"/api/{path}",
                data=json.dumps(body or {}),
                content_type="application/json",
                headers=_headers(user),
            )

    return Api()


class TestPlumbing:
    def test_health_needs_no_identity(self, client):
        assert client.get("/api/health").json() == {"ok": True}

    def test_missing_identity(self, client, db):
        resp = client.get("/api/me")

        assert resp.status_code == 401
        assert resp.json()["error"] == "unauthenticated"

    def test_wrong_method(self, api, customer):
        resp = api.get("deals/create", customer)

        assert resp.status_code == 405

    def test_unknown_user(self, client, db):
        resp = client.get("/api/me", headers={"X-User-Id": "7b0a4a43-3f55-4c1b-9d7c-2a5f0a3c1e11"})

        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"

    def test_body_must_be_json(self, client, merchant):
        resp = client.post(
            "/api/deals/create", data="not json", content_type="application/json", headers=_headers(merchant)
        )

        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    def test_signed_identity(self, client, customer, settings):
        settings.IDENTITY_HEADER_SECRET = "s3cret"

        unsigned = client.get("/api/me", headers=_headers(customer))
        signed = client.get("/api/me", headers={
            **_headers(customer),
            "X-Identity-Signature": sign_identity(str(customer.id), "", "s3cret"),
        })

        assert unsigned.status_code == 401
        assert signed.status_code == 200

    def test_forged_admin_role_is_refused(self, client, customer, settings):
        settings.IDENTITY_HEADER_SECRET = "s3cret"
        headers = {
            **_headers(customer, admin=True),
            "X-Identity-Signature": sign_identity(str(customer.id), "", "s3cret"),
        }

        assert client.get("/api/admin/summary", headers=headers).status_code == 401


class TestErrors:
    def test_kyc_required(self, api, make_user, deal_terms):
        newcomer = make_user(kyc_status=KycStatus.NOT_SUBMITTED)

        resp = api.post("deals/create", newcomer, deal_terms)

        assert resp.status_code == 403
        assert resp.json()["error"] == "kyc_required"
        assert resp.json()["details"] == {"kyc_status": "not_submitted"}

    def test_validation_names_the_field(self, api, merchant, deal_terms):
        deal_terms["card_offer_price"] = "12000"

        resp = api.post("deals/create", merchant, deal_terms)

        assert resp.status_code == 400
        assert resp.json()["details"]["field"] == "card_offer_price"

    def test_admin_only(self, api, pending_deal, merchant, admin_number):
        resp = api.post(f"deals/{pending_deal.id}/approve", merchant)

        assert resp.status_code == 403
        assert resp.json()["error"] == "permission_denied"

    def test_insufficient_funds_status(self, api, make_user, fund, deal_terms, admin, admin_number, customer):
        poor = make_user()
        fund(poor, "100.00")
        deal_id = api.post("deals/create", poor, deal_terms).json()["id"]
        api.post(f"deals/{deal_id}/approve", admin, admin=True)

        resp = api.post(f"deals/{deal_id}/accept", customer, {"delivery_address": "x"})

        assert resp.status_code == 402
        assert resp.json()["error"] == "insufficient_funds"

    def test_already_accepted(self, api, accepted_deal, make_user):
        resp = api.post(f"deals/{accepted_deal.id}/accept", make_user(), {"delivery_address": "x"})

        assert resp.status_code == 409
        assert resp.json()["error"] == "already_accepted"

    def test_no_capacity(self, api, pending_deal, admin):
        resp = api.post(f"deals/{pending_deal.id}/approve", admin, admin=True)

        assert resp.status_code == 503


class TestReads:
    def test_me(self, api, merchant):
        body = api.get("me", merchant).json()

        assert body["kyc_status"] == "approved"
        assert body["wallet"] == {
            "user_id": str(merchant.id),
            "balance": "20000.00",
            "locked_amount": "0.00",
            "updated_at": body["wallet"]["updated_at"],
        }

    def test_update_profile(self, api, customer):
        resp = api.patch("me", customer, {"display_name": "Asha K", "phone": "+91 98765 43210", "preferred_role": "accept_deals"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["display_name"] == "Asha K"
        assert body["phone"] == "+91 98765 43210"
        assert body["preferred_role"] == "accept_deals"
        assert api.get("me", customer).json()["preferred_role"] == "accept_deals"

    def test_update_profile_rejects_bad_role(self, api, customer):
        resp = api.patch("me", customer, {"preferred_role": "landlord"})

        assert resp.status_code == 400
        assert resp.json()["details"]["field"] == "preferred_role"

    def test_deal_visibility(self, api, pending_deal, admin, admin_number, make_user):
        stranger = make_user()

        assert api.get(f"deals/{pending_deal.id}", stranger).status_code == 404
        api.post(f"deals/{pending_deal.id}/approve", admin, admin=True)
        assert api.get(f"deals/{pending_deal.id}", stranger).status_code == 200

    def test_my_deals_by_role(self, api, accepted_deal, merchant, customer):
        as_merchant = api.get("deals", merchant).json()
        as_customer = api.get("deals", customer, role="customer").json()

        assert [d["id"] for d in as_merchant] == [str(accepted_deal.id)]
        assert [d["id"] for d in as_customer] == [str(accepted_deal.id)]
        assert api.get("deals", customer).json() == []

    def test_admin_lists(self, api, pending_deal, admin):
        body = api.get("admin/deals", admin, admin=True, status="pending").json()

        assert [d["id"] for d in body] == [str(pending_deal.id)]
        assert api.get("admin/deals", admin, admin=True, status="bogus").status_code == 400

    def test_admin_summary(self, api, pending_deal, admin):
        body = api.get("admin/summary", admin, admin=True).json()

        assert body["deals"]["pending"] == 1
        assert Decimal(body["wallets"]["balance"]) == Decimal("20000")


def test_deal_end_to_end(api, merchant, customer, admin, admin_number, deal_terms):
    # merchant lists, admin approves
    deal = api.post("deals/create", merchant, deal_terms)
    assert deal.status_code == 201
    deal = deal.json()
    assert deal["commission_amount"] == "350.00"
    deal_id = deal["id"]
    assert api.post(f"deals/{deal_id}/approve", admin, admin=True).json()["status"] == "approved"

    # customer claims it and places the order
    assert [d["id"] for d in api.get("deals/open", customer).json()] == [deal_id]
    accepted = api.post(f"deals/{deal_id}/accept", customer, {"delivery_address": "Flat 9, Pune"}).json()
    assert accepted["status"] == DealStatus.ACCEPTED
    order_id = api.post(f"deals/{deal_id}/order/create", customer).json()["id"]
    shot = api.post(f"orders/{order_id}/screenshot", customer, {"order_screenshot_url": "https://img.example.com/o.png"})
    assert shot.json()["status"] == "otp_pending"
    locked = api.post(f"orders/{order_id}/lock", customer, {
        "ecommerce_order_id": "OD-77",
        "tracking_id": "TRK-77",
        "customer_phone": "+91-90000-77777",
    })
    assert locked.json()["status"] == "shipped"

    # OTP waits for the merchant's remaining payment
    early = api.post(f"orders/{order_id}/otp", customer, {"otp_code": "123456"})
    assert early.status_code == 409
    assert early.json()["error"] == "payment_pending"
    assert api.post(f"deals/{deal_id}/cancel", customer).json()["error"] == "irreversible_state"
    assert api.post(f"deals/{deal_id}/pay-remaining", merchant).json()["status"] == "in_progress"
    otp_id = api.post(f"orders/{order_id}/otp", customer, {"otp_code": "123456"}).json()["id"]

    # admin verifies and the deal settles
    queue = api.get("admin/otp", admin, admin=True).json()
    assert [row["id"] for row in queue] == [otp_id]
    assert queue[0]["deal"]["id"] == deal_id
    assert api.post(f"otp/{otp_id}/verify", admin, admin=True).json()["status"] == "verified"

    assert api.get(f"deals/{deal_id}", merchant).json()["status"] == "completed"
    assert api.get("wallet", customer).json()["balance"] == "9350.00"
    assert api.get("wallet", merchant).json() | {"updated_at": None} == {
        "user_id": str(merchant.id),
        "balance": "10500.00",
        "locked_amount": "0.00",
        "updated_at": None,
    }
    order = api.get(f"deals/{deal_id}/order", merchant).json()
    assert order["otp_verified"] is True
    assert [r["status"] for r in order["otp_records"]] == ["verified"]


def test_screenshot_upload(client, order, customer):
    upload = SimpleUploadedFile("receipt.jpg", b"\xff\xd8\xff fake jpeg", content_type="image/jpeg")

    resp = client.post(f"/api/orders/{order.id}/screenshot", {"file": upload}, headers=_headers(customer))

    assert resp.status_code == 200
    assert resp.json()["order_screenshot_url"].endswith(f"{order.id}.jpg")


def test_kyc_flow(api, make_user, admin):
    user = make_user(kyc_status=KycStatus.NOT_SUBMITTED)
    assert api.get("kyc", user).json() == {"status": "not_submitted"}

    submitted = api.post("kyc/submit", user, {
        "pan_number": "PQRST6789K",
        "bank_name": "SBI",
        "account_number": "30012345678",
        "ifsc_code": "SBIN0001234",
        "document_url": "https://example.com/kyc/pan.pdf",
    })
    assert submitted.status_code == 201
    decided = api.post(f"kyc/{user.id}/decide", admin, {"decision": "approve"}, admin=True)
    assert decided.json()["status"] == "approved"
    assert api.get("me", user).json()["kyc_status"] == "approved"


def test_deposit_and_payments(api, customer, admin):
    resp = api.post(f"admin/wallets/{customer.id}/deposit", admin, {"amount": "500.00", "memo": "UPI"}, admin=True)

    assert resp.status_code == 201
    payments = api.get("payments", customer).json()
    assert [(p["payment_type"], p["amount"]) for p in payments] == [("deposit", "500.00")]


def test_admin_numbers(api, admin):
    created = api.post("admin/numbers/add", admin, {"phone_number": "+91-80000-00000"}, admin=True)
    assert created.status_code == 201
    number_id = created.json()["id"]

    bad = api.post(f"admin/numbers/{number_id}", admin, {"is_active": "no"}, admin=True)
    assert bad.status_code == 400
    off = api.post(f"admin/numbers/{number_id}", admin, {"is_active": False}, admin=True)
    assert off.json()["is_active"] is False
    assert len(api.get("admin/numbers", admin, admin=True).json()) == 1


def test_notification_endpoints(api, customer, django_capture_on_commit_callbacks, admin):
    with django_capture_on_commit_callbacks(execute=True):
        api.post(f"admin/wallets/{customer.id}/deposit", admin, {"amount": "10.00"}, admin=True)

    inbox = api.get("notifications", customer).json()
    assert [n["event"] for n in inbox] == ["wallet.deposit"]
    assert api.post("notifications/read-all", customer).json() == {"updated": 1}
    assert api.get("notifications", customer, unread="1").json() == []


def test_demo_seed(client, db, settings):
    settings.DEBUG = True

    first = client.post("/api/demo/seed", data="{}", content_type="application/json")
    again = client.post("/api/demo/seed", data="{}", content_type="application/json")

    assert first.status_code == again.status_code == 201
    assert first.json() == again.json()
    merchant = User.objects.get(pk=first.json()["merchant_id"])
    assert str(merchant.wallet.balance) == "50000.00"


def test_demo_seed_hidden_without_debug(client, db, settings):
    settings.DEBUG = False

    assert client.post("/api/demo/seed").status_code == 404
