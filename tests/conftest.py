# tests/conftest.py

import itertools

import pytest

from core import deals, orders, settlement
from core.models import AdminNumber, KycRecord, KycStatus, User

_seq = itertools.count(1)


# --- Users -------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    """Factory for users; KYC is approved unless told otherwise."""

    def _make(kyc_status=KycStatus.APPROVED, is_admin=False, **extra):
        n = next(_seq)
        user = User.objects.create(
            email=f"user{n}@example.com",
            display_name=f"User {n}",
            is_admin=is_admin,
            **extra,
        )
        if kyc_status != KycStatus.NOT_SUBMITTED:
            KycRecord.objects.create(
                user=user,
                status=kyc_status,
                pan_number=f"ZZZZZ{n:04d}Z",
                bank_name="Test Bank",
                account_number="123456789012",
                ifsc_code="HDFC0001234",
                document_url="https://example.com/kyc/doc.pdf",
            )
        return user

    return _make


@pytest.fixture
def fund():
    def _fund(user, amount):
        return settlement.deposit(user.id, amount, is_admin=True, memo="test funding")

    return _fund


@pytest.fixture
def admin(make_user):
    return make_user(kyc_status=KycStatus.NOT_SUBMITTED, is_admin=True)


@pytest.fixture
def merchant(make_user, fund):
    user = make_user()
    fund(user, "20000.00")
    return user


@pytest.fixture
def customer(make_user):
    return make_user()


@pytest.fixture
def admin_number(db):
    return AdminNumber.objects.create(phone_number="+91-90000-11111")


# --- Deal lifecycle ----------------------------------------------------------

@pytest.fixture
def deal_terms():
    return {
        "product_name": "Phone X 128GB",
        "product_link": "https://shop.example.com/p/phone-x",
        "original_price": "10000.00",
        "card_offer_price": "9000.00",
        "expected_buy_price": "9500.00",
        "required_card": "HDFC Credit Card",
        "delivery_address": "12 MG Road, Bengaluru",
    }


@pytest.fixture
def pending_deal(merchant, deal_terms):
    return deals.create(merchant.id, deal_terms)


@pytest.fixture
def approved_deal(pending_deal, admin, admin_number):
    return deals.approve(pending_deal.id, admin_id=admin.id, is_admin=True)


@pytest.fixture
def accepted_deal(approved_deal, customer):
    return deals.accept(customer.id, approved_deal.id, "221B Baker Street, Mumbai")


@pytest.fixture
def order(accepted_deal, customer):
    return orders.create_order(accepted_deal.id, customer.id)


@pytest.fixture
def locked_order(order, customer):
    orders.attach_screenshot(order.id, customer.id, "https://img.example.com/order.png")
    return orders.lock_details(order.id, customer.id, "OD-1001", "TRK-555", "+91-98765-43210")


@pytest.fixture
def in_progress_deal(locked_order, merchant):
    return orders.merchant_pay_remaining(locked_order.deal_id, merchant.id)
