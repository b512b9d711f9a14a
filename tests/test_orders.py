"""
Tests for the order tracker (core.orders) and deal cancellation.

The order lock is the point of no return: before it the acceptance can be
undone and the advance refunded, after it every change is refused.
"""

from decimal import Decimal

import pytest

from core import orders, settlement
from core.errors import (
    ConflictError, InsufficientFundsError, InvalidStateError, IrreversibleStateError,
    PermissionDeniedError, ValidationError,
)
from core.models import Deal, DealStatus, Order, OrderStatus, Payment, PaymentStatus, PaymentType, Wallet
from storage_stub.models import StoredBlob


class TestCreateOrder:
    def test_creates_placed_order(self, order, accepted_deal, customer):
        assert order.status == OrderStatus.PLACED
        assert order.deal_id == accepted_deal.id
        assert order.customer_id == customer.id
        assert not order.is_locked

    def test_one_order_per_deal(self, order, accepted_deal, customer):
        with pytest.raises(ConflictError):
            orders.create_order(accepted_deal.id, customer.id)

        assert Order.objects.filter(deal=accepted_deal).count() == 1

    def test_only_the_customer(self, accepted_deal, merchant):
        with pytest.raises(PermissionDeniedError):
            orders.create_order(accepted_deal.id, merchant.id)

    def test_unclaimed_deal_has_no_customer(self, approved_deal, customer):
        with pytest.raises(PermissionDeniedError):
            orders.create_order(approved_deal.id, customer.id)


class TestScreenshot:
    def test_attach_moves_to_otp_pending(self, order, customer):
        updated = orders.attach_screenshot(order.id, customer.id, "https://img.example.com/a.png")

        assert updated.status == OrderStatus.OTP_PENDING
        assert updated.order_screenshot_url == "https://img.example.com/a.png"

    def test_can_replace_before_lock(self, order, customer):
        orders.attach_screenshot(order.id, customer.id, "https://img.example.com/a.png")
        updated = orders.attach_screenshot(order.id, customer.id, "https://img.example.com/b.png")

        assert updated.order_screenshot_url == "https://img.example.com/b.png"

    def test_upload_stores_the_bytes(self, order, customer, settings):
        settings.STORAGE_BASE_URL = "https://files.example.com/"

        updated = orders.upload_screenshot(order.id, customer.id, "Receipt.PNG", b"\x89PNG fake")

        path = f"order-screenshots/{customer.id}/{order.id}.png"
        assert updated.order_screenshot_url == f"https://files.example.com/{path}"
        blob = StoredBlob.objects.get(path=path)
        assert bytes(blob.content) == b"\x89PNG fake"
        assert blob.content_type == "image/png"

    @pytest.mark.parametrize("filename,content", [
        ("receipt.gif", b"GIF89a"),
        ("receipt", b"data"),
        ("receipt.png", b""),
    ])
    def test_upload_rejects_bad_files(self, order, customer, filename, content):
        with pytest.raises(ValidationError):
            orders.upload_screenshot(order.id, customer.id, filename, content)

    def test_upload_size_limit(self, order, customer):
        with pytest.raises(ValidationError):
            orders.upload_screenshot(order.id, customer.id, "big.jpg", b"x" * (orders.MAX_SCREENSHOT_BYTES + 1))

    def test_frozen_after_lock(self, locked_order, customer):
        with pytest.raises(IrreversibleStateError):
            orders.attach_screenshot(locked_order.id, customer.id, "https://img.example.com/c.png")


class TestLockDetails:
    def test_lock_ships_order_and_places_deal(self, locked_order):
        assert locked_order.status == OrderStatus.SHIPPED
        assert locked_order.is_locked
        assert locked_order.locked_at is not None
        assert locked_order.tracking_id == "TRK-555"
        assert Deal.objects.get(pk=locked_order.deal_id).status == DealStatus.ORDER_PLACED

    def test_screenshot_required_first(self, order, customer):
        with pytest.raises(InvalidStateError):
            orders.lock_details(order.id, customer.id, "OD-1", "TRK-1", "+91-1")

    @pytest.mark.parametrize("args", [
        ("", "TRK-1", "+91-1"),
        ("OD-1", "  ", "+91-1"),
        ("OD-1", "TRK-1", ""),
    ])
    def test_all_details_required(self, order, customer, args):
        orders.attach_screenshot(order.id, customer.id, "https://img.example.com/a.png")

        with pytest.raises(ValidationError):
            orders.lock_details(order.id, customer.id, *args)

    def test_same_values_again_is_a_no_op(self, locked_order, customer):
        again = orders.lock_details(locked_order.id, customer.id, "OD-1001", "TRK-555", "+91-98765-43210")

        assert again.locked_at == locked_order.locked_at
        assert again.status == OrderStatus.SHIPPED

    def test_changing_a_locked_order_is_refused(self, locked_order, customer):
        with pytest.raises(IrreversibleStateError):
            orders.lock_details(locked_order.id, customer.id, "OD-1001", "TRK-999", "+91-98765-43210")

        locked_order.refresh_from_db()
        assert locked_order.tracking_id == "TRK-555"
        assert Deal.objects.get(pk=locked_order.deal_id).status == DealStatus.ORDER_PLACED

    def test_only_the_customer(self, order, merchant):
        with pytest.raises(PermissionDeniedError):
            orders.lock_details(order.id, merchant.id, "OD-1", "TRK-1", "+91-1")


class TestPayRemaining:
    def test_locks_the_remaining_amount(self, in_progress_deal, merchant):
        assert in_progress_deal.status == DealStatus.IN_PROGRESS
        wallet = settlement.wallet_for(merchant.id)
        assert wallet.balance == Decimal("10500.00")
        assert wallet.locked_amount == Decimal("9500.00")
        lock = Payment.objects.get(deal=in_progress_deal, payment_type=PaymentType.REMAINING_LOCK)
        assert lock.amount == Decimal("7125.00")
        assert lock.status == PaymentStatus.LOCKED

    def test_before_the_lock(self, accepted_deal, merchant):
        with pytest.raises(InvalidStateError):
            orders.merchant_pay_remaining(accepted_deal.id, merchant.id)

    def test_only_the_merchant(self, locked_order, customer):
        with pytest.raises(PermissionDeniedError):
            orders.merchant_pay_remaining(locked_order.deal_id, customer.id)

    def test_insufficient_funds(self, locked_order, merchant):
        # drain the spendable balance to below the remaining amount
        Wallet.objects.filter(user=merchant).update(balance=Decimal("100.00"))

        with pytest.raises(InsufficientFundsError):
            orders.merchant_pay_remaining(locked_order.deal_id, merchant.id)

        assert Deal.objects.get(pk=locked_order.deal_id).status == DealStatus.ORDER_PLACED
        assert settlement.wallet_for(merchant.id).locked_amount == Decimal("2375.00")


class TestCancel:
    def test_before_lock_refunds_the_advance(self, order, accepted_deal, merchant, customer):
        deal = settlement.cancel(accepted_deal.id, customer.id)

        assert deal.status == DealStatus.CANCELLED
        assert deal.customer_id is None
        wallet = settlement.wallet_for(merchant.id)
        assert wallet.balance == Decimal("20000.00")
        assert wallet.locked_amount == Decimal("0.00")
        refund = Payment.objects.get(deal=deal, payment_type=PaymentType.REFUND)
        assert refund.amount == Decimal("2375.00")
        assert refund.status == PaymentStatus.REFUNDED
        assert refund.to_user_id == merchant.id

    def test_merchant_may_cancel(self, accepted_deal, merchant):
        deal = settlement.cancel(accepted_deal.id, merchant.id)
        assert deal.status == DealStatus.CANCELLED

    def test_after_lock_is_refused(self, locked_order, customer, merchant):
        with pytest.raises(IrreversibleStateError):
            settlement.cancel(locked_order.deal_id, customer.id)

        deal = Deal.objects.get(pk=locked_order.deal_id)
        assert deal.status == DealStatus.ORDER_PLACED
        assert deal.customer_id == customer.id
        assert settlement.wallet_for(merchant.id).locked_amount == Decimal("2375.00")

    def test_admin_cannot_cancel_after_lock_either(self, in_progress_deal, admin):
        with pytest.raises(IrreversibleStateError):
            settlement.cancel(in_progress_deal.id, admin.id, is_admin=True)

    def test_unclaimed_deal_cannot_be_cancelled(self, approved_deal, merchant):
        with pytest.raises(InvalidStateError):
            settlement.cancel(approved_deal.id, merchant.id)

    def test_strangers_cannot_cancel(self, accepted_deal, make_user):
        with pytest.raises(PermissionDeniedError):
            settlement.cancel(accepted_deal.id, make_user().id)


class TestConfirmDelivery:
    def test_marks_order_delivered(self, locked_order, merchant):
        confirmation = orders.confirm_delivery(locked_order.id, merchant.id, "https://img.example.com/box.jpg", "left at door")

        assert confirmation.notes == "left at door"
        locked_order.refresh_from_db()
        assert locked_order.status == OrderStatus.DELIVERED

    def test_photo_required(self, locked_order, merchant):
        with pytest.raises(ValidationError):
            orders.confirm_delivery(locked_order.id, merchant.id, "")

    def test_only_the_merchant(self, locked_order, customer):
        with pytest.raises(PermissionDeniedError):
            orders.confirm_delivery(locked_order.id, customer.id, "https://img.example.com/box.jpg")

    def test_not_before_shipping(self, order, merchant):
        with pytest.raises(InvalidStateError):
            orders.confirm_delivery(order.id, merchant.id, "https://img.example.com/box.jpg")
