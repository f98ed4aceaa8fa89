"""
Tests for the direct purchase flow: purchase, confirm, cancel and delete.
"""

from unittest import mock

from django.test import TestCase

from core import listing_lifecycle, order_lifecycle
from core.exceptions import ConflictError, ForbiddenError, InvalidOperationError, NotFoundError
from core.models import Order, Product, User
from core.notifications import get_notification_service

from .factories import SHIPPING_ADDRESS, make_product, make_seller, make_user


class ListingLifecycleTestCase(TestCase):

    def setUp(self):
        self.seller = make_seller()
        self.buyer = make_user()
        self.other = make_user()
        self.product = make_product(self.seller)

    def reload(self):
        self.product.refresh_from_db()
        return self.product


class PurchaseListingTests(ListingLifecycleTestCase):

    def test_purchase_reserves_product_for_buyer(self):
        product = listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

        self.assertEqual(product.status, Product.STATUS_PENDING)
        self.assertEqual(product.buyer_id, self.buyer.pk)
        self.assertEqual(self.reload().status, Product.STATUS_PENDING)

    def test_purchase_notifies_seller_after_commit(self):
        with self.captureOnCommitCallbacks(execute=True):
            listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

        notifications = get_notification_service().for_user(self.seller.pk)
        self.assertEqual(len(notifications), 1)
        self.assertEqual(notifications[0].title, 'New purchase request')
        self.assertEqual(notifications[0].data, {'product_id': self.product.pk})

    def test_seller_cannot_purchase_own_product(self):
        with self.assertRaises(InvalidOperationError):
            listing_lifecycle.purchase_listing(self.product.pk, self.seller)
        self.assertEqual(self.reload().status, Product.STATUS_AVAILABLE)

    def test_seller_gets_invalid_operation_even_when_product_is_not_available(self):
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)
        with self.assertRaises(InvalidOperationError):
            listing_lifecycle.purchase_listing(self.product.pk, self.seller)

    def test_purchase_of_pending_product_conflicts_and_keeps_state(self):
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

        with self.assertRaises(ConflictError):
            listing_lifecycle.purchase_listing(self.product.pk, self.other)

        product = self.reload()
        self.assertEqual(product.status, Product.STATUS_PENDING)
        self.assertEqual(product.buyer_id, self.buyer.pk)

    def test_purchase_of_sold_or_suspended_product_conflicts(self):
        for status in (Product.STATUS_SOLD, Product.STATUS_SUSPENDED):
            with self.subTest(status=status):
                buyer = self.buyer if status == Product.STATUS_SOLD else None
                product = make_product(self.seller, status=status, buyer=buyer)
                with self.assertRaises(ConflictError):
                    listing_lifecycle.purchase_listing(product.pk, self.other)

    def test_purchase_unknown_product(self):
        with self.assertRaises(NotFoundError):
            listing_lifecycle.purchase_listing(999999, self.buyer)

    def test_suspended_account_cannot_purchase(self):
        self.buyer.status = User.STATUS_SUSPENDED
        self.buyer.save()

        with self.assertRaises(ForbiddenError):
            listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

    def test_lost_race_is_reported_as_conflict(self):
        stale = Product.objects.get(pk=self.product.pk)
        Product.objects.filter(pk=self.product.pk).update(status=Product.STATUS_PENDING, buyer=self.other)

        with mock.patch.object(listing_lifecycle, 'get_product', return_value=stale):
            with self.assertRaises(ConflictError):
                listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

        self.assertEqual(self.reload().buyer_id, self.other.pk)

    def test_product_held_by_order_is_not_purchasable(self):
        order_lifecycle.create_order(self.buyer, self.product.pk, SHIPPING_ADDRESS)

        with self.assertRaises(ConflictError):
            listing_lifecycle.purchase_listing(self.product.pk, self.other)


class ConfirmPurchaseTests(ListingLifecycleTestCase):

    def setUp(self):
        super().setUp()
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

    def test_buyer_confirms_purchase(self):
        product = listing_lifecycle.confirm_purchase(self.product.pk, self.buyer)

        self.assertEqual(product.status, Product.STATUS_SOLD)
        self.assertEqual(product.buyer_id, self.buyer.pk)

    def test_only_buyer_can_confirm(self):
        for caller in (self.seller, self.other):
            with self.subTest(caller=caller.username):
                with self.assertRaises(ForbiddenError):
                    listing_lifecycle.confirm_purchase(self.product.pk, caller)
        self.assertEqual(self.reload().status, Product.STATUS_PENDING)

    def test_confirm_twice_conflicts(self):
        listing_lifecycle.confirm_purchase(self.product.pk, self.buyer)
        with self.assertRaises(ConflictError):
            listing_lifecycle.confirm_purchase(self.product.pk, self.buyer)

    def test_confirm_on_available_product_is_forbidden_for_non_buyer(self):
        product = make_product(self.seller)
        with self.assertRaises(ForbiddenError):
            listing_lifecycle.confirm_purchase(product.pk, self.buyer)

    def test_confirm_notifies_seller(self):
        with self.captureOnCommitCallbacks(execute=True):
            listing_lifecycle.confirm_purchase(self.product.pk, self.buyer)

        titles = [n.title for n in get_notification_service().for_user(self.seller.pk)]
        self.assertIn('Purchase confirmed', titles)


class CancelPurchaseTests(ListingLifecycleTestCase):

    def setUp(self):
        super().setUp()
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)

    def test_buyer_cancels(self):
        product = listing_lifecycle.cancel_purchase(self.product.pk, self.buyer)

        self.assertEqual(product.status, Product.STATUS_AVAILABLE)
        self.assertIsNone(product.buyer_id)

    def test_seller_cancels_and_buyer_is_notified(self):
        with self.captureOnCommitCallbacks(execute=True):
            listing_lifecycle.cancel_purchase(self.product.pk, self.seller)

        self.assertIsNone(self.reload().buyer_id)
        notifications = get_notification_service().for_user(self.buyer.pk)
        self.assertEqual(notifications[0].title, 'Purchase cancelled')

    def test_stranger_cannot_cancel(self):
        with self.assertRaises(ForbiddenError):
            listing_lifecycle.cancel_purchase(self.product.pk, self.other)

    def test_cancel_sold_product_conflicts(self):
        listing_lifecycle.confirm_purchase(self.product.pk, self.buyer)
        with self.assertRaises(ConflictError):
            listing_lifecycle.cancel_purchase(self.product.pk, self.buyer)
        self.assertEqual(self.reload().status, Product.STATUS_SOLD)

    def test_cancelled_product_can_be_bought_again(self):
        listing_lifecycle.cancel_purchase(self.product.pk, self.buyer)
        product = listing_lifecycle.purchase_listing(self.product.pk, self.other)
        self.assertEqual(product.buyer_id, self.other.pk)


class DeleteListingTests(ListingLifecycleTestCase):

    def test_seller_deletes_available_listing(self):
        listing_lifecycle.delete_listing(self.product.pk, self.seller)
        self.assertFalse(Product.objects.filter(pk=self.product.pk).exists())

    def test_other_user_cannot_delete(self):
        with self.assertRaises(ForbiddenError):
            listing_lifecycle.delete_listing(self.product.pk, self.buyer)

    def test_pending_listing_cannot_be_deleted(self):
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)
        with self.assertRaises(ConflictError):
            listing_lifecycle.delete_listing(self.product.pk, self.seller)
        self.assertTrue(Product.objects.filter(pk=self.product.pk).exists())

    def test_listing_with_cancelled_order_is_kept(self):
        order = order_lifecycle.create_order(self.buyer, self.product.pk, SHIPPING_ADDRESS)
        order_lifecycle.cancel_order(order.pk, self.seller)
        self.assertEqual(self.reload().status, Product.STATUS_AVAILABLE)

        with self.assertRaises(ConflictError):
            listing_lifecycle.delete_listing(self.product.pk, self.seller)
        self.assertTrue(Order.objects.filter(pk=order.pk).exists())


class ModerationTests(ListingLifecycleTestCase):

    def test_suspend_and_reinstate(self):
        product = listing_lifecycle.set_moderation_status(self.product.pk, Product.STATUS_SUSPENDED)
        self.assertEqual(product.status, Product.STATUS_SUSPENDED)

        product = listing_lifecycle.set_moderation_status(self.product.pk, Product.STATUS_AVAILABLE)
        self.assertEqual(product.status, Product.STATUS_AVAILABLE)

    def test_pending_product_cannot_be_moderated(self):
        listing_lifecycle.purchase_listing(self.product.pk, self.buyer)
        with self.assertRaises(ConflictError):
            listing_lifecycle.set_moderation_status(self.product.pk, Product.STATUS_SUSPENDED)

    def test_record_view_increments_counter(self):
        listing_lifecycle.record_view(self.product.pk)
        listing_lifecycle.record_view(self.product.pk)
        self.assertEqual(self.reload().views, 2)
