"""
Tests for the Product, Order and Review model constraints.
"""

from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction
from django.test import TestCase

from core.models import Order, Product, Review

from .factories import make_product, make_review, make_seller, make_sold_product, make_user


class ProductModelTests(TestCase):

    def setUp(self):
        self.seller = make_seller()
        self.buyer = make_user()

    def test_new_product_is_available_without_buyer(self):
        product = make_product(self.seller)
        self.assertEqual(product.status, Product.STATUS_AVAILABLE)
        self.assertIsNone(product.buyer_id)
        self.assertEqual(product.ratings, {'average': 0.0, 'count': 0})

    def test_pending_product_requires_buyer(self):
        with self.assertRaises(ValidationError) as ctx:
            make_product(self.seller, status=Product.STATUS_PENDING)
        self.assertIn('buyer', ctx.exception.message_dict)

    def test_available_product_cannot_have_buyer(self):
        with self.assertRaises(ValidationError):
            make_product(self.seller, buyer=self.buyer)

    def test_seller_cannot_be_buyer(self):
        with self.assertRaises(ValidationError):
            make_product(self.seller, status=Product.STATUS_SOLD, buyer=self.seller)

    def test_negative_price_rejected(self):
        with self.assertRaises(ValidationError):
            make_product(self.seller, price=Decimal('-1.00'))

    def test_images_required(self):
        with self.assertRaises(ValidationError):
            make_product(self.seller, images=[])

    def test_blank_title_rejected(self):
        with self.assertRaises(ValidationError):
            make_product(self.seller, title='   ')

    def test_database_rejects_buyer_status_mismatch(self):
        product = make_product(self.seller)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Product.objects.filter(pk=product.pk).update(status=Product.STATUS_SOLD)


class OrderModelTests(TestCase):

    def setUp(self):
        self.seller = make_seller()
        self.buyer = make_user()
        self.product = make_product(self.seller, status=Product.STATUS_PENDING, buyer=self.buyer)

    def make_order(self, **kwargs):
        defaults = {
            'product': self.product,
            'buyer': self.buyer,
            'seller': self.seller,
            'amount': Decimal('100.00'),
            'payment_status': Order.PAYMENT_ESCROWED,
            'shipping_street': '1 Market Street',
            'shipping_city': 'Springfield',
            'shipping_state': 'IL',
            'shipping_zip_code': '62701',
        }
        defaults.update(kwargs)
        return Order(**defaults)

    def test_released_payment_requires_completed_order(self):
        order = self.make_order(payment_status=Order.PAYMENT_RELEASED)
        with self.assertRaises(ValidationError):
            order.full_clean()

    def test_refunded_payment_requires_cancelled_order(self):
        order = self.make_order(payment_status=Order.PAYMENT_REFUNDED)
        with self.assertRaises(ValidationError):
            order.full_clean()

    def test_one_active_order_per_product(self):
        self.make_order().save()
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                self.make_order().save()

    def test_closed_orders_do_not_block_new_ones(self):
        self.make_order(status=Order.STATUS_CANCELLED, payment_status=Order.PAYMENT_REFUNDED).save()
        self.make_order().save()
        self.assertEqual(Order.objects.filter(product=self.product).count(), 2)

    def test_transition_table(self):
        order = self.make_order()
        self.assertTrue(order.can_transition_to(Order.STATUS_CONFIRMED))
        self.assertTrue(order.can_transition_to(Order.STATUS_CANCELLED))
        self.assertFalse(order.can_transition_to(Order.STATUS_SHIPPED))
        self.assertFalse(order.can_transition_to(Order.STATUS_COMPLETED))

        order.status = Order.STATUS_COMPLETED
        self.assertFalse(order.can_transition_to(Order.STATUS_CANCELLED))

    def test_shipping_address_property(self):
        order = self.make_order()
        self.assertEqual(order.shipping_address['city'], 'Springfield')
        self.assertEqual(order.shipping_address['country'], '')


class ReviewModelTests(TestCase):

    def setUp(self):
        self.seller = make_seller()
        self.buyer = make_user()
        self.product = make_sold_product(self.seller, self.buyer)

    def test_one_review_per_product_and_author(self):
        make_review(self.product, self.buyer)
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_review(self.product, self.buyer, rating=3)

    def test_rating_outside_range_rejected_by_database(self):
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                make_review(self.product, self.buyer, rating=6)

    def test_rating_validators(self):
        review = Review(product=self.product, author=self.buyer, seller=self.seller, rating=0, comment='Bad')
        with self.assertRaises(ValidationError):
            review.full_clean(validate_constraints=False)

    def test_blank_comment_rejected(self):
        review = Review(product=self.product, author=self.buyer, seller=self.seller, rating=3, comment='  ')
        with self.assertRaises(ValidationError):
            review.full_clean(validate_constraints=False)
