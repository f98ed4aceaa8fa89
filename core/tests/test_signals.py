"""
Tests for the Review signals that keep product and seller ratings in step
with the review table.
"""

from django.test import TestCase, TransactionTestCase

from core.models import Product, Review
from core.ratings import product_aggregate, seller_aggregate
from tests.factories import make_product, make_review, make_seller, make_sold_product, make_user


class ReviewSignalTests(TestCase):

    def setUp(self):
        self.seller = make_seller()
        self.buyers = [make_user() for _ in range(3)]
        self.products = [make_sold_product(self.seller, buyer) for buyer in self.buyers]

    def assert_in_sync(self):
        for product in Product.objects.filter(seller=self.seller):
            expected = product_aggregate(product.pk)
            self.assertAlmostEqual(product.rating_average, expected.average)
            self.assertEqual(product.rating_count, expected.count)

        self.seller.refresh_from_db()
        expected = seller_aggregate(self.seller.pk)
        self.assertAlmostEqual(self.seller.rating_average, expected.average)
        self.assertEqual(self.seller.rating_count, expected.count)

    def test_create_updates_product_and_seller(self):
        make_review(self.products[0], self.buyers[0], rating=5)
        make_review(self.products[1], self.buyers[1], rating=2)

        self.products[0].refresh_from_db()
        self.seller.refresh_from_db()
        self.assertEqual(self.products[0].ratings, {'average': 5.0, 'count': 1})
        self.assertEqual(self.seller.ratings, {'average': 3.5, 'count': 2})

    def test_any_sequence_of_writes_keeps_aggregates_in_sync(self):
        first = make_review(self.products[0], self.buyers[0], rating=5)
        self.assert_in_sync()

        second = make_review(self.products[1], self.buyers[1], rating=1)
        self.assert_in_sync()

        first.rating = 3
        first.save()
        self.assert_in_sync()

        second.rating = 4
        second.save(update_fields=['rating', 'updated_at'])
        self.assert_in_sync()

        make_review(self.products[2], self.buyers[2], rating=2)
        first.delete()
        self.assert_in_sync()

        self.seller.refresh_from_db()
        self.assertEqual(self.seller.rating_count, 2)
        self.assertEqual(self.seller.rating_average, 3.0)

    def test_deleting_only_review_resets_product(self):
        review = make_review(self.products[0], self.buyers[0], rating=4)
        review.delete()

        self.products[0].refresh_from_db()
        self.assertEqual(self.products[0].rating_average, 0.0)
        self.assertEqual(self.products[0].rating_count, 0)

    def test_comment_only_save_skips_refresh(self):
        review = make_review(self.products[0], self.buyers[0], rating=4)
        Product.objects.filter(pk=self.products[0].pk).update(rating_average=1.0)

        review.comment = 'Updated comment'
        review.save(update_fields=['comment', 'updated_at'])

        self.products[0].refresh_from_db()
        self.assertEqual(self.products[0].rating_average, 1.0)

    def test_cascade_delete_of_product_refreshes_seller(self):
        make_review(self.products[0], self.buyers[0], rating=5)
        make_review(self.products[1], self.buyers[1], rating=1)

        Product.objects.filter(pk=self.products[0].pk).delete()

        self.seller.refresh_from_db()
        self.assertEqual(self.seller.ratings, {'average': 1.0, 'count': 1})
        self.assertEqual(Review.objects.count(), 1)


class ReviewSignalTransactionTests(TransactionTestCase):
    """
    Uses TransactionTestCase so the review write and the aggregate refresh
    are committed for real.
    """

    def test_aggregates_committed_with_review(self):
        seller = make_seller()
        buyer = make_user()
        product = make_sold_product(seller, buyer)

        make_review(product, buyer, rating=3)

        self.assertEqual(Product.objects.get(pk=product.pk).rating_count, 1)
        seller.refresh_from_db()
        self.assertEqual(seller.rating_average, 3.0)

    def test_products_of_other_sellers_untouched(self):
        seller = make_seller()
        other_seller = make_seller()
        buyer = make_user()
        product = make_sold_product(seller, buyer)
        untouched = make_product(other_seller)

        make_review(product, buyer, rating=5)

        untouched.refresh_from_db()
        other_seller.refresh_from_db()
        self.assertEqual(untouched.rating_count, 0)
        self.assertEqual(other_seller.rating_count, 0)
