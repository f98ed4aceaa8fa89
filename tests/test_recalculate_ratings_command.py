from io import StringIO
from unittest import mock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase

from core.models import Product, Review, User
from core.ratings import product_aggregate

from .factories import make_review, make_seller, make_sold_product, make_user


class RecalculateRatingsCommandTests(TestCase):

    def setUp(self):
        self.seller1 = make_seller()
        self.seller2 = make_seller()
        self.buyer1 = make_user()
        self.buyer2 = make_user()

        self.product1 = make_sold_product(self.seller1, self.buyer1)
        self.product2 = make_sold_product(self.seller1, self.buyer2)
        self.product3 = make_sold_product(self.seller2, self.buyer1)

        make_review(self.product1, self.buyer1, rating=5)
        make_review(self.product2, self.buyer2, rating=3)
        make_review(self.product3, self.buyer1, rating=2)

        # Simulate drift: aggregates out of sync with the review table
        Product.objects.update(rating_average=0.0, rating_count=0)
        User.objects.filter(pk__in=[self.seller1.pk, self.seller2.pk]).update(rating_average=1.0, rating_count=9)

    def run_command(self, *args, **kwargs):
        out = StringIO()
        call_command('recalculate_ratings', *args, stdout=out, **kwargs)
        return out.getvalue()

    def test_recalculates_everything(self):
        output = self.run_command()

        self.product1.refresh_from_db()
        self.seller1.refresh_from_db()
        self.seller2.refresh_from_db()

        self.assertEqual(self.product1.ratings, {'average': 5.0, 'count': 1})
        self.assertEqual(self.seller1.ratings, {'average': 4.0, 'count': 2})
        self.assertEqual(self.seller2.ratings, {'average': 2.0, 'count': 1})
        self.assertIn('Recalculation completed successfully. 5 aggregates fixed.', output)

    def test_second_run_finds_nothing(self):
        self.run_command()
        output = self.run_command()
        self.assertIn('0 aggregates fixed', output)

    def test_dry_run_changes_nothing(self):
        output = self.run_command('--dry-run')

        self.product1.refresh_from_db()
        self.assertEqual(self.product1.rating_count, 0)
        self.assertIn('[DRY-RUN]', output)
        self.assertIn('Dry run completed. 5 aggregates would change.', output)

    def test_products_only(self):
        self.run_command('--products-only')

        self.product1.refresh_from_db()
        self.seller1.refresh_from_db()
        self.assertEqual(self.product1.rating_count, 1)
        self.assertEqual(self.seller1.rating_count, 9)

    def test_sellers_only(self):
        self.run_command('--sellers-only')

        self.product1.refresh_from_db()
        self.seller1.refresh_from_db()
        self.assertEqual(self.product1.rating_count, 0)
        self.assertEqual(self.seller1.rating_count, 2)

    def test_small_batches(self):
        self.run_command('--batch-size', '1')
        self.seller1.refresh_from_db()
        self.assertEqual(self.seller1.rating_average, 4.0)

    def test_invalid_options(self):
        with self.assertRaises(CommandError):
            self.run_command('--products-only', '--sellers-only')
        with self.assertRaises(CommandError):
            self.run_command('--batch-size', '0')

    def test_review_removed_mid_run_is_not_overwritten(self):
        def compute(product_id):
            if product_id == self.product2.pk:
                Review.objects.filter(product=self.product1).delete()
            return product_aggregate(product_id)

        with mock.patch(
            'core.management.commands.recalculate_ratings.product_aggregate', side_effect=compute
        ):
            self.run_command('--products-only')

        self.product1.refresh_from_db()
        self.product2.refresh_from_db()
        self.assertEqual(self.product1.ratings, {'average': 0.0, 'count': 0})
        self.assertEqual(self.product2.ratings, {'average': 3.0, 'count': 1})
