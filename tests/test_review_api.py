"""
Tests for the review endpoints.
"""

from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient

from core.models import Review, SiteSetting

from .factories import make_review, make_seller, make_sold_product, make_user


class ReviewAPITestCase(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.seller = make_seller()
        self.buyer = make_user()
        self.other = make_user()
        self.product = make_sold_product(self.seller, self.buyer)

    def create(self, user=None, **overrides):
        self.client.force_authenticate(user=user or self.buyer)
        data = {'product_id': self.product.pk, 'rating': 4, 'comment': 'Solid purchase'}
        data.update(overrides)
        return self.client.post(reverse('review_list'), data, format='json')


class ReviewCreateAPITests(ReviewAPITestCase):

    def test_create_review(self):
        response = self.create()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['rating'], 4)
        self.assertEqual(response.data['author']['id'], self.buyer.pk)
        self.assertEqual(response.data['seller_id'], self.seller.pk)
        self.assertEqual(response.data['product']['id'], self.product.pk)
        self.assertEqual(response.data['review_type'], Review.TYPE_PRODUCT)

    def test_rating_must_be_between_one_and_five(self):
        for rating in (0, 6, 'five', 4.5):
            with self.subTest(rating=rating):
                response = self.create(rating=rating)
                self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
                self.assertIn('rating', response.data['errors'])

    def test_comment_required(self):
        response = self.create(comment='   ')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_comment_length_limit(self):
        response = self.create(comment='x' * 501)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_duplicate_review_conflicts(self):
        self.create()
        response = self.create(rating=1)
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_non_buyer_forbidden(self):
        response = self.create(user=self.other)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_reviews_disabled(self):
        site = SiteSetting.load()
        site.enable_reviews = False
        site.save()

        response = self.create()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_anonymous_cannot_create(self):
        self.client.force_authenticate(user=None)
        response = self.client.post(reverse('review_list'), {'product_id': self.product.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)


class ReviewReadAndEditAPITests(ReviewAPITestCase):

    def setUp(self):
        super().setUp()
        self.review = make_review(self.product, self.buyer, rating=2, comment='Scratched')

        other_buyer = make_user()
        self.second_review = make_review(
            make_sold_product(self.seller, other_buyer), other_buyer, rating=5, review_type=Review.TYPE_SELLER
        )

    def test_public_list_with_filters(self):
        response = self.client.get(reverse('review_list'), {'product': self.product.pk})
        self.assertEqual([r['id'] for r in response.data['results']], [self.review.pk])

        response = self.client.get(reverse('review_list'), {'seller': self.seller.pk, 'ordering': '-rating'})
        self.assertEqual([r['id'] for r in response.data['results']], [self.second_review.pk, self.review.pk])

        response = self.client.get(reverse('review_list'), {'review_type': Review.TYPE_SELLER})
        self.assertEqual([r['id'] for r in response.data['results']], [self.second_review.pk])

    def test_detail(self):
        response = self.client.get(reverse('review_detail', args=[self.review.pk]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['comment'], 'Scratched')

    def test_author_edits_rating(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.patch(reverse('review_detail', args=[self.review.pk]), {'rating': 4}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.product.refresh_from_db()
        self.assertEqual(self.product.rating_average, 4.0)

    def test_empty_edit_rejected(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.put(reverse('review_detail', args=[self.review.pk]), {}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_other_user_cannot_edit(self):
        self.client.force_authenticate(user=self.seller)
        response = self.client.put(reverse('review_detail', args=[self.review.pk]), {'rating': 5}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_author_deletes(self):
        self.client.force_authenticate(user=self.buyer)
        response = self.client.delete(reverse('review_detail', args=[self.review.pk]))

        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.product.refresh_from_db()
        self.assertEqual(self.product.ratings, {'average': 0.0, 'count': 0})
