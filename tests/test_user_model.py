"""
Tests for the marketplace User model.
"""

from django.db import IntegrityError
from django.test import TestCase

from core.models import User


class UserModelTests(TestCase):

    def test_email_is_stored_lowercase(self):
        user = User.objects.create_user(
            username='mixedcase',
            email='Mixed.Case@Example.COM',
            password='testpass123'
        )
        user.refresh_from_db()
        self.assertEqual(user.email, 'mixed.case@example.com')

    def test_email_must_be_unique(self):
        User.objects.create_user(username='first', email='dup@example.com', password='testpass123')
        with self.assertRaises(IntegrityError):
            User.objects.create_user(username='second', email='dup@example.com', password='testpass123')

    def test_defaults(self):
        user = User.objects.create_user(username='plain', email='plain@example.com', password='testpass123')
        self.assertEqual(user.role, User.ROLE_BUYER)
        self.assertEqual(user.status, User.STATUS_ACTIVE)
        self.assertEqual(user.ratings, {'average': 0.0, 'count': 0})
        self.assertTrue(user.is_in_good_standing())

    def test_can_sell_by_role(self):
        expectations = {
            User.ROLE_BUYER: False,
            User.ROLE_SELLER: True,
            User.ROLE_BOTH: True,
            User.ROLE_ADMIN: True,
        }
        for role, expected in expectations.items():
            with self.subTest(role=role):
                self.assertEqual(User(role=role).can_sell(), expected)

    def test_suspended_and_banned_are_not_in_good_standing(self):
        self.assertFalse(User(status=User.STATUS_SUSPENDED).is_in_good_standing())
        self.assertFalse(User(status=User.STATUS_BANNED).is_in_good_standing())

    def test_str_is_email(self):
        user = User(username='someone', email='someone@example.com')
        self.assertEqual(str(user), 'someone@example.com')
