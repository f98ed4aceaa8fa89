"""
Django signals for automatic rating recalculation.

Every review create, rating change and delete refreshes the aggregates of the
reviewed product and of the seller snapshot stored on the review.
"""

import logging

from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .models import Review
from .ratings import refresh_review_aggregates

logger = logging.getLogger(__name__)


@receiver(post_save, sender=Review)
def update_ratings_on_review_save(sender, instance, created, update_fields=None, raw=False, **kwargs):
    """
    Refresh ratings after a review is saved.

    Saves that name their ``update_fields`` and leave out ``rating`` (a
    comment-only edit) do not change any aggregate and are skipped. Fixture
    loading (``raw``) is skipped too; run ``recalculate_ratings`` afterwards.

    This runs inside the caller's transaction: if the refresh fails the review
    write is rolled back with it.
    """
    if raw:
        return

    if not created and update_fields is not None and 'rating' not in update_fields:
        logger.debug(f"Review {instance.id} saved without rating change; ratings untouched")
        return

    refresh_review_aggregates(instance.product_id, instance.seller_id)


@receiver(post_delete, sender=Review)
def update_ratings_on_review_delete(sender, instance, **kwargs):
    """
    Refresh ratings after a review is deleted, including cascade deletes.
    """
    refresh_review_aggregates(instance.product_id, instance.seller_id)
