"""
Review service: writing, editing and removing reviews.

Rating aggregates are refreshed by the Review signals inside the same
transaction as the review write.
"""

import logging

from django.db import IntegrityError, transaction

from .exceptions import ConflictError, ForbiddenError, NotFoundError
from .listing_lifecycle import get_product
from .models import Product, Review, SiteSetting
from .notifications import TYPE_INFO, notify_on_commit
from .permissions import require_capability

logger = logging.getLogger(__name__)


def get_review(review_id):
    try:
        return Review.objects.select_related('product', 'author', 'seller').get(pk=review_id)
    except (Review.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Review not found.')


def submit_review(author, product_id, rating, comment, review_type=Review.TYPE_PRODUCT):
    """
    Create a review for a product the author bought.

    Checks, in order: reviews enabled, product exists, author is the buyer,
    product is sold, no earlier review by the same author.

    Raises:
        ForbiddenError: Reviews are disabled, or author is not the buyer
        NotFoundError: Unknown product
        ConflictError: Product not sold yet, or already reviewed by the author
    """
    if not SiteSetting.load().enable_reviews:
        raise ForbiddenError('Reviews are currently disabled.')

    product = get_product(product_id)

    require_capability(author, product, 'write_review', 'You can only review products you have purchased.')

    if product.status != Product.STATUS_SOLD:
        raise ConflictError('You can only review products that have been sold to you.')

    if Review.objects.filter(product=product, author=author).exists():
        logger.warning(f"Duplicate review for product {product.pk} by user {author.pk} rejected")
        raise ConflictError('You have already reviewed this product.')

    try:
        with transaction.atomic():
            review = Review(
                product=product,
                author=author,
                seller_id=product.seller_id,
                rating=rating,
                comment=comment,
                review_type=review_type or Review.TYPE_PRODUCT,
            )
            review.full_clean(validate_constraints=False)
            review.save()
    except IntegrityError:
        logger.warning(f"Duplicate review for product {product.pk} by user {author.pk} rejected")
        raise ConflictError('You have already reviewed this product.')

    logger.info(f"Review {review.pk} created: product {product.pk}, author {author.pk}, rating {review.rating}")
    notify_on_commit(
        product.seller_id,
        'New review',
        f'{author.username} rated "{product.title}" {review.rating}/5.',
        type=TYPE_INFO,
        data={'review_id': review.pk, 'product_id': product.pk},
    )
    return review


def edit_review(review_id, caller, rating=None, comment=None):
    """
    Change the rating and/or comment of a review. Only the author may edit.

    Aggregates are refreshed only when the rating actually changes.
    """
    review = get_review(review_id)

    require_capability(caller, review, 'edit_review', 'You can only edit your own reviews.')

    update_fields = ['updated_at']
    if rating is not None and rating != review.rating:
        review.rating = rating
        update_fields.append('rating')
    if comment is not None:
        review.comment = comment
        update_fields.append('comment')

    with transaction.atomic():
        review.full_clean(validate_constraints=False)
        review.save(update_fields=update_fields)

    logger.info(f"Review {review.pk} updated by user {caller.pk} (fields: {', '.join(update_fields)})")
    return review


def remove_review(review_id, caller):
    """Delete a review. Only the author may delete it."""
    review = get_review(review_id)

    require_capability(caller, review, 'delete_review', 'You can only delete your own reviews.')

    with transaction.atomic():
        review.delete()

    logger.info(f"Review {review_id} deleted by its author {caller.pk}")


def moderate_remove_review(review_id):
    """Delete any review (administrators only; checked by the caller)."""
    review = get_review(review_id)

    with transaction.atomic():
        review.delete()

    logger.info(f"Review {review_id} removed by moderation")
