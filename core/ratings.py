"""
Rating aggregation for products and sellers.

Aggregates are always recomputed from the full review set of their scope and
written with a single UPDATE; they are never adjusted incrementally.
"""

import logging
from typing import Iterable, NamedTuple

from django.db import transaction

from .models import Product, Review, User

logger = logging.getLogger(__name__)


class RatingAggregate(NamedTuple):
    average: float
    count: int


EMPTY_AGGREGATE = RatingAggregate(average=0.0, count=0)


def aggregate(ratings: Iterable[int]) -> RatingAggregate:
    """
    Compute the mean and count of a collection of ratings.

    An empty collection yields an average of 0.0.
    """
    values = list(ratings)
    if not values:
        return EMPTY_AGGREGATE
    return RatingAggregate(average=sum(values) / len(values), count=len(values))


def product_aggregate(product_id) -> RatingAggregate:
    return aggregate(Review.objects.filter(product_id=product_id).values_list('rating', flat=True))


def seller_aggregate(seller_id) -> RatingAggregate:
    return aggregate(Review.objects.filter(seller_id=seller_id).values_list('rating', flat=True))


def recompute_product_ratings(product_id) -> RatingAggregate:
    """
    Recompute and store the rating aggregate of one product.

    A product that no longer exists (for example while it is being deleted
    together with its reviews) is skipped.
    """
    result = product_aggregate(product_id)
    Product.objects.filter(pk=product_id).update(
        rating_average=result.average,
        rating_count=result.count,
    )
    return result


def recompute_seller_ratings(seller_id) -> RatingAggregate:
    result = seller_aggregate(seller_id)
    User.objects.filter(pk=seller_id).update(
        rating_average=result.average,
        rating_count=result.count,
    )
    return result


def refresh_review_aggregates(product_id, seller_id):
    """
    Recompute the product and seller aggregates touched by a review write.

    Both updates run in one atomic block. Errors are logged and re-raised so
    the review write that triggered them is rolled back as well.

    Returns:
        tuple: (product RatingAggregate, seller RatingAggregate)
    """
    try:
        with transaction.atomic():
            product_result = recompute_product_ratings(product_id)
            seller_result = recompute_seller_ratings(seller_id)
    except Exception as e:
        logger.error(
            f"Error recomputing ratings for product {product_id} / seller {seller_id}: {e}",
            exc_info=True
        )
        raise

    logger.info(
        f"Ratings refreshed: product {product_id} -> {product_result.average:.2f} "
        f"({product_result.count}), seller {seller_id} -> {seller_result.average:.2f} "
        f"({seller_result.count})"
    )
    return product_result, seller_result
