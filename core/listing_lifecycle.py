"""
Listing lifecycle: direct purchase flow on a product.

    available --purchase--> pending --confirm--> sold
                               |
                               +--cancel--> available

Every transition is one conditional UPDATE guarded by the expected prior
status; when no row matches the product was changed concurrently (or was never
in that state) and ConflictError is raised. Products held by an active order
are governed by the order lifecycle and rejected here.
"""

import logging

from django.db import transaction
from django.db.models import Exists, F, OuterRef, ProtectedError
from django.utils import timezone

from .exceptions import ConflictError, InvalidOperationError, NotFoundError, ValidationFailedError
from .models import Order, Product
from .notifications import TYPE_INFO, TYPE_SUCCESS, TYPE_WARNING, notify_on_commit
from .permissions import require_capability

logger = logging.getLogger(__name__)


def get_product(product_id):
    try:
        return Product.objects.select_related('seller', 'buyer').get(pk=product_id)
    except (Product.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Product not found.')


def _active_order_exists():
    return Exists(
        Order.objects.filter(product=OuterRef('pk')).exclude(status__in=Order.TERMINAL_STATUSES)
    )


def _has_active_order(product):
    return Order.objects.filter(product=product).exclude(status__in=Order.TERMINAL_STATUSES).exists()


def _reject_if_order_managed(product):
    if _has_active_order(product):
        logger.warning(f"Listing transition on product {product.pk} rejected: held by an active order")
        raise ConflictError('This product is being handled through an order.')


def _conditional_update(product, expected_status, extra_filters=None, **changes):
    """
    Apply ``changes`` only if the product is still in ``expected_status`` and
    not held by an active order. Returns the number of rows updated.
    """
    queryset = Product.objects.filter(pk=product.pk, status=expected_status, **(extra_filters or {}))
    queryset = queryset.filter(~_active_order_exists())
    return queryset.update(updated_at=timezone.now(), **changes)


def purchase_listing(product_id, caller):
    """
    Reserve an available product for ``caller``.

    Raises:
        NotFoundError: Unknown product
        InvalidOperationError: Caller is the seller
        ForbiddenError: Caller's account is not in good standing
        ConflictError: Product is not available
    """
    product = get_product(product_id)

    if product.seller_id == caller.pk:
        raise InvalidOperationError('You cannot purchase your own product.')

    require_capability(caller, product, 'purchase_listing', 'Your account cannot make purchases.')

    if product.status != Product.STATUS_AVAILABLE:
        raise ConflictError('Product is not available for purchase.')
    _reject_if_order_managed(product)

    updated = _conditional_update(
        product,
        Product.STATUS_AVAILABLE,
        status=Product.STATUS_PENDING,
        buyer=caller,
    )
    if not updated:
        logger.warning(f"Purchase of product {product.pk} by user {caller.pk} lost a race")
        raise ConflictError('Product is not available for purchase.')

    logger.info(f"Product {product.pk} reserved by user {caller.pk}")
    notify_on_commit(
        product.seller_id,
        'New purchase request',
        f'{caller.username} wants to buy "{product.title}".',
        type=TYPE_INFO,
        data={'product_id': product.pk},
    )
    return get_product(product.pk)


def confirm_purchase(product_id, caller):
    """
    Complete a pending purchase. Only the buyer holding the product may confirm.

    Raises:
        NotFoundError: Unknown product
        ForbiddenError: Caller is not the buyer
        ConflictError: Product is not pending
    """
    product = get_product(product_id)

    require_capability(caller, product, 'confirm_purchase', 'Only the buyer can confirm this purchase.')

    if product.status != Product.STATUS_PENDING:
        raise ConflictError('Product is not pending purchase.')
    _reject_if_order_managed(product)

    updated = _conditional_update(
        product,
        Product.STATUS_PENDING,
        extra_filters={'buyer': caller},
        status=Product.STATUS_SOLD,
    )
    if not updated:
        logger.warning(f"Confirmation of product {product.pk} by user {caller.pk} found a changed row")
        raise ConflictError('Product is not pending purchase.')

    logger.info(f"Product {product.pk} sold to user {caller.pk}")
    notify_on_commit(
        product.seller_id,
        'Purchase confirmed',
        f'"{product.title}" has been sold.',
        type=TYPE_SUCCESS,
        data={'product_id': product.pk},
    )
    return get_product(product.pk)


def cancel_purchase(product_id, caller):
    """
    Release a pending product back to the market. Buyer or seller may cancel.

    Raises:
        NotFoundError: Unknown product
        ForbiddenError: Caller is neither buyer nor seller
        ConflictError: Product is not pending
    """
    product = get_product(product_id)

    require_capability(caller, product, 'cancel_purchase', 'You cannot cancel this purchase.')

    if product.status != Product.STATUS_PENDING:
        raise ConflictError('Product is not pending purchase.')
    _reject_if_order_managed(product)

    previous_buyer_id = product.buyer_id
    updated = _conditional_update(
        product,
        Product.STATUS_PENDING,
        extra_filters={'buyer_id': previous_buyer_id},
        status=Product.STATUS_AVAILABLE,
        buyer=None,
    )
    if not updated:
        logger.warning(f"Cancellation of product {product.pk} by user {caller.pk} found a changed row")
        raise ConflictError('Product is not pending purchase.')

    logger.info(f"Purchase of product {product.pk} cancelled by user {caller.pk}")
    counterparty_id = product.seller_id if caller.pk == previous_buyer_id else previous_buyer_id
    notify_on_commit(
        counterparty_id,
        'Purchase cancelled',
        f'The purchase of "{product.title}" was cancelled.',
        type=TYPE_WARNING,
        data={'product_id': product.pk},
    )
    return get_product(product.pk)


def delete_listing(product_id, caller):
    """
    Delete a listing. Only its seller may delete it, and only while available.

    Products with any order are kept. Reviews attached to the product go
    with it.
    """
    product = get_product(product_id)

    require_capability(caller, product, 'delete_listing', 'You can only delete your own listings.')

    if product.status != Product.STATUS_AVAILABLE:
        raise ConflictError('Only available products can be deleted.')

    if Order.objects.filter(product=product).exists():
        raise ConflictError('Products with orders cannot be deleted.')

    try:
        with transaction.atomic():
            deleted, _details = Product.objects.filter(
                pk=product.pk,
                status=Product.STATUS_AVAILABLE,
            ).filter(~Exists(Order.objects.filter(product=OuterRef('pk')))).delete()
    except ProtectedError:
        raise ConflictError('Products with orders cannot be deleted.')

    if not deleted:
        raise ConflictError('Only available products can be deleted.')

    logger.info(f"Product {product.pk} deleted by user {caller.pk}")


def set_moderation_status(product_id, new_status):
    """
    Suspend or reinstate a listing (administrators only; checked by the caller).

    Only available and suspended products can be moderated; products in the
    middle of a sale are left alone.
    """
    if new_status not in (Product.STATUS_AVAILABLE, Product.STATUS_SUSPENDED):
        raise ValidationFailedError(
            'Moderation status must be available or suspended.',
            errors={'status': ['Must be one of: available, suspended.']}
        )

    product = get_product(product_id)

    updated = Product.objects.filter(
        pk=product.pk,
        status__in=[Product.STATUS_AVAILABLE, Product.STATUS_SUSPENDED],
    ).update(status=new_status, updated_at=timezone.now())

    if not updated:
        logger.warning(f"Moderation of product {product.pk} rejected: status is {product.status}")
        raise ConflictError('Only available or suspended products can be moderated.')

    logger.info(f"Product {product.pk} moderation status set to {new_status}")
    if product.status != new_status:
        notify_on_commit(
            product.seller_id,
            'Listing moderated',
            f'Your listing "{product.title}" is now {new_status}.',
            type=TYPE_WARNING if new_status == Product.STATUS_SUSPENDED else TYPE_INFO,
            data={'product_id': product.pk},
        )
    return get_product(product.pk)


def record_view(product_id):
    """Increment the view counter of a product."""
    Product.objects.filter(pk=product_id).update(views=F('views') + 1)
