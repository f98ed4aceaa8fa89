"""
Order lifecycle: escrow simulation for a product purchase.

    pending --confirm--> confirmed --ship--> shipped --confirm delivery--> completed
       |                     |                  |
       +---------------------+------------------+--cancel--> cancelled

Payment moves escrowed -> released on delivery and escrowed -> refunded on
cancellation. The linked product mirrors the order: pending while the order
is open, sold once delivered, available again after a cancellation.

Order and product writes happen in one transaction. Both are conditional
updates; if the product no longer matches the order the transaction is rolled
back with InconsistentStateError.
"""

import logging

from django.db import IntegrityError, transaction
from django.db.models import Q
from django.utils import timezone

from .exceptions import (
    ConflictError,
    InconsistentStateError,
    InvalidOperationError,
    NotFoundError,
    ValidationFailedError,
)
from .listing_lifecycle import get_product
from .models import Order, Product, SiteSetting
from .notifications import TYPE_INFO, TYPE_SUCCESS, TYPE_WARNING, notify_on_commit
from .permissions import require_capability

logger = logging.getLogger(__name__)


ORDER_KIND_PURCHASES = 'purchases'
ORDER_KIND_SALES = 'sales'
ORDER_KIND_ALL = 'all'

ORDER_KINDS = (ORDER_KIND_PURCHASES, ORDER_KIND_SALES, ORDER_KIND_ALL)

SHIPPING_FIELDS = {
    'street': 'shipping_street',
    'city': 'shipping_city',
    'state': 'shipping_state',
    'zip_code': 'shipping_zip_code',
    'country': 'shipping_country',
}


def get_order(order_id):
    try:
        return Order.objects.select_related('product', 'buyer', 'seller').get(pk=order_id)
    except (Order.DoesNotExist, ValueError, TypeError):
        raise NotFoundError('Order not found.')


def _require_transition(order, new_status):
    if not order.can_transition_to(new_status):
        logger.warning(
            f"Order {order.pk}: transition {order.status} -> {new_status} rejected"
        )
        raise ConflictError(f'Cannot move an order from {order.status} to {new_status}.')


def _mirror_product(order, expected_status, **changes):
    """
    Update the order's product, which must still be held by the order's buyer
    in ``expected_status``. Must run inside the order's transaction.
    """
    updated = Product.objects.filter(
        pk=order.product_id,
        status=expected_status,
        buyer_id=order.buyer_id,
    ).update(updated_at=timezone.now(), **changes)

    if not updated:
        logger.error(
            f"Order {order.pk}: product {order.product_id} is no longer {expected_status} "
            f"for buyer {order.buyer_id}; rolling back"
        )
        raise InconsistentStateError()


def create_order(caller, product_id, shipping_address, notes=''):
    """
    Place an order for an available product and hold the payment in escrow.

    Args:
        caller: Buyer placing the order
        product_id: Product to buy
        shipping_address: dict with street, city, state, zip_code and optional country
        notes: Optional note for the seller

    Raises:
        NotFoundError: Unknown product
        InvalidOperationError: Escrow is disabled, or caller is the seller
        ForbiddenError: Caller's account is not in good standing
        ConflictError: Product is not available
    """
    if not SiteSetting.load().enable_escrow:
        raise InvalidOperationError('Escrow orders are currently disabled.')

    product = get_product(product_id)

    if product.seller_id == caller.pk:
        raise InvalidOperationError('You cannot order your own product.')

    require_capability(caller, product, 'place_order', 'Your account cannot place orders.')

    if product.status != Product.STATUS_AVAILABLE:
        raise ConflictError('Product is not available for purchase.')

    address = {model_field: (shipping_address.get(key) or '') for key, model_field in SHIPPING_FIELDS.items()}

    try:
        with transaction.atomic():
            held = Product.objects.filter(
                pk=product.pk,
                status=Product.STATUS_AVAILABLE,
            ).update(status=Product.STATUS_PENDING, buyer=caller, updated_at=timezone.now())

            if not held:
                logger.warning(f"Order for product {product.pk} by user {caller.pk} lost a race")
                raise ConflictError('Product is not available for purchase.')

            order = Order(
                product=product,
                buyer=caller,
                seller_id=product.seller_id,
                amount=product.price,
                status=Order.STATUS_PENDING,
                payment_status=Order.PAYMENT_ESCROWED,
                notes=notes or '',
                **address,
            )
            order.full_clean()
            order.save()
    except IntegrityError:
        logger.warning(f"Order for product {product.pk} rejected: an active order already exists")
        raise ConflictError('Product already has an active order.')

    logger.info(f"Order {order.pk} created: product {product.pk}, buyer {caller.pk}, amount {order.amount}")
    notify_on_commit(
        order.seller_id,
        'New order received',
        f'You have a new order for "{product.title}".',
        type=TYPE_INFO,
        data={'order_id': order.pk, 'product_id': product.pk},
    )
    return get_order(order.pk)


def confirm_order(order_id, caller):
    """Seller accepts a pending order."""
    order = get_order(order_id)

    require_capability(caller, order, 'confirm_order', 'Only the seller can confirm this order.')
    _require_transition(order, Order.STATUS_CONFIRMED)

    now = timezone.now()
    updated = Order.objects.filter(pk=order.pk, status=Order.STATUS_PENDING).update(
        status=Order.STATUS_CONFIRMED,
        confirmed_at=now,
        updated_at=now,
    )
    if not updated:
        raise ConflictError('Order is no longer pending.')

    logger.info(f"Order {order.pk} confirmed by seller {caller.pk}")
    notify_on_commit(
        order.buyer_id,
        'Order confirmed',
        f'Your order for "{order.product.title}" was confirmed by the seller.',
        type=TYPE_SUCCESS,
        data={'order_id': order.pk},
    )
    return get_order(order.pk)


def ship_order(order_id, caller, tracking_number=None):
    """Seller marks a confirmed order as shipped."""
    order = get_order(order_id)

    require_capability(caller, order, 'ship_order', 'Only the seller can ship this order.')
    _require_transition(order, Order.STATUS_SHIPPED)

    now = timezone.now()
    changes = {'status': Order.STATUS_SHIPPED, 'shipped_at': now, 'updated_at': now}
    if tracking_number:
        changes['tracking_number'] = tracking_number

    updated = Order.objects.filter(pk=order.pk, status=Order.STATUS_CONFIRMED).update(**changes)
    if not updated:
        raise ConflictError('Order is no longer confirmed.')

    logger.info(f"Order {order.pk} shipped by seller {caller.pk}")
    notify_on_commit(
        order.buyer_id,
        'Order shipped',
        f'Your order for "{order.product.title}" is on its way.',
        type=TYPE_INFO,
        data={'order_id': order.pk, 'tracking_number': tracking_number or ''},
    )
    return get_order(order.pk)


def confirm_delivery(order_id, caller):
    """Buyer confirms receipt: the order completes, payment is released and the product is sold."""
    order = get_order(order_id)

    require_capability(caller, order, 'confirm_delivery', 'Only the buyer can confirm delivery.')
    _require_transition(order, Order.STATUS_COMPLETED)

    with transaction.atomic():
        now = timezone.now()
        updated = Order.objects.filter(pk=order.pk, status=Order.STATUS_SHIPPED).update(
            status=Order.STATUS_COMPLETED,
            payment_status=Order.PAYMENT_RELEASED,
            completed_at=now,
            updated_at=now,
        )
        if not updated:
            raise ConflictError('Order is no longer shipped.')

        _mirror_product(order, Product.STATUS_PENDING, status=Product.STATUS_SOLD)

    logger.info(f"Order {order.pk} completed; payment released to seller {order.seller_id}")
    notify_on_commit(
        order.seller_id,
        'Payment released',
        f'Delivery of "{order.product.title}" was confirmed. Payment has been released.',
        type=TYPE_SUCCESS,
        data={'order_id': order.pk},
    )
    return get_order(order.pk)


def cancel_order(order_id, caller):
    """Buyer or seller cancels an open order: payment is refunded and the product is relisted."""
    order = get_order(order_id)

    require_capability(caller, order, 'cancel_order', 'You cannot cancel this order.')
    _require_transition(order, Order.STATUS_CANCELLED)

    with transaction.atomic():
        now = timezone.now()
        updated = Order.objects.filter(pk=order.pk).exclude(
            status__in=Order.TERMINAL_STATUSES
        ).update(
            status=Order.STATUS_CANCELLED,
            payment_status=Order.PAYMENT_REFUNDED,
            cancelled_at=now,
            updated_at=now,
        )
        if not updated:
            raise ConflictError('Order can no longer be cancelled.')

        _mirror_product(order, Product.STATUS_PENDING, status=Product.STATUS_AVAILABLE, buyer=None)

    logger.info(f"Order {order.pk} cancelled by user {caller.pk}; payment refunded")
    counterparty_id = order.seller_id if caller.pk == order.buyer_id else order.buyer_id
    notify_on_commit(
        counterparty_id,
        'Order cancelled',
        f'The order for "{order.product.title}" was cancelled.',
        type=TYPE_WARNING,
        data={'order_id': order.pk},
    )
    return get_order(order.pk)


def list_orders_for(user, kind=ORDER_KIND_ALL):
    """
    Orders the user takes part in.

    Args:
        kind: purchases (as buyer), sales (as seller) or all
    """
    if kind not in ORDER_KINDS:
        raise ValidationFailedError(
            'Invalid order type.',
            errors={'type': [f'Must be one of: {", ".join(ORDER_KINDS)}.']}
        )

    queryset = Order.objects.select_related('product', 'buyer', 'seller')
    if kind == ORDER_KIND_PURCHASES:
        return queryset.filter(buyer=user)
    if kind == ORDER_KIND_SALES:
        return queryset.filter(seller=user)
    return queryset.filter(Q(buyer=user) | Q(seller=user))


def get_order_for(order_id, caller):
    """Fetch one order for one of its parties or an administrator."""
    order = get_order(order_id)
    require_capability(caller, order, 'view_order', 'You do not have access to this order.')
    return order
