"""
Role and ownership checks for the marketplace.

All checks go through ``has_capability`` so that the services and the DRF
permission classes agree on who may do what.
"""

from rest_framework import permissions

from .exceptions import ForbiddenError


def is_admin(user):
    """Admin role or Django superuser."""
    return user.is_admin_role() or user.is_superuser


def _same_user(user, user_id):
    return user_id is not None and user.pk == user_id


CAPABILITY_RULES = {
    # listings
    'create_listing': lambda user, product: user.can_sell(),
    'edit_listing': lambda user, product: _same_user(user, product.seller_id),
    'delete_listing': lambda user, product: _same_user(user, product.seller_id),
    'purchase_listing': lambda user, product: True,
    'confirm_purchase': lambda user, product: _same_user(user, product.buyer_id),
    'cancel_purchase': lambda user, product: (
        _same_user(user, product.buyer_id) or _same_user(user, product.seller_id)
    ),
    # orders
    'place_order': lambda user, product: True,
    'confirm_order': lambda user, order: _same_user(user, order.seller_id),
    'ship_order': lambda user, order: _same_user(user, order.seller_id),
    'confirm_delivery': lambda user, order: _same_user(user, order.buyer_id),
    'cancel_order': lambda user, order: order.involves(user),
    'view_order': lambda user, order: order.involves(user) or is_admin(user),
    # reviews
    'write_review': lambda user, product: _same_user(user, product.buyer_id),
    'edit_review': lambda user, review: _same_user(user, review.author_id),
    'delete_review': lambda user, review: _same_user(user, review.author_id),
    # accounts
    'view_all_listings': lambda user, account: _same_user(user, account.pk) or is_admin(user),
    'view_purchases': lambda user, account: _same_user(user, account.pk) or is_admin(user),
    'edit_profile': lambda user, account: _same_user(user, account.pk) or is_admin(user),
    # administration
    'moderate': lambda user, resource: is_admin(user),
}

READ_CAPABILITIES = frozenset({'view_order', 'view_all_listings', 'view_purchases'})


def has_capability(caller, resource, capability):
    """
    Return True when ``caller`` may exercise ``capability`` on ``resource``.

    Anonymous callers have no capabilities. Accounts that are suspended or
    banned keep read access only.

    Raises:
        KeyError: If the capability name is unknown
    """
    rule = CAPABILITY_RULES[capability]

    if caller is None or not caller.is_authenticated:
        return False

    if capability not in READ_CAPABILITIES and not caller.is_in_good_standing():
        return False

    return bool(rule(caller, resource))


def require_capability(caller, resource, capability, message=None):
    """Raise ForbiddenError unless ``has_capability`` allows the action."""
    if not has_capability(caller, resource, capability):
        raise ForbiddenError(message)


class IsMarketplaceAdmin(permissions.BasePermission):
    """
    Permission class that allows only administrators.

    Usage:
        class MyView(APIView):
            permission_classes = [IsAuthenticated, IsMarketplaceAdmin]
    """

    message = 'Admin access required.'

    def has_permission(self, request, view):
        return has_capability(request.user, None, 'moderate')


class CanSell(permissions.BasePermission):
    """
    Permission class for listing creation.

    Only accounts with the seller, both or admin role, in good standing, may
    create listings. Other methods are let through.
    """

    message = 'Only sellers can create product listings.'

    def has_permission(self, request, view):
        if request.method != 'POST':
            return True
        return has_capability(request.user, None, 'create_listing')


class IsListingOwnerOrReadOnly(permissions.BasePermission):
    """
    Object-level permission: anyone may read a listing, only its seller may
    edit it.
    """

    message = 'You can only modify your own listings.'

    def has_object_permission(self, request, view, obj):
        if request.method in permissions.SAFE_METHODS:
            return True
        return has_capability(request.user, obj, 'edit_listing')
