"""
API views for authentication, accounts, listings, orders, reviews and
notifications.

Views stay thin: they validate input with serializers, call the lifecycle and
review services with the authenticated user, and serialize the result. Domain
errors propagate to ``core.exceptions.marketplace_exception_handler``.
"""

import logging
from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from django.db.models import Q
from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated, IsAuthenticatedOrReadOnly
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import listing_lifecycle, order_lifecycle, reviews
from .exceptions import ForbiddenError, InvalidOperationError, NotFoundError, ValidationFailedError
from .models import Product, Review, SiteSetting
from .notifications import get_notification_service
from .pagination import MarketplacePagination
from .permissions import CanSell, IsListingOwnerOrReadOnly, has_capability, is_admin, require_capability
from .serializers import (
    EmailTokenObtainPairSerializer,
    LoginSerializer,
    NotificationSerializer,
    OrderCreateSerializer,
    OrderSerializer,
    OrderShipSerializer,
    ProductSerializer,
    ProductWriteSerializer,
    ReviewCreateSerializer,
    ReviewSerializer,
    ReviewUpdateSerializer,
    UserProfileSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
    UserSummarySerializer,
)

User = get_user_model()
logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Client IP address, honouring the first X-Forwarded-For hop."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


def decimal_param(request, name):
    """Read a non-negative decimal query parameter, or None when absent."""
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return None
    try:
        value = Decimal(raw)
    except (ValueError, InvalidOperation):
        raise ValidationFailedError(
            f'Invalid value for "{name}". Must be a valid number.',
            errors={name: ['Must be a valid number.']}
        )
    if value < 0:
        raise ValidationFailedError(
            f'"{name}" cannot be negative.',
            errors={name: ['Cannot be negative.']}
        )
    return value


def int_param(request, name):
    raw = request.query_params.get(name)
    if raw in (None, ''):
        return None
    if not raw.isdigit():
        raise ValidationFailedError(
            f'Invalid value for "{name}". Must be a positive integer.',
            errors={name: ['Must be a positive integer.']}
        )
    return int(raw)


def ordering_param(request, valid_orderings, default):
    """
    Map the ``ordering`` query parameter onto model fields.

    Accepts each key of ``valid_orderings`` with an optional ``-`` prefix.
    """
    ordering = request.query_params.get('ordering')
    if not ordering:
        return default

    descending = ordering.startswith('-')
    field = valid_orderings.get(ordering.lstrip('-'))
    if field is None:
        raise ValidationFailedError(
            f'Invalid ordering field "{ordering}". Valid options: {", ".join(valid_orderings)}'
        )
    return f'-{field}' if descending else field


# ============================================================================
# Authentication
# ============================================================================

class UserRegistrationView(generics.CreateAPIView):
    """
    API endpoint for user registration.

    POST /api/auth/register/
    Blocked when registration is disabled in the site settings.
    """
    serializer_class = UserRegistrationSerializer
    permission_classes = [AllowAny]

    def create(self, request, *args, **kwargs):
        if not SiteSetting.load().allow_registration:
            raise ForbiddenError('Registration is currently closed.')

        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        logger.info(f"User registered: {user.email} (role={user.role})")
        return Response(
            UserProfileSerializer(user, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )


class LoginView(APIView):
    """
    API endpoint for login with email and password.

    POST /api/auth/login/
    Request body: {"email": "user@example.com", "password": "..."}

    Success response (200): {"access": ..., "refresh": ..., "user": {...}}

    Failures return a generic 401 so accounts cannot be enumerated. Suspended
    and banned accounts are refused with 403.
    """
    permission_classes = [AllowAny]
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'

    def post(self, request, *args, **kwargs):
        serializer = LoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        email = serializer.validated_data['email'].lower().strip()
        password = serializer.validated_data['password']
        client_ip = get_client_ip(request)

        user = User.objects.filter(email__iexact=email).first()
        if user is None or not user.check_password(password) or not user.is_active:
            logger.warning(f"Failed login attempt. Email: {email}, IP: {client_ip}")
            return Response(
                {'message': 'Invalid credentials', 'code': 'authentication_failed'},
                status=status.HTTP_401_UNAUTHORIZED
            )

        if not user.is_in_good_standing():
            logger.warning(f"Login refused for {user.status} account. Email: {email}, IP: {client_ip}")
            raise ForbiddenError(f'This account is {user.status}.')

        refresh = RefreshToken.for_user(user)
        logger.info(f"Successful login. Email: {email}, IP: {client_ip}")

        return Response({
            'access': str(refresh.access_token),
            'refresh': str(refresh),
            'user': UserProfileSerializer(user, context={'request': request}).data,
        }, status=status.HTTP_200_OK)


class ThrottledTokenRefreshView(TokenRefreshView):
    """
    POST /api/token/refresh/

    Rotation and blacklisting of the old refresh token follow ``SIMPLE_JWT``.
    """
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'refresh'


class EmailTokenObtainPairView(TokenObtainPairView):
    """
    POST /api/token/

    Token pair for email and password, as an alternative to the login endpoint.
    """
    serializer_class = EmailTokenObtainPairSerializer
    throttle_classes = [ScopedRateThrottle]
    throttle_scope = 'login'


class UserProfileView(APIView):
    """
    GET /api/auth/profile/

    Profile of the authenticated user.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        serializer = UserProfileSerializer(request.user, context={'request': request})
        return Response(serializer.data, status=status.HTTP_200_OK)


# ============================================================================
# Users
# ============================================================================

def get_user_or_404(user_id):
    try:
        return User.objects.get(pk=user_id)
    except User.DoesNotExist:
        raise NotFoundError('User not found.')


class UserDetailView(APIView):
    """
    GET /api/users/<id>/            public profile with recent listings, reviews and stats
    PUT|PATCH /api/users/<id>/      update (the user themselves or an admin)
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    RECENT_LISTINGS = 6
    RECENT_REVIEWS = 5

    def get(self, request, user_id, *args, **kwargs):
        user = get_user_or_404(user_id)

        listings = Product.objects.filter(seller=user)
        recent_listings = listings.filter(status=Product.STATUS_AVAILABLE).select_related('seller')[:self.RECENT_LISTINGS]
        recent_reviews = Review.objects.filter(seller=user).select_related(
            'author', 'product'
        )[:self.RECENT_REVIEWS]

        context = {'request': request}
        return Response({
            'user': UserSummarySerializer(user, context=context).data,
            'bio': user.bio,
            'member_since': user.created_at,
            'listings': ProductSerializer(recent_listings, many=True, context=context).data,
            'reviews': ReviewSerializer(recent_reviews, many=True, context=context).data,
            'stats': {
                'total_listings': listings.count(),
                'active_listings': listings.filter(status=Product.STATUS_AVAILABLE).count(),
                'sold_listings': listings.filter(status=Product.STATUS_SOLD).count(),
                'rating_average': user.rating_average,
                'rating_count': user.rating_count,
            },
        }, status=status.HTTP_200_OK)

    def put(self, request, user_id, *args, **kwargs):
        return self._update(request, user_id, partial=False)

    def patch(self, request, user_id, *args, **kwargs):
        return self._update(request, user_id, partial=True)

    def _update(self, request, user_id, partial):
        user = get_user_or_404(user_id)
        require_capability(request.user, user, 'edit_profile', 'You can only update your own profile.')

        serializer = UserProfileUpdateSerializer(
            user,
            data=request.data,
            partial=partial,
            context={'request': request}
        )
        serializer.is_valid(raise_exception=True)

        if user.pk == request.user.pk and is_admin(user):
            changes = serializer.validated_data
            if 'role' in changes and changes['role'] != user.role:
                raise InvalidOperationError('You cannot change your own role.')
            if 'status' in changes and changes['status'] != user.status:
                raise InvalidOperationError('You cannot change your own account status.')

        serializer.save()

        logger.info(f"Profile {user.pk} updated by user {request.user.pk}")
        return Response(
            UserProfileSerializer(user, context={'request': request}).data,
            status=status.HTTP_200_OK
        )


class UserProductsView(generics.ListAPIView):
    """
    GET /api/users/<id>/products/?status=

    The owner (and admins) see every listing; everyone else sees available ones.
    """
    permission_classes = [AllowAny]
    serializer_class = ProductSerializer
    pagination_class = MarketplacePagination

    def get_queryset(self):
        user = get_user_or_404(self.kwargs['user_id'])
        queryset = Product.objects.filter(seller=user).select_related('seller')

        if not has_capability(self.request.user, user, 'view_all_listings'):
            return queryset.filter(status=Product.STATUS_AVAILABLE)

        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset


class UserPurchasesView(generics.ListAPIView):
    """
    GET /api/users/<id>/purchases/

    Products bought (pending or sold) by the user. Self or admin only.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = ProductSerializer
    pagination_class = MarketplacePagination

    def get_queryset(self):
        user = get_user_or_404(self.kwargs['user_id'])
        require_capability(self.request.user, user, 'view_purchases', 'You can only view your own purchases.')
        return Product.objects.filter(buyer=user).select_related('seller').order_by('-updated_at')


# ============================================================================
# Products
# ============================================================================

class ProductListCreateView(generics.ListCreateAPIView):
    """
    GET /api/products/    available listings, public
    POST /api/products/   create a listing (seller, both or admin role)

    Query Parameters:
    - search: title or description contains (case-insensitive)
    - category, condition, seller: exact filters
    - min_price / max_price: price range
    - ordering: created_at, price, views or rating, optionally prefixed with '-'
    - page, page_size
    """
    permission_classes = [IsAuthenticatedOrReadOnly, CanSell]
    pagination_class = MarketplacePagination

    VALID_ORDERINGS = {
        'created_at': 'created_at',
        'price': 'price',
        'views': 'views',
        'rating': 'rating_average',
    }

    def get_serializer_class(self):
        if self.request.method == 'POST':
            return ProductWriteSerializer
        return ProductSerializer

    def get_queryset(self):
        params = self.request.query_params
        queryset = Product.objects.filter(status=Product.STATUS_AVAILABLE).select_related('seller')

        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(description__icontains=search))

        category = params.get('category')
        if category:
            queryset = queryset.filter(category=category)

        condition = params.get('condition')
        if condition:
            queryset = queryset.filter(condition=condition)

        seller = int_param(self.request, 'seller')
        if seller is not None:
            queryset = queryset.filter(seller_id=seller)

        min_price = decimal_param(self.request, 'min_price')
        max_price = decimal_param(self.request, 'max_price')
        if min_price is not None and max_price is not None and min_price > max_price:
            raise ValidationFailedError('Minimum price cannot be greater than maximum price.')
        if min_price is not None:
            queryset = queryset.filter(price__gte=min_price)
        if max_price is not None:
            queryset = queryset.filter(price__lte=max_price)

        return queryset.order_by(ordering_param(self.request, self.VALID_ORDERINGS, '-created_at'), '-id')

    def create(self, request, *args, **kwargs):
        serializer = ProductWriteSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)
        product = serializer.save()

        logger.info(f"Product {product.pk} listed by user {request.user.pk}")
        return Response(
            ProductSerializer(product, context={'request': request}).data,
            status=status.HTTP_201_CREATED
        )


class ProductDetailView(generics.RetrieveUpdateDestroyAPIView):
    """
    GET /api/products/<id>/         public, counts a view
    PUT|PATCH /api/products/<id>/   seller only; status and buyer are not editable
    DELETE /api/products/<id>/      seller only, while available
    """
    permission_classes = [IsAuthenticatedOrReadOnly, IsListingOwnerOrReadOnly]
    queryset = Product.objects.select_related('seller')

    def get_serializer_class(self):
        if self.request.method in ('PUT', 'PATCH'):
            return ProductWriteSerializer
        return ProductSerializer

    def get_object(self):
        product = listing_lifecycle.get_product(self.kwargs['pk'])
        self.check_object_permissions(self.request, product)
        return product

    def retrieve(self, request, *args, **kwargs):
        product = self.get_object()
        listing_lifecycle.record_view(product.pk)
        product.views += 1
        return Response(ProductSerializer(product, context={'request': request}).data)

    def update(self, request, *args, **kwargs):
        partial = kwargs.pop('partial', False)
        product = self.get_object()

        serializer = ProductWriteSerializer(
            product,
            data=request.data,
            partial=partial,
            context={'request': request}
        )
        serializer.is_valid(raise_exception=True)
        serializer.save()

        logger.info(f"Product {product.pk} updated by user {request.user.pk}")
        return Response(ProductSerializer(product, context={'request': request}).data)

    def destroy(self, request, *args, **kwargs):
        listing_lifecycle.delete_listing(self.kwargs['pk'], request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class ListingTransitionView(APIView):
    """
    Base view for the direct purchase endpoints:

    POST /api/products/<id>/purchase/
    POST /api/products/<id>/confirm-purchase/
    POST /api/products/<id>/cancel-purchase/

    Success response (200): the updated product.
    """
    permission_classes = [IsAuthenticated]
    transition = None

    def post(self, request, pk, *args, **kwargs):
        product = self.transition(pk, request.user)
        return Response(ProductSerializer(product, context={'request': request}).data, status=status.HTTP_200_OK)


class ProductPurchaseView(ListingTransitionView):
    transition = staticmethod(listing_lifecycle.purchase_listing)


class ProductConfirmPurchaseView(ListingTransitionView):
    transition = staticmethod(listing_lifecycle.confirm_purchase)


class ProductCancelPurchaseView(ListingTransitionView):
    transition = staticmethod(listing_lifecycle.cancel_purchase)


# ============================================================================
# Orders
# ============================================================================

class OrderCreateView(APIView):
    """
    POST /api/orders/

    Request body:
    {
        "product_id": 12,
        "shipping_address": {"street": "...", "city": "...", "state": "...", "zip_code": "...", "country": "..."},
        "notes": "optional"
    }

    Success response (201): the order, with status pending and payment escrowed.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, *args, **kwargs):
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        order = order_lifecycle.create_order(
            request.user,
            data['product_id'],
            data['shipping_address'],
            notes=data.get('notes', ''),
        )
        return Response(OrderSerializer(order, context={'request': request}).data, status=status.HTTP_201_CREATED)


class MyOrdersView(generics.ListAPIView):
    """
    GET /api/orders/my-orders/?type=purchases|sales|all
    """
    permission_classes = [IsAuthenticated]
    serializer_class = OrderSerializer
    pagination_class = MarketplacePagination

    def get_queryset(self):
        kind = self.request.query_params.get('type', order_lifecycle.ORDER_KIND_ALL)
        return order_lifecycle.list_orders_for(self.request.user, kind)


class OrderDetailView(APIView):
    """
    GET /api/orders/<id>/   parties of the order or admins
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, pk, *args, **kwargs):
        order = order_lifecycle.get_order_for(pk, request.user)
        return Response(OrderSerializer(order, context={'request': request}).data, status=status.HTTP_200_OK)


class OrderTransitionView(APIView):
    """
    Base view for order status changes:

    PUT /api/orders/<id>/confirm/            seller, pending -> confirmed
    PUT /api/orders/<id>/ship/               seller, confirmed -> shipped
    PUT /api/orders/<id>/confirm-delivery/   buyer, shipped -> completed
    PUT /api/orders/<id>/cancel/             buyer or seller, any open status -> cancelled

    Success response (200): the updated order.
    """
    permission_classes = [IsAuthenticated]
    transition = None

    def apply(self, request, pk):
        return self.transition(pk, request.user)

    def put(self, request, pk, *args, **kwargs):
        order = self.apply(request, pk)
        return Response(OrderSerializer(order, context={'request': request}).data, status=status.HTTP_200_OK)


class OrderConfirmView(OrderTransitionView):
    transition = staticmethod(order_lifecycle.confirm_order)


class OrderShipView(OrderTransitionView):
    def apply(self, request, pk):
        serializer = OrderShipSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return order_lifecycle.ship_order(
            pk,
            request.user,
            tracking_number=serializer.validated_data.get('tracking_number'),
        )


class OrderConfirmDeliveryView(OrderTransitionView):
    transition = staticmethod(order_lifecycle.confirm_delivery)


class OrderCancelView(OrderTransitionView):
    transition = staticmethod(order_lifecycle.cancel_order)


# ============================================================================
# Reviews
# ============================================================================

class ReviewListCreateView(generics.ListCreateAPIView):
    """
    GET /api/reviews/?product=&seller=&author=&rating=&review_type=&ordering=
    POST /api/reviews/   {"product_id": 1, "rating": 4, "comment": "...", "review_type": "product"}

    Listing is public; creating requires authentication.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]
    serializer_class = ReviewSerializer
    pagination_class = MarketplacePagination

    VALID_ORDERINGS = {
        'created_at': 'created_at',
        'rating': 'rating',
    }

    def get_queryset(self):
        queryset = Review.objects.select_related('author', 'product')

        for param, field in (('product', 'product_id'), ('seller', 'seller_id'), ('author', 'author_id')):
            value = int_param(self.request, param)
            if value is not None:
                queryset = queryset.filter(**{field: value})

        rating = int_param(self.request, 'rating')
        if rating is not None:
            queryset = queryset.filter(rating=rating)

        review_type = self.request.query_params.get('review_type')
        if review_type:
            queryset = queryset.filter(review_type=review_type)

        return queryset.order_by(ordering_param(self.request, self.VALID_ORDERINGS, '-created_at'), '-id')

    def create(self, request, *args, **kwargs):
        serializer = ReviewCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        review = reviews.submit_review(
            request.user,
            data['product_id'],
            data['rating'],
            data['comment'],
            review_type=data.get('review_type'),
        )
        return Response(ReviewSerializer(review, context={'request': request}).data, status=status.HTTP_201_CREATED)


class ReviewDetailView(APIView):
    """
    GET /api/reviews/<id>/         public
    PUT|PATCH /api/reviews/<id>/   author only; {"rating": 5} and/or {"comment": "..."}
    DELETE /api/reviews/<id>/      author only (204)

    Rating changes and deletions refresh the product and seller ratings.
    """
    permission_classes = [IsAuthenticatedOrReadOnly]

    def get(self, request, pk, *args, **kwargs):
        review = reviews.get_review(pk)
        return Response(ReviewSerializer(review, context={'request': request}).data, status=status.HTTP_200_OK)

    def put(self, request, pk, *args, **kwargs):
        serializer = ReviewUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        review = reviews.edit_review(
            pk,
            request.user,
            rating=serializer.validated_data.get('rating'),
            comment=serializer.validated_data.get('comment'),
        )
        return Response(ReviewSerializer(review, context={'request': request}).data, status=status.HTTP_200_OK)

    def patch(self, request, pk, *args, **kwargs):
        return self.put(request, pk, *args, **kwargs)

    def delete(self, request, pk, *args, **kwargs):
        reviews.remove_review(pk, request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Notifications
# ============================================================================

class NotificationListView(APIView):
    """
    GET /api/notifications/?unread_only=true

    Newest first, with the unread count.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, *args, **kwargs):
        service = get_notification_service()
        unread_only = request.query_params.get('unread_only', '').lower() == 'true'
        items = service.for_user(request.user.pk, unread_only=unread_only)

        return Response({
            'notifications': NotificationSerializer(items, many=True).data,
            'unread_count': service.unread_count(request.user.pk),
        }, status=status.HTTP_200_OK)


class NotificationReadView(APIView):
    """
    PUT /api/notifications/<id>/read/
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, notification_id, *args, **kwargs):
        if not get_notification_service().mark_read(request.user.pk, notification_id):
            raise NotFoundError('Notification not found.')
        return Response({'message': 'Notification marked as read.'}, status=status.HTTP_200_OK)


class NotificationMarkAllReadView(APIView):
    """
    PUT /api/notifications/mark-all-read/
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, *args, **kwargs):
        changed = get_notification_service().mark_all_read(request.user.pk)
        return Response(
            {'message': 'All notifications marked as read.', 'updated': changed},
            status=status.HTTP_200_OK
        )
