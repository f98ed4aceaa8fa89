"""
Administration API: dashboard statistics, user, listing and review moderation,
and site settings. Every endpoint requires the admin role.
"""

import logging
from datetime import timedelta

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Case, Count, DecimalField, Q, Sum, Value, When
from django.db.models.functions import TruncMonth
from django.utils import timezone
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from . import listing_lifecycle, reviews
from .exceptions import ConflictError, ForbiddenError, InvalidOperationError
from .models import Order, Product, Review, SiteSetting
from .notifications import TYPE_WARNING, notify_on_commit
from .pagination import MarketplacePagination
from .permissions import IsMarketplaceAdmin, is_admin
from .serializers import (
    AdminProductStatusSerializer,
    AdminUserRoleSerializer,
    AdminUserSerializer,
    AdminUserStatusSerializer,
    ProductSerializer,
    ReviewSerializer,
    SiteSettingSerializer,
    UserSummarySerializer,
)
from .views import get_user_or_404, int_param, ordering_param

User = get_user_model()
logger = logging.getLogger(__name__)


class AdminAPIView(APIView):
    permission_classes = [IsAuthenticated, IsMarketplaceAdmin]


class AdminDashboardView(AdminAPIView):
    """
    GET /api/admin/dashboard/

    Response:
    {
        "stats": {"total_users", "total_products", "total_reviews", "sold_products",
                  "pending_products", "total_revenue", "conversion_rate"},
        "recent_users": [...],
        "recent_products": [...],
        "top_sellers": [{"id", "username", "email", "sold_count", "ratings"}],
        "category_stats": [{"category", "count"}],
        "monthly_stats": [{"month", "count", "revenue"}]
    }

    Revenue is the sum of prices of sold products. Monthly figures cover the
    last 12 months of listings.
    """

    RECENT_LIMIT = 5

    def get(self, request, *args, **kwargs):
        context = {'request': request}
        products = Product.objects.all()

        total_products = products.count()
        sold_products = products.filter(status=Product.STATUS_SOLD).count()
        revenue = products.filter(status=Product.STATUS_SOLD).aggregate(total=Sum('price'))['total'] or 0
        conversion_rate = round(sold_products / total_products * 100, 2) if total_products else 0

        top_sellers = User.objects.annotate(
            sold_count=Count('listings', filter=Q(listings__status=Product.STATUS_SOLD))
        ).filter(sold_count__gt=0).order_by('-sold_count', 'id')[:self.RECENT_LIMIT]

        category_stats = products.values('category').annotate(count=Count('id')).order_by('-count', 'category')

        since = timezone.now() - timedelta(days=365)
        sold_price = Case(
            When(status=Product.STATUS_SOLD, then='price'),
            default=Value(0),
            output_field=DecimalField(max_digits=12, decimal_places=2),
        )
        monthly_stats = products.filter(created_at__gte=since).annotate(
            month=TruncMonth('created_at')
        ).values('month').annotate(
            count=Count('id'),
            revenue=Sum(sold_price),
        ).order_by('month')

        logger.info(f"Admin dashboard served to {request.user.email}")

        return Response({
            'stats': {
                'total_users': User.objects.count(),
                'total_products': total_products,
                'total_reviews': Review.objects.count(),
                'sold_products': sold_products,
                'pending_products': products.filter(status=Product.STATUS_PENDING).count(),
                'total_revenue': revenue,
                'conversion_rate': conversion_rate,
            },
            'recent_users': AdminUserSerializer(
                User.objects.order_by('-created_at')[:self.RECENT_LIMIT], many=True, context=context
            ).data,
            'recent_products': ProductSerializer(
                products.select_related('seller').order_by('-created_at')[:self.RECENT_LIMIT],
                many=True,
                context=context
            ).data,
            'top_sellers': [
                {**UserSummarySerializer(seller, context=context).data,
                 'email': seller.email,
                 'sold_count': seller.sold_count}
                for seller in top_sellers
            ],
            'category_stats': list(category_stats),
            'monthly_stats': [
                {'month': row['month'].strftime('%Y-%m'), 'count': row['count'], 'revenue': row['revenue'] or 0}
                for row in monthly_stats
            ],
        }, status=status.HTTP_200_OK)


# ============================================================================
# Users
# ============================================================================

class AdminUserListView(generics.ListAPIView):
    """
    GET /api/admin/users/?search=&role=&status=&ordering=
    """
    permission_classes = [IsAuthenticated, IsMarketplaceAdmin]
    serializer_class = AdminUserSerializer
    pagination_class = MarketplacePagination

    VALID_ORDERINGS = {
        'created_at': 'created_at',
        'username': 'username',
        'email': 'email',
        'rating': 'rating_average',
    }

    def get_queryset(self):
        params = self.request.query_params
        queryset = User.objects.annotate(product_count=Count('listings'))

        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(username__icontains=search) | Q(email__icontains=search))

        role = params.get('role')
        if role and role != 'all':
            queryset = queryset.filter(role=role)

        account_status = params.get('status')
        if account_status and account_status != 'all':
            queryset = queryset.filter(status=account_status)

        return queryset.order_by(ordering_param(self.request, self.VALID_ORDERINGS, '-created_at'), '-id')


class AdminUserRoleView(AdminAPIView):
    """
    PUT /api/admin/users/<id>/role/   {"role": "buyer|seller|both|admin"}
    """

    def put(self, request, user_id, *args, **kwargs):
        user = get_user_or_404(user_id)
        serializer = AdminUserRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if user.pk == request.user.pk:
            raise InvalidOperationError('You cannot change your own role.')

        user.role = serializer.validated_data['role']
        user.save(update_fields=['role', 'updated_at'])

        logger.info(f"Admin {request.user.pk} set role of user {user.pk} to {user.role}")
        return Response(AdminUserSerializer(user, context={'request': request}).data, status=status.HTTP_200_OK)


class AdminUserStatusView(AdminAPIView):
    """
    PUT /api/admin/users/<id>/status/   {"status": "active|suspended|banned"}

    Suspended and banned accounts keep read access but cannot buy, sell or review.
    """

    def put(self, request, user_id, *args, **kwargs):
        user = get_user_or_404(user_id)
        serializer = AdminUserStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        if user.pk == request.user.pk:
            raise InvalidOperationError('You cannot change your own account status.')

        user.status = serializer.validated_data['status']
        user.save(update_fields=['status', 'updated_at'])

        logger.info(f"Admin {request.user.pk} set status of user {user.pk} to {user.status}")
        notify_on_commit(
            user.pk,
            'Account status changed',
            f'Your account is now {user.status}.',
            type=TYPE_WARNING,
        )
        return Response(AdminUserSerializer(user, context={'request': request}).data, status=status.HTTP_200_OK)


class AdminUserDeleteView(AdminAPIView):
    """
    DELETE /api/admin/users/<id>/

    Admin accounts cannot be deleted. Accounts that took part in orders or
    purchases are kept (suspend or ban them instead). Listings and reviews of
    the account are removed with it.
    """

    def delete(self, request, user_id, *args, **kwargs):
        user = get_user_or_404(user_id)

        if is_admin(user):
            raise ForbiddenError('Admin accounts cannot be deleted.')

        with transaction.atomic():
            has_history = (
                Order.objects.filter(Q(buyer=user) | Q(seller=user)).exists()
                or Product.objects.filter(buyer=user).exists()
            )
            if has_history:
                raise ConflictError('Users with orders or purchases cannot be deleted. Suspend or ban them instead.')

            user.delete()

        logger.info(f"Admin {request.user.pk} deleted user {user_id}")
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Products
# ============================================================================

class AdminProductListView(generics.ListAPIView):
    """
    GET /api/admin/products/?search=&category=&status=&seller=&ordering=

    Every listing, whatever its status.
    """
    permission_classes = [IsAuthenticated, IsMarketplaceAdmin]
    serializer_class = ProductSerializer
    pagination_class = MarketplacePagination

    VALID_ORDERINGS = {
        'created_at': 'created_at',
        'price': 'price',
        'views': 'views',
        'rating': 'rating_average',
    }

    def get_queryset(self):
        params = self.request.query_params
        queryset = Product.objects.select_related('seller')

        search = params.get('search')
        if search:
            queryset = queryset.filter(Q(title__icontains=search) | Q(description__icontains=search))

        category = params.get('category')
        if category and category != 'all':
            queryset = queryset.filter(category=category)

        product_status = params.get('status')
        if product_status and product_status != 'all':
            queryset = queryset.filter(status=product_status)

        seller = int_param(self.request, 'seller')
        if seller is not None:
            queryset = queryset.filter(seller_id=seller)

        return queryset.order_by(ordering_param(self.request, self.VALID_ORDERINGS, '-created_at'), '-id')


class AdminProductStatusView(AdminAPIView):
    """
    PUT /api/admin/products/<id>/status/   {"status": "available|suspended"}
    """

    def put(self, request, pk, *args, **kwargs):
        serializer = AdminProductStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        product = listing_lifecycle.set_moderation_status(pk, serializer.validated_data['status'])
        logger.info(f"Admin {request.user.pk} moderated product {pk} -> {product.status}")
        return Response(ProductSerializer(product, context={'request': request}).data, status=status.HTTP_200_OK)


class AdminProductDeleteView(AdminAPIView):
    """
    DELETE /api/admin/products/<id>/

    Refused for products with any order, open or closed; order history is
    kept. Reviews of the product are deleted with it and the seller's rating
    is recomputed.
    """

    def delete(self, request, pk, *args, **kwargs):
        product = listing_lifecycle.get_product(pk)

        with transaction.atomic():
            if Order.objects.filter(product=product).exists():
                raise ConflictError('Products with orders cannot be deleted.')
            product.delete()

        logger.info(f"Admin {request.user.pk} deleted product {pk}")
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Reviews
# ============================================================================

class AdminReviewListView(generics.ListAPIView):
    """
    GET /api/admin/reviews/?rating=&product=&seller=
    """
    permission_classes = [IsAuthenticated, IsMarketplaceAdmin]
    serializer_class = ReviewSerializer
    pagination_class = MarketplacePagination

    def get_queryset(self):
        queryset = Review.objects.select_related('author', 'product')

        rating = int_param(self.request, 'rating')
        if rating is not None:
            queryset = queryset.filter(rating=rating)

        for param, field in (('product', 'product_id'), ('seller', 'seller_id')):
            value = int_param(self.request, param)
            if value is not None:
                queryset = queryset.filter(**{field: value})

        return queryset.order_by('-created_at', '-id')


class AdminReviewDeleteView(AdminAPIView):
    """
    DELETE /api/admin/reviews/<id>/
    """

    def delete(self, request, pk, *args, **kwargs):
        reviews.moderate_remove_review(pk)
        logger.info(f"Admin {request.user.pk} removed review {pk}")
        return Response(status=status.HTTP_204_NO_CONTENT)


# ============================================================================
# Settings
# ============================================================================

class AdminSettingsView(AdminAPIView):
    """
    GET /api/admin/settings/
    PUT /api/admin/settings/   partial update of the singleton settings row
    """

    def get(self, request, *args, **kwargs):
        return Response(SiteSettingSerializer(SiteSetting.load()).data, status=status.HTTP_200_OK)

    def put(self, request, *args, **kwargs):
        settings_row = SiteSetting.load()
        serializer = SiteSettingSerializer(settings_row, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()

        logger.info(f"Site settings updated by admin {request.user.pk}: {sorted(serializer.validated_data)}")
        return Response(serializer.data, status=status.HTTP_200_OK)
