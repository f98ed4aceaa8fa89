"""
URL configuration for peer_marketplace project.
"""
from django.conf import settings
from django.conf.urls.static import static
from django.contrib import admin
from django.urls import include, path
from rest_framework_simplejwt.views import TokenBlacklistView, TokenVerifyView

from core import admin_views
from core.views import (
    EmailTokenObtainPairView,
    LoginView,
    MyOrdersView,
    NotificationListView,
    NotificationMarkAllReadView,
    NotificationReadView,
    OrderCancelView,
    OrderConfirmDeliveryView,
    OrderConfirmView,
    OrderCreateView,
    OrderDetailView,
    OrderShipView,
    ProductCancelPurchaseView,
    ProductConfirmPurchaseView,
    ProductDetailView,
    ProductListCreateView,
    ProductPurchaseView,
    ReviewDetailView,
    ReviewListCreateView,
    ThrottledTokenRefreshView,
    UserDetailView,
    UserProductsView,
    UserProfileView,
    UserPurchasesView,
    UserRegistrationView,
)


admin_api_patterns = [
    path('dashboard/', admin_views.AdminDashboardView.as_view(), name='admin_dashboard'),
    path('users/', admin_views.AdminUserListView.as_view(), name='admin_user_list'),
    path('users/<int:user_id>/', admin_views.AdminUserDeleteView.as_view(), name='admin_user_delete'),
    path('users/<int:user_id>/role/', admin_views.AdminUserRoleView.as_view(), name='admin_user_role'),
    path('users/<int:user_id>/status/', admin_views.AdminUserStatusView.as_view(), name='admin_user_status'),
    path('products/', admin_views.AdminProductListView.as_view(), name='admin_product_list'),
    path('products/<int:pk>/', admin_views.AdminProductDeleteView.as_view(), name='admin_product_delete'),
    path('products/<int:pk>/status/', admin_views.AdminProductStatusView.as_view(), name='admin_product_status'),
    path('reviews/', admin_views.AdminReviewListView.as_view(), name='admin_review_list'),
    path('reviews/<int:pk>/', admin_views.AdminReviewDeleteView.as_view(), name='admin_review_delete'),
    path('settings/', admin_views.AdminSettingsView.as_view(), name='admin_settings'),
]


urlpatterns = [
    path('admin/', admin.site.urls),

    # Authentication endpoints
    path('api/auth/register/', UserRegistrationView.as_view(), name='user_register'),
    path('api/auth/login/', LoginView.as_view(), name='user_login'),
    path('api/auth/logout/', TokenBlacklistView.as_view(), name='user_logout'),
    path('api/auth/profile/', UserProfileView.as_view(), name='user_profile'),

    # JWT Authentication endpoints
    path('api/token/', EmailTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/token/refresh/', ThrottledTokenRefreshView.as_view(), name='token_refresh'),
    path('api/token/verify/', TokenVerifyView.as_view(), name='token_verify'),

    # Users
    path('api/users/<int:user_id>/', UserDetailView.as_view(), name='user_detail'),
    path('api/users/<int:user_id>/products/', UserProductsView.as_view(), name='user_products'),
    path('api/users/<int:user_id>/purchases/', UserPurchasesView.as_view(), name='user_purchases'),

    # Products and direct purchase flow
    path('api/products/', ProductListCreateView.as_view(), name='product_list'),
    path('api/products/<int:pk>/', ProductDetailView.as_view(), name='product_detail'),
    path('api/products/<int:pk>/purchase/', ProductPurchaseView.as_view(), name='product_purchase'),
    path('api/products/<int:pk>/confirm-purchase/', ProductConfirmPurchaseView.as_view(), name='product_confirm_purchase'),
    path('api/products/<int:pk>/cancel-purchase/', ProductCancelPurchaseView.as_view(), name='product_cancel_purchase'),

    # Orders
    path('api/orders/', OrderCreateView.as_view(), name='order_create'),
    path('api/orders/my-orders/', MyOrdersView.as_view(), name='my_orders'),
    path('api/orders/<int:pk>/', OrderDetailView.as_view(), name='order_detail'),
    path('api/orders/<int:pk>/confirm/', OrderConfirmView.as_view(), name='order_confirm'),
    path('api/orders/<int:pk>/ship/', OrderShipView.as_view(), name='order_ship'),
    path('api/orders/<int:pk>/confirm-delivery/', OrderConfirmDeliveryView.as_view(), name='order_confirm_delivery'),
    path('api/orders/<int:pk>/cancel/', OrderCancelView.as_view(), name='order_cancel'),

    # Reviews
    path('api/reviews/', ReviewListCreateView.as_view(), name='review_list'),
    path('api/reviews/<int:pk>/', ReviewDetailView.as_view(), name='review_detail'),

    # Notifications
    path('api/notifications/', NotificationListView.as_view(), name='notification_list'),
    path('api/notifications/mark-all-read/', NotificationMarkAllReadView.as_view(), name='notification_mark_all_read'),
    path('api/notifications/<int:notification_id>/read/', NotificationReadView.as_view(), name='notification_read'),

    # Administration
    path('api/admin/', include(admin_api_patterns)),
]

if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
