"""
Django admin configuration for the marketplace models.
"""

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.translation import gettext_lazy as _

from .models import Order, Product, Review, SiteSetting, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Extends Django's UserAdmin with the marketplace role, moderation status
    and seller rating.
    """

    list_display = [
        'email',
        'username',
        'role',
        'status',
        'rating_average',
        'rating_count',
        'is_staff',
        'created_at',
    ]

    list_filter = [
        'role',
        'status',
        'is_staff',
        'is_superuser',
        'is_active',
        'created_at',
    ]

    search_fields = ['email', 'username', 'first_name', 'last_name', 'location']

    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('username', 'password')
        }),
        (_('Profile'), {
            'fields': ('first_name', 'last_name', 'email', 'bio', 'location', 'avatar')
        }),
        (_('Marketplace'), {
            'fields': ('role', 'status', 'rating_average', 'rating_count')
        }),
        (_('Permissions'), {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
            'classes': ('collapse',),
        }),
        (_('Important Dates'), {
            'fields': ('last_login', 'date_joined', 'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('username', 'email', 'password1', 'password2', 'role'),
        }),
    )

    # Aggregates are derived from reviews
    readonly_fields = ['rating_average', 'rating_count', 'created_at', 'updated_at',
                       'last_login', 'date_joined']

    date_hierarchy = 'created_at'

    list_per_page = 25


class ReviewInline(admin.TabularInline):
    model = Review
    extra = 0
    fields = ['author', 'rating', 'review_type', 'comment', 'created_at']
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    """
    Listings are browsable and editable, but ``status`` and ``buyer`` are
    read-only: they change only through the purchase and order flows.
    """

    list_display = ['title', 'seller', 'price', 'category', 'condition', 'status',
                    'views', 'rating_average', 'created_at']
    list_filter = ['status', 'category', 'condition', 'created_at']
    search_fields = ['title', 'description', 'seller__email', 'seller__username']
    readonly_fields = ['status', 'buyer', 'views', 'rating_average', 'rating_count',
                       'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25
    inlines = [ReviewInline]

    fieldsets = (
        (None, {
            'fields': ('seller', 'title', 'description', 'images', 'location')
        }),
        (_('Pricing & Details'), {
            'fields': ('price', 'category', 'condition')
        }),
        (_('Sale'), {
            'fields': ('status', 'buyer', 'views', 'rating_average', 'rating_count')
        }),
        (_('Timestamps'), {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    """Orders are inspected here; state changes go through the API."""

    list_display = ['id', 'product', 'buyer', 'seller', 'amount', 'status',
                    'payment_status', 'created_at']
    list_filter = ['status', 'payment_status', 'created_at']
    search_fields = ['product__title', 'buyer__email', 'seller__email', 'tracking_number']
    readonly_fields = ['product', 'buyer', 'seller', 'amount', 'status', 'payment_status',
                       'confirmed_at', 'shipped_at', 'completed_at', 'cancelled_at',
                       'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25

    fieldsets = (
        (None, {
            'fields': ('product', 'buyer', 'seller', 'amount')
        }),
        (_('Escrow Status'), {
            'fields': ('status', 'payment_status', 'tracking_number', 'notes')
        }),
        (_('Shipping Address'), {
            'fields': ('shipping_street', 'shipping_city', 'shipping_state',
                       'shipping_zip_code', 'shipping_country')
        }),
        (_('Timestamps'), {
            'fields': ('confirmed_at', 'shipped_at', 'completed_at', 'cancelled_at',
                       'created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )


@admin.register(Review)
class ReviewAdmin(admin.ModelAdmin):
    list_display = ['id', 'author', 'product', 'seller', 'rating', 'review_type', 'created_at']
    list_filter = ['rating', 'review_type', 'created_at']
    search_fields = ['author__email', 'author__username', 'seller__email', 'product__title', 'comment']
    readonly_fields = ['product', 'author', 'seller', 'created_at', 'updated_at']
    ordering = ['-created_at']
    date_hierarchy = 'created_at'
    list_per_page = 25


@admin.register(SiteSetting)
class SiteSettingAdmin(admin.ModelAdmin):
    list_display = ['site_name', 'allow_registration', 'enable_reviews', 'enable_escrow',
                    'maintenance_mode', 'updated_at']

    def has_add_permission(self, request):
        return not SiteSetting.objects.exists()

    def has_delete_permission(self, request, obj=None):
        return False
