"""
Data model for the peer marketplace: users, listings, escrow orders, reviews
and site-wide settings.
"""

from decimal import Decimal

from django.contrib.auth.models import AbstractUser
from django.core.exceptions import ValidationError
from django.core.validators import MaxLengthValidator, MaxValueValidator, MinValueValidator
from django.db import models
from django.utils.translation import gettext_lazy as _

from .validators import validate_avatar_image, validate_image_references


def user_avatar_upload_path(instance, filename):
    """
    Generate upload path for user avatars.

    Path format: avatars/{user_id}/{filename}
    If user_id is not yet available (user not saved), uses 'temp' as placeholder.
    """
    user_id = instance.id if instance.id else 'temp'
    return f'avatars/{user_id}/{filename}'


class User(AbstractUser):
    """
    Marketplace account.

    Additional fields:
    - email: Required, unique email address (login identifier)
    - role: buyer, seller, both or admin
    - status: Account moderation state (active, suspended, banned)
    - avatar: Optional profile picture
    - bio / location: Optional profile details
    - rating_average / rating_count: Seller aggregate derived from reviews
    - created_at / updated_at: Timestamps
    """

    ROLE_BUYER = 'buyer'
    ROLE_SELLER = 'seller'
    ROLE_BOTH = 'both'
    ROLE_ADMIN = 'admin'

    ROLE_CHOICES = [
        (ROLE_BUYER, 'Buyer'),
        (ROLE_SELLER, 'Seller'),
        (ROLE_BOTH, 'Buyer & Seller'),
        (ROLE_ADMIN, 'Administrator'),
    ]

    STATUS_ACTIVE = 'active'
    STATUS_SUSPENDED = 'suspended'
    STATUS_BANNED = 'banned'

    STATUS_CHOICES = [
        (STATUS_ACTIVE, 'Active'),
        (STATUS_SUSPENDED, 'Suspended'),
        (STATUS_BANNED, 'Banned'),
    ]

    email = models.EmailField(
        _('email address'),
        unique=True,
        blank=False,
        null=False,
        error_messages={
            'unique': _('A user with that email already exists.'),
        },
        help_text=_('Required. Enter a valid email address.')
    )

    role = models.CharField(
        _('role'),
        max_length=10,
        choices=ROLE_CHOICES,
        default=ROLE_BUYER,
        help_text=_('Marketplace role of the account.')
    )

    status = models.CharField(
        _('account status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_ACTIVE,
        help_text=_('Moderation state of the account. Managed by administrators.')
    )

    avatar = models.ImageField(
        _('avatar'),
        upload_to=user_avatar_upload_path,
        blank=True,
        null=True,
        validators=[validate_avatar_image],
        help_text=_('Optional. Upload a profile picture (max 5MB, formats: jpg, png, webp).')
    )

    bio = models.CharField(
        _('bio'),
        max_length=500,
        blank=True,
        default='',
    )

    location = models.CharField(
        _('location'),
        max_length=100,
        blank=True,
        default='',
    )

    rating_average = models.FloatField(
        _('seller rating average'),
        default=0.0,
        help_text=_('Mean rating of all reviews received as a seller.')
    )

    rating_count = models.PositiveIntegerField(
        _('seller rating count'),
        default=0,
        help_text=_('Number of reviews received as a seller.')
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['email'], name='core_user_email_idx'),
            models.Index(fields=['role'], name='core_user_role_idx'),
            models.Index(fields=['status'], name='core_user_status_idx'),
        ]

    def __str__(self):
        return self.email or self.username

    def is_admin_role(self):
        return self.role == self.ROLE_ADMIN

    def can_sell(self):
        """Sellers, dual-role accounts and admins may list products."""
        return self.role in (self.ROLE_SELLER, self.ROLE_BOTH, self.ROLE_ADMIN)

    def is_in_good_standing(self):
        return self.status == self.STATUS_ACTIVE

    @property
    def ratings(self):
        return {'average': self.rating_average, 'count': self.rating_count}

    def clean(self):
        super().clean()

        if self.email:
            self.email = self.email.lower()

        if not self.email:
            raise ValidationError({
                'email': _('Email address is required.')
            })

    def save(self, *args, **kwargs):
        if self.email:
            self.email = self.email.lower()
        super().save(*args, **kwargs)


class Product(models.Model):
    """
    A listing offered by a seller.

    ``status`` and ``buyer`` are owned by the listing and order lifecycles;
    regular edits never touch them. A database constraint keeps ``buyer`` set
    exactly while the listing is pending or sold.
    """

    STATUS_AVAILABLE = 'available'
    STATUS_PENDING = 'pending'
    STATUS_SOLD = 'sold'
    STATUS_SUSPENDED = 'suspended'

    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_PENDING, 'Pending'),
        (STATUS_SOLD, 'Sold'),
        (STATUS_SUSPENDED, 'Suspended'),
    ]

    HELD_STATUSES = (STATUS_PENDING, STATUS_SOLD)

    CATEGORY_CHOICES = [
        ('Electronics', 'Electronics'),
        ('Clothing', 'Clothing'),
        ('Home & Garden', 'Home & Garden'),
        ('Sports', 'Sports'),
        ('Books', 'Books'),
        ('Automotive', 'Automotive'),
        ('Health & Beauty', 'Health & Beauty'),
        ('Toys', 'Toys'),
        ('Other', 'Other'),
    ]

    CONDITION_CHOICES = [
        ('new', 'New'),
        ('like-new', 'Like New'),
        ('good', 'Good'),
        ('fair', 'Fair'),
        ('poor', 'Poor'),
    ]

    seller = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='listings',
        help_text=_('User selling this product')
    )

    buyer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='purchases',
        null=True,
        blank=True,
        help_text=_('Buyer holding the product while pending or sold')
    )

    title = models.CharField(_('title'), max_length=100)

    description = models.TextField(
        _('description'),
        validators=[MaxLengthValidator(1000)],
    )

    price = models.DecimalField(
        _('price'),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'), message=_('Price cannot be negative.'))],
    )

    category = models.CharField(_('category'), max_length=20, choices=CATEGORY_CHOICES)

    condition = models.CharField(_('condition'), max_length=10, choices=CONDITION_CHOICES)

    images = models.JSONField(
        _('images'),
        default=list,
        validators=[validate_image_references],
        help_text=_('Ordered list of image references; the first one is the cover image')
    )

    location = models.CharField(_('location'), max_length=100, blank=True, default='')

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_AVAILABLE,
    )

    views = models.PositiveIntegerField(_('views'), default=0)

    rating_average = models.FloatField(_('rating average'), default=0.0)
    rating_count = models.PositiveIntegerField(_('rating count'), default=0)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('product')
        verbose_name_plural = _('products')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['seller'], name='core_product_seller_idx'),
            models.Index(fields=['status'], name='core_product_status_idx'),
            models.Index(fields=['category'], name='core_product_category_idx'),
            models.Index(fields=['price'], name='core_product_price_idx'),
            models.Index(fields=['-created_at'], name='core_product_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(price__gte=0),
                name='product_price_non_negative',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(status__in=['pending', 'sold'], buyer__isnull=False)
                    | models.Q(status__in=['available', 'suspended'], buyer__isnull=True)
                ),
                name='product_buyer_matches_status',
            ),
        ]

    def __str__(self):
        return self.title

    @property
    def ratings(self):
        return {'average': self.rating_average, 'count': self.rating_count}

    def is_available(self):
        return self.status == self.STATUS_AVAILABLE

    def clean(self):
        """
        Validate model fields.

        Ensures:
        - Title and description are not blank
        - Buyer is not the seller
        - Buyer presence matches the status
        """
        super().clean()

        if not self.title or not self.title.strip():
            raise ValidationError({'title': _('Title cannot be empty.')})

        if not self.description or not self.description.strip():
            raise ValidationError({'description': _('Description cannot be empty.')})

        if self.buyer_id and self.seller_id and self.buyer_id == self.seller_id:
            raise ValidationError({'buyer': _('A seller cannot buy their own product.')})

        if (self.status in self.HELD_STATUSES) != (self.buyer_id is not None):
            raise ValidationError({
                'buyer': _('A buyer must be set exactly when the product is pending or sold.')
            })

    def save(self, *args, **kwargs):
        self.full_clean()
        super().save(*args, **kwargs)


class Order(models.Model):
    """
    Escrow record for a product purchase.

    ``amount`` is a snapshot of the product price at creation and is never
    re-read from the product.
    """

    STATUS_PENDING = 'pending'
    STATUS_CONFIRMED = 'confirmed'
    STATUS_SHIPPED = 'shipped'
    STATUS_DELIVERED = 'delivered'
    STATUS_COMPLETED = 'completed'
    STATUS_CANCELLED = 'cancelled'
    STATUS_DISPUTED = 'disputed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_CONFIRMED, 'Confirmed'),
        (STATUS_SHIPPED, 'Shipped'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_DISPUTED, 'Disputed'),
    ]

    PAYMENT_PENDING = 'pending'
    PAYMENT_ESCROWED = 'escrowed'
    PAYMENT_RELEASED = 'released'
    PAYMENT_REFUNDED = 'refunded'

    PAYMENT_STATUS_CHOICES = [
        (PAYMENT_PENDING, 'Pending'),
        (PAYMENT_ESCROWED, 'Escrowed'),
        (PAYMENT_RELEASED, 'Released'),
        (PAYMENT_REFUNDED, 'Refunded'),
    ]

    TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_CANCELLED)

    # delivered and disputed are declared but no operation enters them
    VALID_TRANSITIONS = {
        STATUS_PENDING: [STATUS_CONFIRMED, STATUS_CANCELLED],
        STATUS_CONFIRMED: [STATUS_SHIPPED, STATUS_CANCELLED],
        STATUS_SHIPPED: [STATUS_COMPLETED, STATUS_CANCELLED],
        STATUS_DELIVERED: [STATUS_CANCELLED],
        STATUS_DISPUTED: [STATUS_CANCELLED],
        STATUS_COMPLETED: [],
        STATUS_CANCELLED: [],
    }

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name='orders',
    )

    buyer = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='orders_placed',
    )

    seller = models.ForeignKey(
        User,
        on_delete=models.PROTECT,
        related_name='orders_received',
    )

    amount = models.DecimalField(
        _('amount'),
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0.00'))],
    )

    status = models.CharField(
        _('status'),
        max_length=10,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    payment_status = models.CharField(
        _('payment status'),
        max_length=10,
        choices=PAYMENT_STATUS_CHOICES,
        default=PAYMENT_PENDING,
    )

    shipping_street = models.CharField(_('street'), max_length=200)
    shipping_city = models.CharField(_('city'), max_length=100)
    shipping_state = models.CharField(_('state'), max_length=100)
    shipping_zip_code = models.CharField(_('zip code'), max_length=20)
    shipping_country = models.CharField(_('country'), max_length=100, blank=True, default='')

    tracking_number = models.CharField(_('tracking number'), max_length=100, blank=True, default='')
    notes = models.TextField(_('notes'), blank=True, default='')

    confirmed_at = models.DateTimeField(null=True, blank=True)
    shipped_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('order')
        verbose_name_plural = _('orders')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['buyer'], name='core_order_buyer_idx'),
            models.Index(fields=['seller'], name='core_order_seller_idx'),
            models.Index(fields=['product'], name='core_order_product_idx'),
            models.Index(fields=['status'], name='core_order_status_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~models.Q(payment_status='released') | models.Q(status='completed'),
                name='order_released_implies_completed',
            ),
            models.CheckConstraint(
                condition=~models.Q(payment_status='refunded') | models.Q(status='cancelled'),
                name='order_refunded_implies_cancelled',
            ),
            models.UniqueConstraint(
                fields=['product'],
                condition=~models.Q(status__in=['completed', 'cancelled']),
                name='unique_active_order_per_product',
            ),
        ]

    def __str__(self):
        return f"Order #{self.pk} for {self.product_id} ({self.status})"

    @property
    def shipping_address(self):
        return {
            'street': self.shipping_street,
            'city': self.shipping_city,
            'state': self.shipping_state,
            'zip_code': self.shipping_zip_code,
            'country': self.shipping_country,
        }

    def is_active(self):
        return self.status not in self.TERMINAL_STATUSES

    def can_transition_to(self, new_status):
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    def involves(self, user):
        return user is not None and user.pk in (self.buyer_id, self.seller_id)

    def clean(self):
        super().clean()

        if self.buyer_id and self.seller_id and self.buyer_id == self.seller_id:
            raise ValidationError({'buyer': _('Buyer and seller cannot be the same user.')})

        if self.payment_status == self.PAYMENT_RELEASED and self.status != self.STATUS_COMPLETED:
            raise ValidationError({
                'payment_status': _('Payment can only be released for completed orders.')
            })

        if self.payment_status == self.PAYMENT_REFUNDED and self.status != self.STATUS_CANCELLED:
            raise ValidationError({
                'payment_status': _('Payment can only be refunded for cancelled orders.')
            })


class Review(models.Model):
    """
    A buyer's review of a product they purchased.

    ``seller`` is copied from the product when the review is written and is
    not kept in sync afterwards.
    """

    TYPE_PRODUCT = 'product'
    TYPE_SELLER = 'seller'

    REVIEW_TYPE_CHOICES = [
        (TYPE_PRODUCT, 'Product'),
        (TYPE_SELLER, 'Seller'),
    ]

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name='reviews',
    )

    author = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_written',
    )

    seller = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='reviews_received',
    )

    rating = models.PositiveSmallIntegerField(
        _('rating'),
        validators=[
            MinValueValidator(1, message=_('Rating must be at least 1.')),
            MaxValueValidator(5, message=_('Rating must be at most 5.'))
        ],
    )

    comment = models.CharField(_('comment'), max_length=500)

    review_type = models.CharField(
        _('review type'),
        max_length=10,
        choices=REVIEW_TYPE_CHOICES,
        default=TYPE_PRODUCT,
    )

    created_at = models.DateTimeField(_('created at'), auto_now_add=True)
    updated_at = models.DateTimeField(_('updated at'), auto_now=True)

    class Meta:
        verbose_name = _('review')
        verbose_name_plural = _('reviews')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['product'], name='core_review_product_idx'),
            models.Index(fields=['seller'], name='core_review_seller_idx'),
            models.Index(fields=['author'], name='core_review_author_idx'),
            models.Index(fields=['rating'], name='core_review_rating_idx'),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=['product', 'author'],
                name='unique_review_per_product_author',
            ),
            models.CheckConstraint(
                condition=models.Q(rating__gte=1, rating__lte=5),
                name='review_rating_between_1_and_5',
            ),
        ]

    def __str__(self):
        return f"Review by {self.author_id} for {self.product_id} - {self.rating}★"

    def clean(self):
        super().clean()

        if not self.comment or not self.comment.strip():
            raise ValidationError({'comment': _('Comment cannot be empty.')})


class SiteSetting(models.Model):
    """
    Site-wide policy managed from the admin API. A single row (pk=1) exists.
    """

    site_name = models.CharField(max_length=100, default='Marketplace')
    allow_registration = models.BooleanField(default=True)
    require_email_verification = models.BooleanField(default=False)
    enable_reviews = models.BooleanField(default=True)
    max_images_per_product = models.PositiveSmallIntegerField(
        default=5,
        validators=[MinValueValidator(1)],
    )
    max_file_size_mb = models.PositiveSmallIntegerField(default=5)
    commission_rate = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=Decimal('5.00'),
        validators=[MinValueValidator(Decimal('0.00')), MaxValueValidator(Decimal('100.00'))],
    )
    auto_approve_products = models.BooleanField(default=True)
    enable_escrow = models.BooleanField(default=True)
    maintenance_mode = models.BooleanField(default=False)
    featured_categories = models.JSONField(default=list, blank=True)
    banned_words = models.JSONField(default=list, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('site setting')
        verbose_name_plural = _('site settings')

    def __str__(self):
        return self.site_name

    def save(self, *args, **kwargs):
        self.pk = 1
        super().save(*args, **kwargs)

    @classmethod
    def load(cls):
        settings_row, _created = cls.objects.get_or_create(pk=1)
        return settings_row
