"""
Serializers for authentication, accounts, listings, orders, reviews,
notifications and site settings.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError
from rest_framework import serializers
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

from .models import Order, Product, Review, SiteSetting
from .permissions import has_capability
from .validators import find_banned_words

User = get_user_model()


class EmailTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Custom serializer to use email instead of username for authentication.

    Suspended and banned accounts cannot obtain tokens.
    """
    username_field = 'email'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if 'username' in self.fields:
            del self.fields['username']
        if 'email' not in self.fields:
            self.fields['email'] = serializers.EmailField()

    def validate(self, attrs):
        attrs['email'] = attrs.get('email', '').strip().lower()
        data = super().validate(attrs)
        if not self.user.is_in_good_standing():
            raise AuthenticationFailed(f'This account is {self.user.status}.', code='account_inactive')
        return data


class UserRegistrationSerializer(serializers.ModelSerializer):
    """
    Serializer for user registration.

    Fields:
    - email: Required, unique (case-insensitive)
    - username: Required, unique
    - password / confirm_password: Required, must match and pass Django's validators
    - role: buyer, seller or both (admin cannot be self-assigned)
    - bio, location: Optional
    """

    SELF_ASSIGNABLE_ROLES = (User.ROLE_BUYER, User.ROLE_SELLER, User.ROLE_BOTH)

    password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )
    confirm_password = serializers.CharField(
        write_only=True,
        required=True,
        style={'input_type': 'password'}
    )

    class Meta:
        model = User
        fields = ['id', 'email', 'username', 'password', 'confirm_password', 'role',
                  'bio', 'location', 'created_at']
        read_only_fields = ['id', 'created_at']
        extra_kwargs = {
            'email': {'required': True},
        }

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("A user with that email already exists.")
        return value

    def validate_password(self, value):
        try:
            validate_password(value)
        except DjangoValidationError as e:
            raise serializers.ValidationError(list(e.messages))
        return value

    def validate_role(self, value):
        if value not in self.SELF_ASSIGNABLE_ROLES:
            raise serializers.ValidationError(
                f"Role must be one of: {', '.join(self.SELF_ASSIGNABLE_ROLES)}."
            )
        return value

    def validate(self, attrs):
        if attrs.get('password') != attrs.get('confirm_password'):
            raise serializers.ValidationError({
                'confirm_password': 'Password confirmation does not match.'
            })
        return attrs

    def create(self, validated_data):
        validated_data.pop('confirm_password', None)
        password = validated_data.pop('password')
        return User.objects.create_user(password=password, **validated_data)


class LoginSerializer(serializers.Serializer):
    """
    Serializer for user login with email and password.

    Actual authentication happens in the view.
    """
    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        style={'input_type': 'password'}
    )


def _avatar_url(serializer, user):
    if not user.avatar:
        return None
    request = serializer.context.get('request')
    if request is not None:
        return request.build_absolute_uri(user.avatar.url)
    return user.avatar.url


class UserSummarySerializer(serializers.ModelSerializer):
    """Public view of an account, embedded in listings, orders and reviews."""

    avatar_url = serializers.SerializerMethodField()
    ratings = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'username', 'avatar_url', 'location', 'ratings']
        read_only_fields = fields

    def get_avatar_url(self, obj):
        return _avatar_url(self, obj)

    def get_ratings(self, obj):
        return obj.ratings


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Full profile of an account. Excludes password and permission flags.
    """

    avatar_url = serializers.SerializerMethodField()
    ratings = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'username', 'role', 'status', 'bio', 'location',
                  'avatar_url', 'ratings', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_avatar_url(self, obj):
        return _avatar_url(self, obj)

    def get_ratings(self, obj):
        return obj.ratings


class UserProfileUpdateSerializer(serializers.ModelSerializer):
    """
    Serializer for profile updates (PUT/PATCH).

    Rules, based on the requesting user:
    - username must stay unique
    - role may be switched between buyer, seller and both; only admins grant admin
    - status can only be changed by admins
    """

    class Meta:
        model = User
        fields = ['username', 'bio', 'location', 'avatar', 'role', 'status']
        extra_kwargs = {field: {'required': False} for field in fields}

    def _requester(self):
        request = self.context.get('request')
        return request.user if request is not None else None

    def _requester_is_admin(self):
        requester = self._requester()
        return has_capability(requester, None, 'moderate')

    def validate_username(self, value):
        value = value.strip()
        queryset = User.objects.filter(username__iexact=value)
        if self.instance is not None:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError("Username is already taken.")
        return value

    def validate_role(self, value):
        if value == User.ROLE_ADMIN and not self._requester_is_admin():
            raise serializers.ValidationError("Only administrators can grant the admin role.")
        return value

    def validate_status(self, value):
        if not self._requester_is_admin():
            raise serializers.ValidationError("Only administrators can change account status.")
        return value

    def update(self, instance, validated_data):
        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            instance.save(update_fields=fields_to_update + ['updated_at'])

        return instance


# ============================================================================
# Listing Serializers
# ============================================================================

class ProductSerializer(serializers.ModelSerializer):
    """Read representation of a listing."""

    seller = UserSummarySerializer(read_only=True)
    buyer_id = serializers.IntegerField(read_only=True, allow_null=True)
    ratings = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'title', 'description', 'price', 'category', 'condition',
                  'images', 'location', 'status', 'views', 'ratings', 'seller',
                  'buyer_id', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_ratings(self, obj):
        return obj.ratings


class ProductWriteSerializer(serializers.ModelSerializer):
    """
    Serializer for creating and editing listings.

    ``status`` and ``buyer`` are never writable here: they belong to the
    purchase and order flows.

    Validates:
    - title (1-100 chars) and description (1-1000 chars) not blank
    - price >= 0
    - images: 1 to ``SiteSetting.max_images_per_product`` non-empty references
    - no banned words in title or description
    """

    images = serializers.ListField(
        child=serializers.CharField(max_length=500),
        allow_empty=False,
    )

    class Meta:
        model = Product
        fields = ['id', 'title', 'description', 'price', 'category', 'condition',
                  'images', 'location']
        read_only_fields = ['id']

    def validate_title(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Title cannot be empty.")
        return value

    def validate_description(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Description cannot be empty.")
        if len(value) > 1000:
            raise serializers.ValidationError("Description cannot exceed 1000 characters.")
        return value

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative.")
        return value

    def validate_images(self, value):
        limit = SiteSetting.load().max_images_per_product
        if len(value) > limit:
            raise serializers.ValidationError(f"A listing can have at most {limit} images.")
        return value

    def validate(self, attrs):
        banned_words = SiteSetting.load().banned_words
        errors = {}
        for field in ('title', 'description'):
            found = find_banned_words(attrs.get(field), banned_words)
            if found:
                errors[field] = f"Contains banned words: {', '.join(found)}."
        if errors:
            raise serializers.ValidationError(errors)
        return attrs

    def create(self, validated_data):
        product = Product(seller=self.context['request'].user, **validated_data)
        product.save()
        return product

    def update(self, instance, validated_data):
        # Only the edited columns are written so a concurrent status change is kept
        fields_to_update = []
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
            fields_to_update.append(attr)

        if fields_to_update:
            instance.save(update_fields=fields_to_update + ['updated_at'])

        return instance


class ProductBriefSerializer(serializers.ModelSerializer):
    cover_image = serializers.SerializerMethodField()

    class Meta:
        model = Product
        fields = ['id', 'title', 'price', 'status', 'cover_image']
        read_only_fields = fields

    def get_cover_image(self, obj):
        return obj.images[0] if obj.images else None


# ============================================================================
# Order Serializers
# ============================================================================

class ShippingAddressSerializer(serializers.Serializer):
    street = serializers.CharField(max_length=200)
    city = serializers.CharField(max_length=100)
    state = serializers.CharField(max_length=100)
    zip_code = serializers.CharField(max_length=20)
    country = serializers.CharField(max_length=100, required=False, allow_blank=True, default='')


class OrderSerializer(serializers.ModelSerializer):
    """Read representation of an order, with its parties and shipping address."""

    product = ProductBriefSerializer(read_only=True)
    buyer = UserSummarySerializer(read_only=True)
    seller = UserSummarySerializer(read_only=True)
    shipping_address = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = ['id', 'product', 'buyer', 'seller', 'amount', 'status', 'payment_status',
                  'shipping_address', 'tracking_number', 'notes', 'confirmed_at',
                  'shipped_at', 'completed_at', 'cancelled_at', 'created_at', 'updated_at']
        read_only_fields = fields

    def get_shipping_address(self, obj):
        return obj.shipping_address


class OrderCreateSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(min_value=1)
    shipping_address = ShippingAddressSerializer()
    notes = serializers.CharField(required=False, allow_blank=True, default='', max_length=1000)


class OrderShipSerializer(serializers.Serializer):
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=100)


# ============================================================================
# Review Serializers
# ============================================================================

def _check_rating(value):
    if isinstance(value, bool) or not isinstance(value, int):
        raise serializers.ValidationError("Rating must be an integer.")
    if value < 1 or value > 5:
        raise serializers.ValidationError("Rating must be between 1 and 5.")
    return value


def _check_comment(value):
    value = value.strip()
    if not value:
        raise serializers.ValidationError("Comment cannot be empty.")
    return value


class ReviewSerializer(serializers.ModelSerializer):
    """Read representation of a review."""

    author = UserSummarySerializer(read_only=True)
    product = ProductBriefSerializer(read_only=True)
    seller_id = serializers.IntegerField(read_only=True)

    class Meta:
        model = Review
        fields = ['id', 'product', 'author', 'seller_id', 'rating', 'comment',
                  'review_type', 'created_at', 'updated_at']
        read_only_fields = fields


class ReviewCreateSerializer(serializers.Serializer):
    """
    Input for creating a review.

    Fields:
    - product_id: Required, the product being reviewed
    - rating: Required, integer from 1-5
    - comment: Required, 1-500 characters
    - review_type: Optional, product (default) or seller
    """

    product_id = serializers.IntegerField(min_value=1)
    rating = serializers.IntegerField()
    comment = serializers.CharField(max_length=500)
    review_type = serializers.ChoiceField(
        choices=Review.REVIEW_TYPE_CHOICES,
        required=False,
        default=Review.TYPE_PRODUCT,
    )

    def validate_rating(self, value):
        return _check_rating(value)

    def validate_comment(self, value):
        return _check_comment(value)


class ReviewUpdateSerializer(serializers.Serializer):
    """
    Input for editing a review. At least one of rating and comment is required.
    """

    rating = serializers.IntegerField(required=False)
    comment = serializers.CharField(required=False, max_length=500)

    def validate_rating(self, value):
        return _check_rating(value)

    def validate_comment(self, value):
        return _check_comment(value)

    def validate(self, attrs):
        if 'rating' not in attrs and 'comment' not in attrs:
            raise serializers.ValidationError("Provide a rating or a comment to update.")
        return attrs


# ============================================================================
# Notifications, Settings and Admin Serializers
# ============================================================================

class NotificationSerializer(serializers.Serializer):
    id = serializers.IntegerField()
    title = serializers.CharField()
    message = serializers.CharField()
    type = serializers.CharField()
    data = serializers.DictField()
    read = serializers.BooleanField()
    created_at = serializers.DateTimeField()


class SiteSettingSerializer(serializers.ModelSerializer):
    featured_categories = serializers.ListField(
        child=serializers.ChoiceField(choices=Product.CATEGORY_CHOICES),
        required=False,
    )
    banned_words = serializers.ListField(
        child=serializers.CharField(max_length=100),
        required=False,
    )

    class Meta:
        model = SiteSetting
        fields = ['site_name', 'allow_registration', 'require_email_verification',
                  'enable_reviews', 'max_images_per_product', 'max_file_size_mb',
                  'commission_rate', 'auto_approve_products', 'enable_escrow',
                  'maintenance_mode', 'featured_categories', 'banned_words', 'updated_at']
        read_only_fields = ['updated_at']


class AdminUserSerializer(UserProfileSerializer):
    product_count = serializers.SerializerMethodField()

    class Meta(UserProfileSerializer.Meta):
        fields = UserProfileSerializer.Meta.fields + ['is_active', 'last_login', 'product_count']
        read_only_fields = fields

    def get_product_count(self, obj):
        count = getattr(obj, 'product_count', None)
        return count if count is not None else obj.listings.count()


class AdminUserRoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.ROLE_CHOICES)


class AdminUserStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=User.STATUS_CHOICES)


class AdminProductStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[
        (Product.STATUS_AVAILABLE, 'Available'),
        (Product.STATUS_SUSPENDED, 'Suspended'),
    ])
