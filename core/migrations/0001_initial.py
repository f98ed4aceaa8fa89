import core.models
import core.validators
import django.contrib.auth.models
import django.contrib.auth.validators
import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('auth', '0012_alter_user_first_name_max_length'),
    ]

    operations = [
        migrations.CreateModel(
            name='User',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('password', models.CharField(max_length=128, verbose_name='password')),
                ('last_login', models.DateTimeField(blank=True, null=True, verbose_name='last login')),
                ('is_superuser', models.BooleanField(default=False, help_text='Designates that this user has all permissions without explicitly assigning them.', verbose_name='superuser status')),
                ('username', models.CharField(error_messages={'unique': 'A user with that username already exists.'}, help_text='Required. 150 characters or fewer. Letters, digits and @/./+/-/_ only.', max_length=150, unique=True, validators=[django.contrib.auth.validators.UnicodeUsernameValidator()], verbose_name='username')),
                ('first_name', models.CharField(blank=True, max_length=150, verbose_name='first name')),
                ('last_name', models.CharField(blank=True, max_length=150, verbose_name='last name')),
                ('is_staff', models.BooleanField(default=False, help_text='Designates whether the user can log into this admin site.', verbose_name='staff status')),
                ('is_active', models.BooleanField(default=True, help_text='Designates whether this user should be treated as active. Unselect this instead of deleting accounts.', verbose_name='active')),
                ('date_joined', models.DateTimeField(default=django.utils.timezone.now, verbose_name='date joined')),
                ('email', models.EmailField(error_messages={'unique': 'A user with that email already exists.'}, help_text='Required. Enter a valid email address.', max_length=254, unique=True, verbose_name='email address')),
                ('role', models.CharField(choices=[('buyer', 'Buyer'), ('seller', 'Seller'), ('both', 'Buyer & Seller'), ('admin', 'Administrator')], default='buyer', help_text='Marketplace role of the account.', max_length=10, verbose_name='role')),
                ('status', models.CharField(choices=[('active', 'Active'), ('suspended', 'Suspended'), ('banned', 'Banned')], default='active', help_text='Moderation state of the account. Managed by administrators.', max_length=10, verbose_name='account status')),
                ('avatar', models.ImageField(blank=True, help_text='Optional. Upload a profile picture (max 5MB, formats: jpg, png, webp).', null=True, upload_to=core.models.user_avatar_upload_path, validators=[core.validators.validate_avatar_image], verbose_name='avatar')),
                ('bio', models.CharField(blank=True, default='', max_length=500, verbose_name='bio')),
                ('location', models.CharField(blank=True, default='', max_length=100, verbose_name='location')),
                ('rating_average', models.FloatField(default=0.0, help_text='Mean rating of all reviews received as a seller.', verbose_name='seller rating average')),
                ('rating_count', models.PositiveIntegerField(default=0, help_text='Number of reviews received as a seller.', verbose_name='seller rating count')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('groups', models.ManyToManyField(blank=True, help_text='The groups this user belongs to. A user will get all permissions granted to each of their groups.', related_name='user_set', related_query_name='user', to='auth.group', verbose_name='groups')),
                ('user_permissions', models.ManyToManyField(blank=True, help_text='Specific permissions for this user.', related_name='user_set', related_query_name='user', to='auth.permission', verbose_name='user permissions')),
            ],
            options={
                'verbose_name': 'user',
                'verbose_name_plural': 'users',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['email'], name='core_user_email_idx'),
                    models.Index(fields=['role'], name='core_user_role_idx'),
                    models.Index(fields=['status'], name='core_user_status_idx'),
                ],
            },
            managers=[
                ('objects', django.contrib.auth.models.UserManager()),
            ],
        ),
        migrations.CreateModel(
            name='Product',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(max_length=100, verbose_name='title')),
                ('description', models.TextField(validators=[django.core.validators.MaxLengthValidator(1000)], verbose_name='description')),
                ('price', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'), message='Price cannot be negative.')], verbose_name='price')),
                ('category', models.CharField(choices=[('Electronics', 'Electronics'), ('Clothing', 'Clothing'), ('Home & Garden', 'Home & Garden'), ('Sports', 'Sports'), ('Books', 'Books'), ('Automotive', 'Automotive'), ('Health & Beauty', 'Health & Beauty'), ('Toys', 'Toys'), ('Other', 'Other')], max_length=20, verbose_name='category')),
                ('condition', models.CharField(choices=[('new', 'New'), ('like-new', 'Like New'), ('good', 'Good'), ('fair', 'Fair'), ('poor', 'Poor')], max_length=10, verbose_name='condition')),
                ('images', models.JSONField(default=list, help_text='Ordered list of image references; the first one is the cover image', validators=[core.validators.validate_image_references], verbose_name='images')),
                ('location', models.CharField(blank=True, default='', max_length=100, verbose_name='location')),
                ('status', models.CharField(choices=[('available', 'Available'), ('pending', 'Pending'), ('sold', 'Sold'), ('suspended', 'Suspended')], default='available', max_length=10, verbose_name='status')),
                ('views', models.PositiveIntegerField(default=0, verbose_name='views')),
                ('rating_average', models.FloatField(default=0.0, verbose_name='rating average')),
                ('rating_count', models.PositiveIntegerField(default=0, verbose_name='rating count')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('buyer', models.ForeignKey(blank=True, help_text='Buyer holding the product while pending or sold', null=True, on_delete=django.db.models.deletion.PROTECT, related_name='purchases', to=settings.AUTH_USER_MODEL)),
                ('seller', models.ForeignKey(help_text='User selling this product', on_delete=django.db.models.deletion.CASCADE, related_name='listings', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'product',
                'verbose_name_plural': 'products',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['seller'], name='core_product_seller_idx'),
                    models.Index(fields=['status'], name='core_product_status_idx'),
                    models.Index(fields=['category'], name='core_product_category_idx'),
                    models.Index(fields=['price'], name='core_product_price_idx'),
                    models.Index(fields=['-created_at'], name='core_product_created_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(('price__gte', 0)), name='product_price_non_negative'),
                    models.CheckConstraint(condition=models.Q(models.Q(('buyer__isnull', False), ('status__in', ['pending', 'sold'])), models.Q(('buyer__isnull', True), ('status__in', ['available', 'suspended'])), _connector='OR'), name='product_buyer_matches_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('amount', models.DecimalField(decimal_places=2, max_digits=10, validators=[django.core.validators.MinValueValidator(Decimal('0.00'))], verbose_name='amount')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('shipped', 'Shipped'), ('delivered', 'Delivered'), ('completed', 'Completed'), ('cancelled', 'Cancelled'), ('disputed', 'Disputed')], default='pending', max_length=10, verbose_name='status')),
                ('payment_status', models.CharField(choices=[('pending', 'Pending'), ('escrowed', 'Escrowed'), ('released', 'Released'), ('refunded', 'Refunded')], default='pending', max_length=10, verbose_name='payment status')),
                ('shipping_street', models.CharField(max_length=200, verbose_name='street')),
                ('shipping_city', models.CharField(max_length=100, verbose_name='city')),
                ('shipping_state', models.CharField(max_length=100, verbose_name='state')),
                ('shipping_zip_code', models.CharField(max_length=20, verbose_name='zip code')),
                ('shipping_country', models.CharField(blank=True, default='', max_length=100, verbose_name='country')),
                ('tracking_number', models.CharField(blank=True, default='', max_length=100, verbose_name='tracking number')),
                ('notes', models.TextField(blank=True, default='', verbose_name='notes')),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('shipped_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('buyer', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders_placed', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders', to='core.product')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='orders_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'order',
                'verbose_name_plural': 'orders',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['buyer'], name='core_order_buyer_idx'),
                    models.Index(fields=['seller'], name='core_order_seller_idx'),
                    models.Index(fields=['product'], name='core_order_product_idx'),
                    models.Index(fields=['status'], name='core_order_status_idx'),
                ],
                'constraints': [
                    models.CheckConstraint(condition=models.Q(models.Q(('payment_status', 'released'), _negated=True), ('status', 'completed'), _connector='OR'), name='order_released_implies_completed'),
                    models.CheckConstraint(condition=models.Q(models.Q(('payment_status', 'refunded'), _negated=True), ('status', 'cancelled'), _connector='OR'), name='order_refunded_implies_cancelled'),
                    models.UniqueConstraint(condition=models.Q(('status__in', ['completed', 'cancelled']), _negated=True), fields=('product',), name='unique_active_order_per_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Review',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rating', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(1, message='Rating must be at least 1.'), django.core.validators.MaxValueValidator(5, message='Rating must be at most 5.')], verbose_name='rating')),
                ('comment', models.CharField(max_length=500, verbose_name='comment')),
                ('review_type', models.CharField(choices=[('product', 'Product'), ('seller', 'Seller')], default='product', max_length=10, verbose_name='review type')),
                ('created_at', models.DateTimeField(auto_now_add=True, verbose_name='created at')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('author', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_written', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews', to='core.product')),
                ('seller', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='reviews_received', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'review',
                'verbose_name_plural': 'reviews',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['product'], name='core_review_product_idx'),
                    models.Index(fields=['seller'], name='core_review_seller_idx'),
                    models.Index(fields=['author'], name='core_review_author_idx'),
                    models.Index(fields=['rating'], name='core_review_rating_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('product', 'author'), name='unique_review_per_product_author'),
                    models.CheckConstraint(condition=models.Q(('rating__gte', 1), ('rating__lte', 5)), name='review_rating_between_1_and_5'),
                ],
            },
        ),
        migrations.CreateModel(
            name='SiteSetting',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('site_name', models.CharField(default='Marketplace', max_length=100)),
                ('allow_registration', models.BooleanField(default=True)),
                ('require_email_verification', models.BooleanField(default=False)),
                ('enable_reviews', models.BooleanField(default=True)),
                ('max_images_per_product', models.PositiveSmallIntegerField(default=5, validators=[django.core.validators.MinValueValidator(1)])),
                ('max_file_size_mb', models.PositiveSmallIntegerField(default=5)),
                ('commission_rate', models.DecimalField(decimal_places=2, default=Decimal('5.00'), max_digits=5, validators=[django.core.validators.MinValueValidator(Decimal('0.00')), django.core.validators.MaxValueValidator(Decimal('100.00'))])),
                ('auto_approve_products', models.BooleanField(default=True)),
                ('enable_escrow', models.BooleanField(default=True)),
                ('maintenance_mode', models.BooleanField(default=False)),
                ('featured_categories', models.JSONField(blank=True, default=list)),
                ('banned_words', models.JSONField(blank=True, default=list)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'site setting',
                'verbose_name_plural': 'site settings',
            },
        ),
    ]
