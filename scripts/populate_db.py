import os
import random
import sys

import django
from faker import Faker

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set up Django environment
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'peer_marketplace.settings')
django.setup()

from core import listing_lifecycle, order_lifecycle, reviews  # noqa: E402
from core.exceptions import MarketplaceError  # noqa: E402
from core.models import Product, SiteSetting, User  # noqa: E402

fake = Faker()

CONDITIONS = [value for value, _label in Product.CONDITION_CHOICES]
CATEGORIES = [value for value, _label in Product.CATEGORY_CHOICES]


def create_users(num_buyers=15, num_sellers=8, num_dual=5):
    print(f"Creating {num_buyers} buyers, {num_sellers} sellers and {num_dual} dual-role users...")

    def make(role):
        email = fake.unique.email()
        return User.objects.create_user(
            username=f"{email.split('@')[0]}_{fake.unique.random_int(1000, 9999)}",
            email=email,
            password='password123',
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            role=role,
            bio=fake.sentence(nb_words=12),
            location=fake.city(),
        )

    buyers = [make(User.ROLE_BUYER) for _ in range(num_buyers)]
    sellers = [make(User.ROLE_SELLER) for _ in range(num_sellers)]
    dual = [make(User.ROLE_BOTH) for _ in range(num_dual)]

    if not User.objects.filter(role=User.ROLE_ADMIN).exists():
        User.objects.create_superuser(
            username='admin',
            email='admin@example.com',
            password='admin12345',
            role=User.ROLE_ADMIN,
        )
        print("Created admin account admin@example.com / admin12345")

    print(f"Created {len(buyers) + len(sellers) + len(dual)} users.")
    return buyers + dual, sellers + dual


def create_products(sellers, per_seller=(2, 6)):
    print("Creating product listings...")
    products = []

    for seller in sellers:
        for _ in range(random.randint(*per_seller)):
            product = Product(
                seller=seller,
                title=fake.catch_phrase()[:100],
                description=fake.paragraph(nb_sentences=4)[:1000],
                price=round(random.uniform(5, 800), 2),
                category=random.choice(CATEGORIES),
                condition=random.choice(CONDITIONS),
                images=[f"products/{fake.uuid4()}.jpg" for _ in range(random.randint(1, 4))],
                location=fake.city(),
            )
            product.save()
            products.append(product)

    print(f"Created {len(products)} products.")
    return products


def run_direct_purchases(buyers, products, count=15):
    """Buy some listings through the direct purchase flow; most are confirmed."""
    print("Running direct purchases...")
    sold = []

    for product in random.sample(products, min(count, len(products))):
        buyer = random.choice([b for b in buyers if b.pk != product.seller_id])
        try:
            listing_lifecycle.purchase_listing(product.pk, buyer)
            if random.random() < 0.8:
                sold.append(listing_lifecycle.confirm_purchase(product.pk, buyer))
        except MarketplaceError as e:
            print(f"  skipped product {product.pk}: {e.message}")

    print(f"Sold {len(sold)} products directly.")
    return sold


def run_orders(buyers, products, count=12):
    """Place escrow orders and move them through a random number of steps."""
    print("Creating escrow orders...")
    delivered = []
    available = [p for p in products if Product.objects.get(pk=p.pk).status == Product.STATUS_AVAILABLE]

    for product in random.sample(available, min(count, len(available))):
        buyer = random.choice([b for b in buyers if b.pk != product.seller_id])
        seller = product.seller
        address = {
            'street': fake.street_address(),
            'city': fake.city(),
            'state': fake.state(),
            'zip_code': fake.postcode(),
            'country': fake.country()[:100],
        }
        try:
            order = order_lifecycle.create_order(buyer, product.pk, address, notes=fake.sentence())
            steps = random.randint(0, 4)
            if steps == 0:
                order_lifecycle.cancel_order(order.pk, random.choice([buyer, seller]))
                continue
            if steps >= 2:
                order_lifecycle.confirm_order(order.pk, seller)
            if steps >= 3:
                order_lifecycle.ship_order(order.pk, seller, tracking_number=fake.bothify('TRK-########'))
            if steps >= 4:
                order_lifecycle.confirm_delivery(order.pk, buyer)
                delivered.append(Product.objects.get(pk=product.pk))
        except MarketplaceError as e:
            print(f"  skipped order for product {product.pk}: {e.message}")

    print(f"Completed {len(delivered)} orders.")
    return delivered


def create_reviews(sold_products):
    print("Creating reviews...")
    created = 0

    for product in sold_products:
        if random.random() < 0.3:
            continue
        buyer = User.objects.get(pk=product.buyer_id)
        reviews.submit_review(
            buyer,
            product.pk,
            rating=random.choices([1, 2, 3, 4, 5], weights=[1, 1, 2, 4, 5])[0],
            comment=fake.paragraph(nb_sentences=2)[:500],
            review_type=random.choice(['product', 'seller']),
        )
        created += 1

    print(f"Created {created} reviews.")


def main():
    print("Starting database population...")

    SiteSetting.load()
    buyers, sellers = create_users()
    products = create_products(sellers)
    sold = run_direct_purchases(buyers, products)
    sold += run_orders(buyers, products)
    create_reviews(sold)

    print("Database population completed successfully!")


if __name__ == '__main__':
    main()
