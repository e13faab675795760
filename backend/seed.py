"""
Sample data for a fresh database.

Seeding is idempotent: users are skipped when their email already exists and
the catalogue is only inserted into an empty product collection.

    python seed.py
"""
import logging

from pymongo.database import Database

from database import PRODUCTS, USERS, connect, create_document, ensure_indexes
from schemas import Address, Product as ProductSchema, User as UserSchema
from security import get_password_hash

logger = logging.getLogger(__name__)


def _seed_users():
    return [
        ("admin123", UserSchema(
            name="Admin User",
            email="admin@aypa.com",
            password_hash="",
            role="admin",
        )),
        ("password123", UserSchema(
            name="John Doe",
            email="john@example.com",
            password_hash="",
            phone="123-456-7890",
            address=Address(street="123 Main St", city="Anytown", state="CA", zip_code="12345", country="USA"),
        )),
        ("password123", UserSchema(
            name="Jane Smith",
            email="jane@example.com",
            password_hash="",
            phone="098-765-4321",
            address=Address(street="456 Oak Ave", city="Somewhere", state="NY", zip_code="67890", country="USA"),
        )),
    ]


def _seed_products():
    return [
        ProductSchema(
            name="Basic White T-Shirt",
            description="A comfortable white t-shirt made from premium cotton.",
            price=29.99,
            category="TShirt",
            image_urls=["https://source.unsplash.com/random?tshirt,white"],
            sizes=["S", "M", "L", "XL"],
            colors=["White"],
            brand="AYPA",
            stock=150,
            featured=True,
        ),
        ProductSchema(
            name="Custom Red T-Shirt",
            description="Vibrant red t-shirt perfect for customizing with your design.",
            price=34.99,
            category="TShirt",
            image_urls=["https://source.unsplash.com/random?tshirt,red"],
            sizes=["S", "M", "L", "XL", "XXL"],
            colors=["Red"],
            brand="AYPA",
            stock=75,
        ),
        ProductSchema(
            name="Blue ID Lace",
            description="Durable blue ID lace with customizable clip.",
            price=12.99,
            category="IDLaces",
            image_urls=["https://source.unsplash.com/random?lanyard,blue"],
            sizes=["One Size"],
            colors=["Blue"],
            brand="AYPA",
            stock=200,
            featured=True,
        ),
        ProductSchema(
            name="Black ID Lace",
            description="Professional black ID lace suitable for office use.",
            price=12.99,
            category="IDLaces",
            image_urls=["https://source.unsplash.com/random?lanyard,black"],
            sizes=["One Size"],
            colors=["Black"],
            brand="AYPA",
            stock=180,
        ),
        ProductSchema(
            name="Premium Hoodie",
            description="Warm, comfortable hoodie available in multiple colors.",
            price=49.99,
            category="TShirt",
            image_urls=["https://source.unsplash.com/random?hoodie"],
            sizes=["S", "M", "L", "XL"],
            colors=["Black", "Gray", "Navy"],
            brand="AYPA Premium",
            stock=60,
            featured=True,
        ),
    ]


def seed_database(db: Database) -> dict:
    created = {"users": 0, "products": 0}
    for password, user in _seed_users():
        if db[USERS].find_one({"email": user.email}):
            continue
        user.password_hash = get_password_hash(password)
        create_document(db, USERS, user)
        created["users"] += 1

    if db[PRODUCTS].count_documents({}) == 0:
        for product in _seed_products():
            create_document(db, PRODUCTS, product)
            created["products"] += 1

    logger.info("Seeded %(users)d users and %(products)d products", created)
    return created


if __name__ == "__main__":
    from config import Settings
    from log import setup_logging

    settings = Settings.from_env()
    setup_logging(settings.log_level)
    database = connect(settings)
    ensure_indexes(database)
    seed_database(database)
