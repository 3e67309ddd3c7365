# grocery_admin/seeders.py
"""
Development data: roles & permissions, the admin account, sample buyers,
categories, a product catalog and (optionally) sample orders.

Every seeder is get-or-create, so running them twice changes nothing.
"""
import logging
import random

from sqlalchemy import func
from sqlmodel import Session, select

from grocery_admin.core.auth import hash_password
from grocery_admin.models.order import Order
from grocery_admin.models.product import Category, Product
from grocery_admin.models.user import User
from grocery_admin.repositories.order_repo import OrderRepository
from grocery_admin.repositories.product_repo import ProductRepository
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.schemas.order import OrderCreate, OrderStatusUpdate
from grocery_admin.services import order_workflow as wf
from grocery_admin.services.order_service import OrderService

logger = logging.getLogger(__name__)

user_repo = UserRepository()
product_repo = ProductRepository()
order_repo = OrderRepository()

PERMISSIONS = ["manage products", "manage orders", "view orders", "manage users"]

ADMIN_EMAIL = "admin@grocery.com"
ADMIN_PASSWORD = "password"
BUYER_PASSWORD = "password123"

SAMPLE_BUYERS = [
    ("Abi", "abi@example.com"),
    ("Jane Smith", "jane.smith@example.com"),
    ("Ahmad Rahman", "ahmad.rahman@example.com"),
    ("Siti Nurhaliza", "siti.nurhaliza@example.com"),
    ("Budi Santoso", "budi.santoso@example.com"),
    ("Maria Garcia", "maria.garcia@example.com"),
    ("David Wilson", "david.wilson@example.com"),
    ("Lisa Anderson", "lisa.anderson@example.com"),
    ("Michael Brown", "michael.brown@example.com"),
    ("Sarah Johnson", "sarah.johnson@example.com"),
]
GENERATED_BUYERS = 15

FIRST_NAMES = ["Dewi", "Rizky", "Putri", "Agus", "Rina", "Hendra", "Wulan", "Fajar", "Intan", "Yusuf"]
LAST_NAMES = ["Pratama", "Wijaya", "Saputra", "Lestari", "Hidayat", "Kusuma", "Nugroho", "Permata"]

CATEGORIES = [
    "Beras & Biji-bijian",
    "Daging & Unggas",
    "Ikan & Seafood",
    "Sayuran Segar",
    "Buah-buahan",
    "Susu & Produk Olahan",
    "Roti & Bakery",
    "Minuman",
    "Makanan Instan",
    "Bumbu & Rempah",
    "Perawatan Tubuh",
    "Pembersih Rumah",
]

PRODUCT_NAMES = [
    "Beras Premium 5kg",
    "Minyak Goreng Tropical 2L",
    "Gula Pasir 1kg",
    "Telur Ayam Fresh 1kg",
    "Daging Sapi Segar 500g",
    "Ayam Broiler Segar 1kg",
    "Ikan Salmon Fresh 300g",
    "Udang Segar 250g",
    "Wortel Organik 500g",
    "Bayam Segar 250g",
    "Tomat Cherry 200g",
    "Kentang 1kg",
    "Bawang Merah 500g",
    "Bawang Putih 250g",
    "Cabai Merah 200g",
    "Apel Fuji 1kg",
    "Jeruk Manis 1kg",
    "Pisang Cavendish 1kg",
    "Mangga Harum Manis 500g",
    "Anggur Merah 500g",
    "Susu UHT Full Cream 1L",
    "Yogurt Greek 200ml",
    "Keju Cheddar 200g",
    "Mentega Unsalted 200g",
    "Roti Tawar Gandum",
    "Mie Instan Ayam Bawang",
    "Kopi Arabica 200g",
    "Teh Hijau Premium 100g",
    "Air Mineral 600ml",
    "Jus Jeruk 250ml",
    "Sabun Mandi Herbal",
    "Shampoo Anti Ketombe",
    "Pasta Gigi Fluoride",
    "Tissue Wajah 200 lembar",
    "Deterjen Cair 1L",
]

DESCRIPTIONS = [
    "Produk berkualitas tinggi dengan standar premium",
    "Segar dan higienis, langsung dari sumber terpercaya",
    "Organik dan bebas pestisida untuk kesehatan keluarga",
    "Dipilih khusus untuk memenuhi kebutuhan harian Anda",
    "Kualitas terbaik dengan harga yang terjangkau",
]

# name suffix -> (count, overrides); overrides are (min, max) ranges or fixed values
SPECIAL_PRODUCTS: dict[str, tuple[int, dict]] = {
    "Stok Banyak": (5, {"is_active": True, "stock": (100, 500)}),
    "Habis": (3, {"stock": 0}),
    "Stok Menipis": (5, {"stock": (1, 10)}),
    "Premium": (3, {"price": (100000, 1000000)}),
    "Hemat": (10, {"price": (1000, 25000)}),
}


def seed_roles_and_permissions(session: Session) -> None:
    """Roles admin (all permissions) and buyer (none)."""
    admin = user_repo.get_or_create_role(session, "admin")
    user_repo.get_or_create_role(session, "buyer")
    for name in PERMISSIONS:
        user_repo.grant(session, admin, user_repo.get_or_create_permission(session, name))
    session.commit()


def _get_or_create_user(session: Session, name: str, email: str, password: str, role: str) -> User:
    user = user_repo.get_by_email(session, email)
    if user is None:
        user = User(
            name=name,
            email=email,
            hashed_password=hash_password(password),
            role=role,
            is_active=True,
        )
        session.add(user)
        session.flush()
    return user


def seed_admin_user(session: Session) -> User:
    admin = _get_or_create_user(session, "Admin", ADMIN_EMAIL, ADMIN_PASSWORD, "admin")
    session.commit()
    return admin


def seed_buyers(session: Session, rng: random.Random) -> list[User]:
    """
    The named sample buyers plus generated ones (buyer01@example.com, ...).
    """
    buyers = [
        _get_or_create_user(session, name, email, BUYER_PASSWORD, "buyer")
        for name, email in SAMPLE_BUYERS
    ]
    for n in range(1, GENERATED_BUYERS + 1):
        name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
        user = _get_or_create_user(session, name, f"buyer{n:02d}@example.com", BUYER_PASSWORD, "buyer")
        if user.phone is None:
            user.phone = f"08{rng.randint(1000000000, 9999999999)}"
            session.add(user)
        buyers.append(user)
    session.commit()
    logger.info("Seeded %d buyers", len(buyers))
    return buyers


def seed_categories(session: Session) -> list[Category]:
    categories = [product_repo.get_or_create_category(session, name) for name in CATEGORIES]
    session.commit()
    return categories


def _value(rng: random.Random, spec):
    if isinstance(spec, tuple):
        return rng.randint(*spec)
    return spec


def _make_product(rng: random.Random, name: str, category: Category, overrides: dict) -> Product:
    fields = {
        "description": rng.choice(DESCRIPTIONS),
        "price": rng.randint(5000, 500000),
        "stock": rng.randint(0, 200),
        "is_active": rng.random() < 0.85,
    }
    fields.update({k: _value(rng, v) for k, v in overrides.items()})
    return Product(name=name, category_id=category.id, **fields)


def seed_products(session: Session, rng: random.Random) -> int:
    """
    3-8 products per category plus the special sets (high stock, out of
    stock, low stock, expensive, cheap). Skipped when the catalog already
    has products.
    """
    existing = session.exec(select(func.count(Product.id))).one()
    if existing:
        return int(existing)

    categories = seed_categories(session)
    created = 0
    for category in categories:
        for _ in range(rng.randint(3, 8)):
            name = f"{rng.choice(PRODUCT_NAMES)} {created + 1:03d}"
            product_repo.create(session, _make_product(rng, name, category, {}))
            created += 1

    for suffix, (count, overrides) in SPECIAL_PRODUCTS.items():
        for _ in range(count):
            name = f"{rng.choice(PRODUCT_NAMES)} {suffix} {created + 1:03d}"
            product_repo.create(session, _make_product(rng, name, rng.choice(categories), overrides))
            created += 1

    session.commit()
    logger.info("Seeded %d products", created)
    return created


# Status paths followed by sample orders
SAMPLE_PATHS = [
    [],
    [wf.PROCESSING],
    [wf.PROCESSING, wf.SHIPPED],
    [wf.PROCESSING, wf.SHIPPED, wf.DELIVERED],
    [wf.CANCELLED],
]


def seed_sample_orders(session: Session, rng: random.Random, count: int = 30) -> int:
    """
    Orders placed through OrderService so prices, totals, stock and order
    numbers follow the same rules as admin-created orders. Skipped when
    orders exist.
    """
    existing = session.exec(select(func.count(Order.id))).one()
    if existing:
        return int(existing)

    service = OrderService(order_repo, product_repo, user_repo)
    buyers, _ = user_repo.list_users(session, skip=0, limit=1000, role="buyer", only_active=True)
    products = [
        p
        for p, _ in product_repo.list_with_category(session, only_active=True)
        if p.stock >= 5
    ]
    if not buyers or not products:
        return 0

    created = 0
    for _ in range(count):
        buyer = rng.choice(buyers)
        picks = [
            p for p in rng.sample(products, k=min(len(products), rng.randint(1, 4))) if p.stock >= 2
        ]
        if not picks:
            continue
        payload = OrderCreate(
            user_id=buyer.id,
            items=[{"product_id": p.id, "quantity": rng.randint(1, 2)} for p in picks],
            shipping_address=f"Jl. Merdeka No. {rng.randint(1, 200)}, Jakarta",
            shipping_cost=float(rng.choice([0, 10000, 15000, 20000])),
        )
        result = service.create_order(session, payload)
        for target in rng.choice(SAMPLE_PATHS):
            service.update_status(session, result.order.id, OrderStatusUpdate(status=target))
        created += 1

    logger.info("Seeded %d sample orders", created)
    return created


def run_all(session: Session, rng: random.Random | None = None, with_orders: bool = False) -> None:
    rng = rng or random.Random()
    seed_roles_and_permissions(session)
    seed_admin_user(session)
    seed_buyers(session, rng)
    seed_categories(session)
    seed_products(session, rng)
    if with_orders:
        seed_sample_orders(session, rng)
    logger.info("Seeding finished")
