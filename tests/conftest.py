import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from grocery_admin.core.auth import create_access_token, hash_password
from grocery_admin.database import get_session
from grocery_admin.main import app
from grocery_admin.models.order import Order, OrderItem
from grocery_admin.models.product import Product
from grocery_admin.models.user import User
from grocery_admin.repositories.product_repo import ProductRepository


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def client(engine):
    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    # No context manager: the lifespan would create tables on the real database
    yield TestClient(app)
    app.dependency_overrides.clear()


# -------- Factories --------


@pytest.fixture
def make_user(session):
    def factory(
        name="Budi Santoso",
        email=None,
        role="buyer",
        password="password123",
        is_active=True,
        **fields,
    ):
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@mail.com",
            hashed_password=hash_password(password),
            role=role,
            is_active=is_active,
            **fields,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return factory


@pytest.fixture
def make_product(session):
    def factory(name="Beras Premium 5kg", price=50000.0, stock=100, category=None, **fields):
        category_id = None
        if category:
            cat = ProductRepository().get_or_create_category(session, category)
            session.commit()
            category_id = cat.id
        product = Product(name=name, price=price, stock=stock, category_id=category_id, **fields)
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return factory


@pytest.fixture
def make_order(session):
    counter = {"n": 0}

    def factory(user, status="pending", items=(), total_amount=None, order_number=None, **fields):
        counter["n"] += 1
        subtotal = sum(product.price * qty for product, qty in items)
        order = Order(
            order_number=order_number or f"ORD20250101{counter['n']:04d}",
            user_id=user.id,
            status=status,
            total_amount=subtotal if total_amount is None else total_amount,
            shipping_address="Jl. Merdeka No. 1, Jakarta",
            **fields,
        )
        session.add(order)
        session.commit()
        for product, qty in items:
            session.add(OrderItem(order_id=order.id, product_id=product.id, quantity=qty, price=product.price))
        session.commit()
        session.refresh(order)
        return order

    return factory


@pytest.fixture
def admin(make_user):
    return make_user(name="Admin", email="admin@grocery.id", role="admin", password="password")


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {create_access_token(admin)}"}


@pytest.fixture
def buyer(make_user):
    return make_user()
