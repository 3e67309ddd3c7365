import random

from sqlalchemy import func
from sqlmodel import select

from grocery_admin.core.auth import verify_password
from grocery_admin.models.order import Order
from grocery_admin.models.product import Category, Product
from grocery_admin.models.user import User
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.seeders import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    CATEGORIES,
    GENERATED_BUYERS,
    PERMISSIONS,
    SAMPLE_BUYERS,
    run_all,
)
from grocery_admin.services import order_workflow as wf


def _count(session, column):
    return session.exec(select(func.count(column))).one()


def test_run_all_seeds_accounts_and_catalog(session):
    run_all(session, random.Random(0))

    admin = session.exec(select(User).where(User.email == ADMIN_EMAIL)).one()
    assert admin.role == "admin"
    assert verify_password(ADMIN_PASSWORD, admin.hashed_password)

    buyers = session.exec(select(User).where(User.role == "buyer")).all()
    assert len(buyers) == len(SAMPLE_BUYERS) + GENERATED_BUYERS

    assert sorted(c.name for c in session.exec(select(Category)).all()) == sorted(CATEGORIES)
    assert _count(session, Product.id) >= len(CATEGORIES) * 3

    assert UserRepository().permissions_for_role(session, "admin") == sorted(PERMISSIONS)
    assert UserRepository().permissions_for_role(session, "buyer") == []


def test_run_all_is_idempotent(session):
    run_all(session, random.Random(0))
    users, products = _count(session, User.id), _count(session, Product.id)

    run_all(session, random.Random(1))
    assert _count(session, User.id) == users
    assert _count(session, Product.id) == products
    assert _count(session, Category.id) == len(CATEGORIES)


def test_sample_orders_follow_the_workflow(session):
    run_all(session, random.Random(0), with_orders=True)

    orders = session.exec(select(Order)).all()
    assert orders
    assert {o.status for o in orders} <= set(wf.ORDER_STATUSES)
    assert all(o.order_number.startswith("ORD") for o in orders)
    for order in orders:
        if order.status == wf.DELIVERED:
            assert order.shipped_at is not None and order.delivered_at is not None

    run_all(session, random.Random(0), with_orders=True)
    assert _count(session, Order.id) == len(orders)
