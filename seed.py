# seed.py
import logging
import random
import sys

from sqlmodel import Session

from grocery_admin.database import create_db_and_tables, engine
from grocery_admin.models import order as _order_models  # noqa: F401
from grocery_admin.models import product as _product_models  # noqa: F401
from grocery_admin.models import user as _user_models  # noqa: F401
from grocery_admin.seeders import ADMIN_EMAIL, ADMIN_PASSWORD, run_all


def main():
    logging.basicConfig(level=logging.INFO)
    with_orders = "--with-orders" in sys.argv
    print("Seeding database...")

    create_db_and_tables()
    with Session(engine) as session:
        run_all(session, random.Random(42), with_orders=with_orders)

    print(f"Done. Admin login: {ADMIN_EMAIL} / {ADMIN_PASSWORD}")


if __name__ == "__main__":
    main()
