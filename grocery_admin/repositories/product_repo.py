# grocery_admin/repositories/product_repo.py
from sqlmodel import Session, select

from grocery_admin.models.product import Category, Product


class ProductRepository:
    """
    Data access layer for Product & Category.

    - Pure DB operations (queries + get-or-create used by seeders).
    - No FastAPI, no business logic.
    """

    # ----- Products -----

    def get_by_id(self, session: Session, product_id: int) -> Product | None:
        return session.get(Product, product_id)

    def get_many(self, session: Session, product_ids: list[int]) -> dict[int, Product]:
        if not product_ids:
            return {}
        stmt = select(Product).where(Product.id.in_(set(product_ids)))
        return {p.id: p for p in session.exec(stmt).all()}

    def list_with_category(
        self,
        session: Session,
        only_active: bool = True,
        category_id: int | None = None,
    ) -> list[tuple[Product, str | None]]:
        """Products joined with their category name, ordered by name."""
        stmt = select(Product, Category.name).join(
            Category, Category.id == Product.category_id, isouter=True
        )
        if only_active:
            stmt = stmt.where(Product.is_active == True)  # noqa: E712
        if category_id is not None:
            stmt = stmt.where(Product.category_id == category_id)
        stmt = stmt.order_by(Product.name, Product.id)
        return list(session.exec(stmt).all())

    def get_by_name(self, session: Session, name: str) -> Product | None:
        stmt = select(Product).where(Product.name == name)
        return session.exec(stmt).first()

    def create(self, session: Session, product: Product) -> Product:
        session.add(product)
        session.flush()
        return product

    # ----- Categories -----

    def list_categories(self, session: Session) -> list[Category]:
        return list(session.exec(select(Category).order_by(Category.name)).all())

    def get_or_create_category(self, session: Session, name: str) -> Category:
        category = session.exec(select(Category).where(Category.name == name)).first()
        if category is None:
            category = Category(name=name)
            session.add(category)
            session.flush()
        return category
