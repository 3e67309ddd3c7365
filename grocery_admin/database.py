# grocery_admin/database.py
from sqlmodel import SQLModel, create_engine, Session

from grocery_admin.core.config import get_settings

settings = get_settings()


def build_database_url(url: str, sslmode: str | None) -> str:
    """
    Append sslmode to Postgres URLs that don't already set it.

    SQLite URLs are returned untouched.
    """
    if not url.startswith("postgres") or not sslmode or "sslmode=" in url:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}sslmode={sslmode}"


db_url = build_database_url(settings.DATABASE_URL, settings.DATABASE_SSLMODE)

if db_url.startswith("sqlite"):
    # FastAPI runs sync endpoints in a threadpool
    engine = create_engine(
        db_url,
        echo=settings.DATABASE_ECHO,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        db_url,
        echo=settings.DATABASE_ECHO,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=5,
    )


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup and by the seed script.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
