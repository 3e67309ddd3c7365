# grocery_admin/main.py
from contextlib import asynccontextmanager
import logging

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI

from grocery_admin.core.config import get_settings
from grocery_admin.database import create_db_and_tables

# Import models so SQLModel metadata is populated before create_all()
from grocery_admin.models import user as _user_models  # noqa: F401
from grocery_admin.models import product as _product_models  # noqa: F401
from grocery_admin.models import order as _order_models  # noqa: F401

# Routers
from grocery_admin.routers.auth import router as auth_router
from grocery_admin.routers.admin_orders import router as admin_orders_router
from grocery_admin.routers.admin_users import router as admin_users_router
from grocery_admin.routers.admin_reports import router as admin_reports_router

settings = get_settings()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - No special cleanup needed for sync engine.
    """
    logger.info("Startup: connecting to database...")
    try:
        create_db_and_tables()
        logger.info("Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"Startup: DB connection FAILED: {e}")
        raise
    yield


app = FastAPI(
    title=settings.PROJECT_NAME or "Grocery Admin API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(admin_orders_router, prefix=settings.API_PREFIX)
app.include_router(admin_users_router, prefix=settings.API_PREFIX)
app.include_router(admin_reports_router, prefix=settings.API_PREFIX)


@app.get("/")
def root():
    """Health check endpoint."""
    return {"status": "ok", "service": "grocery-admin"}
