# grocery_admin/routers/admin_users.py
from datetime import datetime

from fastapi import APIRouter, Depends, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlmodel import Session

from grocery_admin.core.auth import require_admin
from grocery_admin.core.config import get_settings
from grocery_admin.core.csv_export import csv_response
from grocery_admin.database import get_session
from grocery_admin.models.user import User
from grocery_admin.repositories.user_repo import UserRepository
from grocery_admin.schemas.user import (
    ActiveUsersResponse,
    NewUsersResponse,
    UserActionResult,
    UserBulkAction,
    UserBulkActionResult,
    UserCreate,
    UserFilters,
    UserListResponse,
    UserRead,
    UserUpdate,
)
from grocery_admin.services.user_service import EXPORT_HEADER, UserService

router = APIRouter(
    prefix="/admin/users",
    tags=["Admin Users"],
    dependencies=[Depends(require_admin)],
)

settings = get_settings()

repo = UserRepository()
service = UserService(repo)


def user_filters(
    search: str | None = None,
    role: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    activity_level: str | None = None,
    has_ordered: str | None = None,
    sort_by: str | None = None,
    sort_order: str | None = None,
    page: int = 1,
    per_page: int | None = None,
) -> UserFilters:
    """Listing query parameters with empty form fields dropped."""
    raw = {
        "search": search,
        "role": role,
        "date_from": date_from,
        "date_to": date_to,
        "activity_level": activity_level,
        "has_ordered": has_ordered,
        "sort_by": sort_by,
        "sort_order": sort_order,
    }
    values = {k: v.strip() for k, v in raw.items() if v is not None and v.strip()}
    values["page"] = page
    values["per_page"] = min(per_page or settings.USERS_PER_PAGE, settings.MAX_PER_PAGE)
    try:
        return UserFilters.model_validate(values)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors())


@router.get("", response_model=UserListResponse)
def list_users(
    filters: UserFilters = Depends(user_filters),
    session: Session = Depends(get_session),
):
    """
    All users, newest first (10 per page by default).
    """
    return service.list_users(session, filters)


@router.get("/active", response_model=ActiveUsersResponse)
def list_active_users(
    filters: UserFilters = Depends(user_filters),
    session: Session = Depends(get_session),
):
    """
    Active users with orders_count, total_spent and last_order_date.

    activity_level: high (10+ orders), medium (5-9), low (1-4), inactive (0)
    """
    return service.list_active(session, filters)


@router.get("/new", response_model=NewUsersResponse)
def list_new_users(
    filters: UserFilters = Depends(user_filters),
    session: Session = Depends(get_session),
):
    """
    Users registered in the last 30 days; has_ordered = yes | no.
    """
    return service.list_new(session, filters)


@router.post("/bulk-action", response_model=None)
def bulk_action(
    payload: UserBulkAction,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    """
    Apply one action to the selected users; `export` returns CSV.
    """
    if payload.action == "export":
        rows = service.export_selection(session, payload.user_ids)
        filename = f"users_{datetime.now():%Y-%m-%d_%H-%M-%S}.csv"
        return csv_response(filename, EXPORT_HEADER, rows)
    result: UserBulkActionResult = service.bulk_action(session, payload, current_user)
    return result.model_dump(mode="json")


@router.post("", response_model=UserActionResult, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    session: Session = Depends(get_session),
):
    return service.create_user(session, payload)


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    session: Session = Depends(get_session),
):
    """
    Get a specific user by id.
    """
    return service.get_user(session, user_id)


@router.put("/{user_id}", response_model=UserActionResult)
def update_user(
    user_id: int,
    payload: UserUpdate,
    session: Session = Depends(get_session),
):
    """
    Update a user; leave password empty to keep the current one.
    """
    return service.update_user(session, user_id, payload)


@router.delete("/{user_id}", response_model=UserActionResult)
def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_admin),
):
    """
    Delete a user. Refused for your own account and for users with orders.
    """
    return service.delete_user(session, user_id, current_user)
