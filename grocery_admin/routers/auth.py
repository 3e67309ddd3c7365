# grocery_admin/routers/auth.py
from fastapi import APIRouter, Depends
from sqlmodel import Session

from grocery_admin.core.auth import require_auth
from grocery_admin.database import get_session
from grocery_admin.models.user import User
from grocery_admin.routers.admin_users import service
from grocery_admin.schemas.user import LoginRequest, TokenResponse, UserRead

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
):
    """
    Exchange email + password for a bearer token.

    Updates last_login_at; inactive accounts are refused.
    """
    return service.login(session, payload)


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(require_auth)):
    """
    Return the authenticated user's profile.
    """
    return service.to_read(current_user)
