# shopstar/routers/auth.py
from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from shopstar.core.auth import get_current_user
from shopstar.core.config import Settings, get_app_settings
from shopstar.database import get_session
from shopstar.models.user import User
from shopstar.repositories.cart_repo import CartRepository
from shopstar.repositories.user_repo import UserRepository
from shopstar.schemas.user import AuthResponse, LoginRequest, RegisterRequest, UserRead
from shopstar.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["Auth"])

service = UserService(UserRepository(), CartRepository())


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    """
    Create a customer account and return a bearer token.
    """
    user, token = service.register(session, settings, payload)
    return AuthResponse(
        token=token,
        user=UserRead.model_validate(user),
        message="User registered successfully",
    )


@router.post("/login", response_model=AuthResponse)
def login(
    payload: LoginRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_app_settings),
):
    user, token = service.login(session, settings, payload)
    return AuthResponse(
        token=token,
        user=UserRead.model_validate(user),
        message="Login successful",
    )


@router.get("/me", response_model=UserRead)
def read_me(current_user: User = Depends(get_current_user)):
    """
    Return the authenticated user's profile.
    """
    return current_user
