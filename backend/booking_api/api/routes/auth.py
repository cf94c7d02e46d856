"""
Authentication endpoints: register and login.
"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.api.rate_limit import check_login_allowed, record_login_failure
from booking_api.core.exceptions import AuthenticationError
from booking_api.core.security import create_access_token
from booking_api.db.session import get_db
from booking_api.schemas.user import UserCreate, UserResponse, UserLogin, Token
from booking_api.services.auth_service import register_user, authenticate_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=Token, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a new user account and sign it in."""
    user = await register_user(db, user_data)
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return Token(access_token=token, user=UserResponse.model_validate(user))


@router.post("/login", response_model=Token, dependencies=[Depends(check_login_allowed)])
async def login(login_data: UserLogin, request: Request, db: AsyncSession = Depends(get_db)):
    """Authenticate and receive a JWT access token. Failed attempts count toward a per-IP limit."""
    try:
        user, token = await authenticate_user(db, login_data)
    except AuthenticationError:
        await record_login_failure(request)
        raise
    return Token(access_token=token, user=UserResponse.model_validate(user))
