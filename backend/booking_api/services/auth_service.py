"""
Authentication service handling user registration and login.
"""

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from booking_api.core.exceptions import AuthenticationError, ConflictError, PermissionDeniedError
from booking_api.models.user import User, UserRole
from booking_api.schemas.user import UserCreate, UserLogin
from booking_api.core.security import hash_password, verify_password, create_access_token
from booking_api.core.logging import get_logger

logger = get_logger(__name__)


def _normalize_email(email: str) -> str:
    return email.strip().lower()


async def register_user(db: AsyncSession, user_data: UserCreate) -> User:
    """
    Register a new user with hashed password.
    Raises 409 if the email already exists.
    """
    email = _normalize_email(user_data.email)

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        logger.warning("registration_failed", reason="email_exists", email=email)
        raise ConflictError("User already exists with this email")

    user = User(
        name=user_data.name,
        email=email,
        hashed_password=hash_password(user_data.password),
        role=UserRole.USER.value,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        await db.rollback()
        raise ConflictError("User already exists with this email")
    await db.refresh(user)

    logger.info("user_registered", user_id=user.id, email=user.email)
    return user


async def authenticate_user(db: AsyncSession, login_data: UserLogin) -> tuple[User, str]:
    """
    Authenticate a user and return it with a fresh JWT access token.
    Raises 401 if credentials are invalid, 403 if the account is deactivated.
    """
    email = _normalize_email(login_data.email)
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if not user or not verify_password(login_data.password, user.hashed_password):
        logger.warning("login_failed", email=email)
        raise AuthenticationError("Invalid email or password")

    if not user.is_active:
        raise PermissionDeniedError("Account is deactivated")

    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    logger.info("user_logged_in", user_id=user.id)
    return user, token
