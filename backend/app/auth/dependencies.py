"""
FastAPI dependencies for authentication.
Provides get_current_user dependency that verifies Firebase JWT tokens,
plus the platform-access and admin gates used by generation and admin routes.
"""
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.config import settings
from app.database import get_db
from app.models.user import User
from app.auth.firebase import verify_firebase_token

# HTTPBearer scheme for extracting Authorization header
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    FastAPI dependency that verifies Firebase JWT token and returns User.

    Flow:
    1. Extract Bearer token from Authorization header
    2. Verify token with Firebase Admin SDK
    3. Lookup user in database by firebase_uid
    4. Create user if doesn't exist (with trial credits)

    Raises:
        HTTPException 401: If token is missing, invalid, or expired
    """
    token = credentials.credentials

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authentication token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        # Validates signature, expiration, issuer and audience
        decoded_token = verify_firebase_token(token)

        firebase_uid = decoded_token.get("uid")
        email = decoded_token.get("email")

        if not firebase_uid:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token: missing uid"
            )

    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Invalid token: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(
        select(User).where(User.firebase_uid == firebase_uid)
    )
    user = result.scalar_one_or_none()

    if not user:
        # New users can try generation immediately
        user = User(
            firebase_uid=firebase_uid,
            email=email,
            credits=settings.trial_credits
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)

    return user


async def require_platform_access(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Billing gate for generation. Admins always pass.

    Raises:
        HTTPException 403: User has no platform access
    """
    if current_user.is_admin or current_user.has_platform_access:
        return current_user

    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Platform access required. Please upgrade your plan."
    )


async def require_admin(
    current_user: User = Depends(get_current_user)
) -> User:
    """
    Raises:
        HTTPException 403: User is not an admin
    """
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user
