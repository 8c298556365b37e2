"""
Admin endpoints for credit maintenance.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel, Field

from app.database import get_db
from app.models.user import User
from app.auth.dependencies import require_admin
from app.services.credit_service import CreditService

logger = logging.getLogger(__name__)

router = APIRouter()


class GrantCreditsRequest(BaseModel):
    """Request schema for granting credits."""
    amount: int = Field(..., gt=0, le=100000)
    reason: str = Field("", max_length=255)


class GrantCreditsResponse(BaseModel):
    """Response schema for granting credits."""
    user_id: str
    credits: int


@router.post("/users/{user_id}/credits", response_model=GrantCreditsResponse)
async def grant_credits(
    user_id: str,
    request: GrantCreditsRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """
    Add credits to a user's balance.
    Requires an admin principal.
    """
    result = await db.execute(select(User.id).where(User.id == user_id))
    if result.scalar_one_or_none() is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )

    balance = await CreditService.credit(db, user_id, request.amount)

    logger.info(
        f"Granted {request.amount} credits to user {user_id}",
        extra={
            "event": "credits_granted",
            "user_id": user_id,
            "admin_id": current_user.id,
            "amount": request.amount,
            "reason": request.reason,
        }
    )

    return GrantCreditsResponse(user_id=user_id, credits=balance)
