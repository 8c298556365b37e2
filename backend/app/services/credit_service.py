"""
Credit service for generation billing.
Provides the cost policy, admission check and atomic debit/credit operations.

Credits move exactly once per job, at admission. Status polling never touches balances.
"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update

from app.ai.catalog import ModelConfig, compute_cost
from app.models.user import User
from app.services.exceptions import InsufficientCredits


class CreditService:
    """Service for credit management with atomic operations."""

    @staticmethod
    def cost_for(model: ModelConfig, parameters) -> int:
        """
        Credits charged for one submission.

        Quality tier or style surcharge adjusts the per-item cost, then the
        result is multiplied by the number of items requested.

        Args:
            model: Catalog entry being submitted to
            parameters: Validated kind parameters

        Returns:
            Total cost in credits
        """
        return compute_cost(
            model,
            quantity=parameters.quantity,
            quality=getattr(parameters, "quality", None),
            style=getattr(parameters, "style", None),
        )

    @staticmethod
    async def authorize(db: AsyncSession, user: User, amount: int) -> int:
        """
        Check that a principal may spend amount credits.

        Admins always pass without consuming balance.

        Returns:
            Balance observed at check time

        Raises:
            InsufficientCredits: Balance below amount
        """
        available = await CreditService.get_balance(db, user.id)
        if user.is_admin:
            return available
        if available < amount:
            raise InsufficientCredits(required=amount, available=available)
        return available

    @staticmethod
    async def debit(db: AsyncSession, user_id: str, amount: int, commit: bool = True) -> bool:
        """
        Atomically debit credits from user balance.
        Prevents negative balances.

        Args:
            db: Database session
            user_id: User ID
            amount: Credits to debit
            commit: Commit immediately; pass False to debit inside a caller's transaction

        Returns:
            True if debit successful, False if insufficient credits

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError("Cannot debit negative amount")

        # Only decrement if balance >= amount
        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .where(User.credits >= amount)
            .values(credits=User.credits - amount)
            .execution_options(synchronize_session=False)
        )

        if commit:
            await db.commit()

        return result.rowcount > 0

    @staticmethod
    async def credit(db: AsyncSession, user_id: str, amount: int) -> int:
        """
        Credit (add) credits to user balance.

        Returns:
            New balance

        Raises:
            ValueError: If amount is negative or zero
        """
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        await db.execute(
            update(User)
            .where(User.id == user_id)
            .values(credits=User.credits + amount)
            .execution_options(synchronize_session=False)
        )
        await db.commit()

        return await CreditService.get_balance(db, user_id)

    @staticmethod
    async def get_balance(db: AsyncSession, user_id: str) -> int:
        """
        Get current credit balance for user.

        Returns:
            Current credit balance (0 if user not found)
        """
        result = await db.execute(
            select(User.credits).where(User.id == user_id)
        )
        credits = result.scalar_one_or_none()
        return credits or 0
