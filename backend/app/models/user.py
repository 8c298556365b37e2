"""
User model with credit-based generation access.
Authenticated via Firebase (firebase_uid).
Credits are integers; each generation job debits its model cost once, at submission.
"""
import enum
from sqlalchemy import Boolean, Column, String, Integer, Index, DateTime
from app.models.base import Base, generate_uuid, utcnow


class UserRole(str, enum.Enum):
    """Principal role. Admins bypass credit checks and ownership filters."""
    USER = "user"
    ADMIN = "admin"


class User(Base):
    """User model acting as the request principal."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    firebase_uid = Column(String(128), nullable=False, unique=True)  # Firebase user ID
    email = Column(String(255), nullable=True)  # Email from Firebase token
    role = Column(String(16), nullable=False, default=UserRole.USER.value)
    credits = Column(Integer, nullable=False, default=0)  # Generation credits balance
    has_platform_access = Column(Boolean, nullable=False, default=False)  # Set by billing

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_user_firebase_uid", "firebase_uid"),
    )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User(id={self.id}, role={self.role}, credits={self.credits})>"
