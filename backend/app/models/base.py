"""
Declarative base shared by all models.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase
import uuid


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def generate_uuid():
    """Generate a UUID string."""
    return str(uuid.uuid4())


def utcnow():
    """Naive UTC timestamp (all DateTime columns store UTC without tzinfo)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
