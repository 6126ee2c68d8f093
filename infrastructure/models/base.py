"""
Declarative base for ORM models (SQLAlchemy 2.0 style)
"""
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# metadata for migrations and create_all
metadata = Base.metadata
