from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, DateTime

from .base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    firstname = Column(String(50), nullable=False)
    lastname = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    company_name = Column(String(100), nullable=False, default="")
    phone = Column(String(30), nullable=True)
    address = Column(String(250), nullable=True)
    password_hash = Column(String(255), nullable=False)
    # Bumped on logout and password change; tokens carry it in the "ver" claim.
    token_version = Column(Integer, nullable=False, default=0)
    created_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
