from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey

from .base import Base
from .user import utcnow


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    phone_number = Column(String(30), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    address = Column(String(250), nullable=False, default="")
    note = Column(Text, nullable=False, default="")
    created_date = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_date = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
