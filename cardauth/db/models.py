"""SQLAlchemy models for users, cards, sessions and risk training data."""
from __future__ import annotations

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    func,
)
from sqlalchemy.orm import relationship

from .session import Base


class UserRow(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    lastname = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    card = relationship("CardRow", uselist=False, back_populates="owner", cascade="all,delete-orphan")
    sessions = relationship("SessionRow", back_populates="user", cascade="all,delete-orphan")


class CardRow(Base):
    __tablename__ = "cards"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # unique: the one-card-per-user invariant lives here, not in application code
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    card_number = Column(String(16), nullable=False)
    cardholder_name = Column(String(255), nullable=False)
    expiry_date = Column(Date, nullable=False)
    cvv = Column(String(3), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("UserRow", back_populates="card")


class SessionRow(Base):
    __tablename__ = "sessions"

    token = Column(String(128), primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("UserRow", back_populates="sessions")


class LoginRecordRow(Base):
    __tablename__ = "login_data"

    id = Column(Integer, primary_key=True, autoincrement=True)
    login_time_hour = Column(Integer, nullable=False)
    ip_address = Column(String(64), nullable=False)
    location = Column(String(255), nullable=False, default="")
    is_fraudulent = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
