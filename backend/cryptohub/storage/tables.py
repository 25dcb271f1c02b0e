"""SQLAlchemy table definitions for the relational datastore."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import declarative_base, relationship

from .models import utcnow

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_uuid)
    auth0_sub = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    username = Column(String(100), nullable=False)
    avatar_url = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class CoinRow(Base):
    __tablename__ = "coins"

    id = Column(String(100), primary_key=True)
    name = Column(String(255), nullable=False)
    symbol = Column(String(20), nullable=False, index=True)
    image_url = Column(Text)
    current_price = Column(Float)
    market_cap = Column(Float)
    price_change_24h = Column(Float)
    market_cap_rank = Column(Integer, index=True)
    last_updated = Column(DateTime(timezone=True), default=utcnow, index=True)


class MessageRow(Base):
    __tablename__ = "chat_messages"

    id = Column(String(36), primary_key=True, default=_uuid)
    coin_id = Column(String(100), ForeignKey("coins.id", ondelete="CASCADE"), index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), index=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, index=True)
    is_deleted = Column(Boolean, default=False, nullable=False)

    user = relationship(UserRow, lazy="joined")


class SnapshotRow(Base):
    __tablename__ = "coin_snapshots"

    id = Column(String(36), primary_key=True, default=_uuid)
    coin_id = Column(String(100), ForeignKey("coins.id", ondelete="CASCADE"), index=True)
    price = Column(Float, nullable=False)
    market_cap = Column(Float)
    volume_24h = Column(Float)
    snapshot_time = Column(DateTime(timezone=True), default=utcnow, index=True)
