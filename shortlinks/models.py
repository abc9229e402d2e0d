"""SQLAlchemy ORM models for the SQL-backed mapping store.

This module defines the database schema: one row per issued code and one row
per recorded click. Clicks are rows rather than an array column so that an
append is a plain INSERT and concurrent redirects never overwrite each other.

Data Model Layout
=================
::
    short_links table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(10) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL)
    ├─ created_at (TIMESTAMPTZ NOT NULL)
    ├─ expiry (TIMESTAMPTZ NOT NULL, CHECK expiry > created_at)

    clicks table
    ├─ id (SERIAL PRIMARY KEY, insertion order)
    ├─ event_id (VARCHAR(32) UNIQUE)
    ├─ short_link_id (FK -> short_links.id, INDEXED)
    ├─ timestamp (TIMESTAMPTZ NOT NULL)
    ├─ referrer (TEXT NOT NULL)
    └─ location (VARCHAR(64) NOT NULL)

Key Behaviours
===============
- The unique index on short_code is the authoritative uniqueness guard.
- The unique index on event_id makes click write-back idempotent.
- ShortLink.clicks loads in insertion (id) order.

Classes:
    ShortLink:  An issued code and its target URL.
    Click:  One recorded redirect visit.
"""

import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shortlinks.database import Base

__all__ = ["ShortLink", "Click"]


class ShortLink(Base):
    __tablename__ = "short_links"
    __table_args__ = (CheckConstraint("expiry > created_at", name="ck_short_links_expiry_after_created"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(String(10), unique=True, index=True, nullable=False)
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expiry: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    clicks: Mapped[list["Click"]] = relationship(
        back_populates="short_link",
        order_by="Click.id",
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"<ShortLink(id={self.id}, short_code='{self.short_code}', expiry={self.expiry})>"


class Click(Base):
    __tablename__ = "clicks"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    event_id: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    short_link_id: Mapped[int] = mapped_column(ForeignKey("short_links.id"), index=True, nullable=False)
    timestamp: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    referrer: Mapped[str] = mapped_column(Text, nullable=False)
    location: Mapped[str] = mapped_column(String(64), nullable=False)

    short_link: Mapped[ShortLink] = relationship(back_populates="clicks")

    def __repr__(self) -> str:
        return f"<Click(id={self.id}, short_link_id={self.short_link_id}, location='{self.location}')>"
