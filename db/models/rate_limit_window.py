"""
db/models/rate_limit_window.py

Per-client request counter for one fixed hourly window.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, utcnow


class RateLimitWindow(Base):
    __tablename__ = "rate_limit_windows"

    client_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    window_key: Mapped[str] = mapped_column(
        String(13),
        primary_key=True,
        comment="UTC hour bucket, YYYY-MM-DDTHH",
    )
    request_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (Index("ix_rate_limit_windows_created_at", "created_at"),)
