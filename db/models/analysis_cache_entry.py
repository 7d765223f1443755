"""
db/models/analysis_cache_entry.py

Dedup entry pointing a URL fingerprint at its latest completed analysis.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, utcnow


class AnalysisCacheEntry(Base):
    __tablename__ = "analysis_cache"

    fingerprint: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
        comment="sha256 hex of the normalized URL",
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    task_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    cached_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )

    __table_args__ = (Index("ix_analysis_cache_cached_at", "cached_at"),)
