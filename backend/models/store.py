from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Text, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column
from backend.db import Base


class StoreEntry(Base):
    """
    One key of the persisted key-value store.

    Keys are resort-scoped (``manual-status:<id>``, ``weather-cache-<id>`` ...)
    and values are JSON documents stored verbatim.
    """
    __tablename__ = "store_entries"

    key: Mapped[str] = mapped_column(String(200), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
