# glimmer/models.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from .db_pg import Base


# The whole ledger (current word, submissions, archive) lives in one row.
class LedgerDocument(Base):
    __tablename__ = "ledger_document"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    doc: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
