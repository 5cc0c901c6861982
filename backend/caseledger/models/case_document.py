from __future__ import annotations

import datetime as dt

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column

from caseledger.db.session import Base


class CaseDocument(Base):
    """One case stored as a flat JSON document, keyed by an opaque string id."""

    __tablename__ = "case_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    collection: Mapped[str] = mapped_column(String(64), index=True, default="cases")

    # billNumber, caseNumber, date, particulars[], payments[], totalAmount, ...
    data: Mapped[dict] = mapped_column(JSON)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
