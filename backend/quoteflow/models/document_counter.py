"""Per-year counters backing the default document numbering service."""

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, func

from quoteflow.core.database import Base
from quoteflow.models.shared import UUIDType, generate_uuid


class DocumentCounter(Base):
    __tablename__ = "document_counters"
    __table_args__ = (
        UniqueConstraint("document_type", "year", name="uq_document_counters_type_year"),
    )

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    document_type = Column(String(30), nullable=False)
    year = Column(Integer, nullable=False)
    counter = Column(Integer, nullable=False, default=0)

    version = Column(Integer, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
