from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from quoteflow.models.document_counter import DocumentCounter
from quoteflow.models.shared import generate_uuid

_DIALECT_INSERTS = {"postgresql": postgresql.insert, "sqlite": sqlite.insert}


class DocumentCounterRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_for_update(self, document_type: str, year: int) -> DocumentCounter | None:
        return (
            self.db.query(DocumentCounter)
            .filter(DocumentCounter.document_type == document_type, DocumentCounter.year == year)
            .with_for_update()
            .first()
        )

    def insert_if_missing(self, document_type: str, year: int) -> None:
        """Insert a zeroed counter row unless one already exists for the type and year."""
        dialect = self.db.get_bind().dialect.name
        if dialect not in _DIALECT_INSERTS:
            raise NotImplementedError(f"Document counters are not supported on {dialect}")

        statement = (
            _DIALECT_INSERTS[dialect](DocumentCounter)
            .values(
                id=generate_uuid(),
                document_type=document_type,
                year=year,
                counter=0,
                version=1,
            )
            .on_conflict_do_nothing(index_elements=["document_type", "year"])
        )
        self.db.execute(statement)
