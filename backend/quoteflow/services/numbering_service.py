"""Document numbering for master and child invoices."""

from enum import Enum
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from quoteflow.core.config import settings
from quoteflow.core.exceptions import NumberingServiceError
from quoteflow.repositories.document_counter_repository import DocumentCounterRepository


class DocumentType(str, Enum):
    MASTER_INVOICE = "master_invoice"
    CHILD_INVOICE = "child_invoice"


class NumberingService(Protocol):
    def next_number(self, document_type: DocumentType, year: int) -> str: ...


class SequentialNumberingService:
    """Per-type, per-year counters stored in ``document_counters``.

    The counter row is incremented inside the caller's transaction, so a
    rolled-back decomposition also gives its number back.
    """

    def __init__(self, db: Session):
        self.db = db
        self.counter_repo = DocumentCounterRepository(db)

    @staticmethod
    def prefix_for(document_type: DocumentType) -> str:
        if document_type == DocumentType.MASTER_INVOICE:
            return settings.MASTER_INVOICE_PREFIX
        return settings.CHILD_INVOICE_PREFIX

    def next_number(self, document_type: DocumentType, year: int) -> str:
        try:
            counter = self.counter_repo.get_for_update(document_type.value, year)
            if counter is None:
                # Concurrent first numbers of a year both insert; all but one insert is a no-op
                self.counter_repo.insert_if_missing(document_type.value, year)
                counter = self.counter_repo.get_for_update(document_type.value, year)
            counter.counter = int(counter.counter) + 1  # type: ignore[assignment]
            self.db.flush()
        except StaleDataError:
            raise
        except SQLAlchemyError as e:
            raise NumberingServiceError(f"Could not allocate a {document_type.value} number") from e

        return f"{self.prefix_for(document_type)}-{year}-{int(counter.counter):04d}"

