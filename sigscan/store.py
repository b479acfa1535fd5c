"""
Signature Store
===============
Repository interface for signature tracking records and its SQLite
implementation. This is the only layer the scanner, CLI and HTTP
service use for persistence.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional

from . import database as db
from .models import (
    DocumentRecord,
    SignatureDetails,
    SignatureRecord,
    SignatureStatistics,
    SignatureType,
)

logger = logging.getLogger(__name__)


class SignatureStore(ABC):
    """At most one signature record per document."""

    @abstractmethod
    def upsert(self, document_id: int, details: SignatureDetails, entity: int = 1):
        """Create or replace the record of a document."""

    @abstractmethod
    def get(self, document_id: int) -> Optional[SignatureDetails]:
        """Stored details of a document, or None if never scanned."""

    @abstractmethod
    def get_record(self, document_id: int) -> Optional[SignatureRecord]:
        """Stored record including bookkeeping columns."""

    @abstractmethod
    def list_unprocessed(self, entity: int = 1, limit: int = 100) -> list[int]:
        """Ids of PDF documents without a record, oldest first."""

    @abstractmethod
    def statistics(self, entity: int = 1) -> SignatureStatistics:
        """Aggregate signed/unsigned counts."""

    @abstractmethod
    def register_document(self, filepath: str, filename: str, entity: int = 1) -> int:
        """Register a document and return its id."""

    @abstractmethod
    def get_document(self, document_id: int) -> Optional[DocumentRecord]:
        """Look up a registered document."""


class SqliteSignatureStore(SignatureStore):
    """SignatureStore backed by the SQLite database layer."""

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or db.get_db_path()
        db.init_db(self.db_path)

    def upsert(self, document_id: int, details: SignatureDetails, entity: int = 1):
        db.upsert_signature(
            document_id=document_id,
            has_signature=details.has_signature,
            signature_type=(
                details.signature_type.value if details.signature_type else None
            ),
            signer_name=details.signer_name,
            signature_date=details.signature_date,
            certificate_issuer=details.certificate_issuer,
            entity=entity,
            db_path=self.db_path,
        )

    def get(self, document_id: int) -> Optional[SignatureDetails]:
        record = self.get_record(document_id)
        return record.details if record else None

    def get_record(self, document_id: int) -> Optional[SignatureRecord]:
        row = db.get_signature(document_id, db_path=self.db_path)
        if not row:
            return None
        return _row_to_record(row)

    def list_unprocessed(self, entity: int = 1, limit: int = 100) -> list[int]:
        return db.list_unprocessed_documents(
            entity=entity, limit=limit, db_path=self.db_path
        )

    def statistics(self, entity: int = 1) -> SignatureStatistics:
        return SignatureStatistics(
            total_pdfs=db.count_pdfs(entity, db_path=self.db_path),
            signed_pdfs=db.count_signed(entity, db_path=self.db_path),
        )

    def register_document(self, filepath: str, filename: str, entity: int = 1) -> int:
        return db.insert_document(
            filename=filename,
            filepath=filepath,
            entity=entity,
            db_path=self.db_path,
        )

    def get_document(self, document_id: int) -> Optional[DocumentRecord]:
        row = db.get_document(document_id, db_path=self.db_path)
        if not row:
            return None
        return DocumentRecord(
            document_id=row["id"],
            filepath=row["filepath"],
            filename=row["filename"],
            entity=row["entity"],
        )


def _row_to_record(row: dict) -> SignatureRecord:
    has_signature = bool(row["has_signature"])
    signature_type = row.get("signature_type")

    # Unsigned rows never carry signature fields
    details = SignatureDetails(
        has_signature=has_signature,
        signature_type=(
            SignatureType(signature_type)
            if has_signature and signature_type else None
        ),
        signer_name=row.get("signer_name") if has_signature else None,
        signature_date=row.get("signature_date") if has_signature else None,
        certificate_issuer=row.get("certificate_issuer"),
    )
    return SignatureRecord(
        document_id=row["fk_ecm_file"],
        entity=row["entity"],
        date_checked=row.get("date_checked"),
        details=details,
    )
