"""
Data Models
===========
Pydantic models for signature detection output and tracking records.
All models are serializable to JSON for the CLI and the HTTP service.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, computed_field, model_validator


# ─── Enums ────────────────────────────────────────────────────────────────────


class SignatureType(str, Enum):
    """Cryptographic container format named by the signature sub-filter."""
    PKCS7_DETACHED = "PKCS#7 Detached"
    PKCS7_SHA1 = "PKCS#7 SHA1"
    CADES_DETACHED = "CAdES Detached"
    UNKNOWN = "Unknown"


# ─── Detection Result ─────────────────────────────────────────────────────────


class SignatureDetails(BaseModel):
    """
    Result of inspecting one PDF buffer.

    Every field besides has_signature is independently optional: a signed
    document may still lack a recognizable name or date.
    """
    has_signature: bool = False
    signature_type: Optional[SignatureType] = None
    signer_name: Optional[str] = None
    signature_date: Optional[str] = Field(
        default=None,
        description="Normalized as 'YYYY-MM-DD HH:MM:SS'",
    )
    certificate_issuer: Optional[str] = Field(
        default=None,
        description="Reserved; never populated by the byte scan",
    )

    @model_validator(mode="after")
    def _unsigned_has_no_fields(self) -> "SignatureDetails":
        if not self.has_signature and (
            self.signature_type is not None
            or self.signer_name is not None
            or self.signature_date is not None
        ):
            raise ValueError(
                "signature fields must be empty when has_signature is false"
            )
        return self

    @classmethod
    def not_signed(cls) -> "SignatureDetails":
        return cls(has_signature=False)


# ─── Tracking Records ─────────────────────────────────────────────────────────


class DocumentRecord(BaseModel):
    """A registered document (file reference managed by the document store)."""
    document_id: int
    filepath: str = ""
    filename: str
    entity: int = 1


class SignatureRecord(BaseModel):
    """A persisted signature tracking row for one document."""
    document_id: int
    entity: int = 1
    date_checked: Optional[str] = None
    details: SignatureDetails


# ─── Batch / Statistics ───────────────────────────────────────────────────────


class ScanSummary(BaseModel):
    """Outcome of one batch scan run."""
    success: bool = True
    processed: int = 0
    signatures_found: int = 0
    missing_files: int = 0
    failed: int = 0
    errors: list[str] = Field(default_factory=list)

    @computed_field
    @property
    def message(self) -> str:
        return (
            f"Processed {self.processed} documents, found "
            f"{self.signatures_found} with digital signatures"
        )


class SignatureStatistics(BaseModel):
    """Aggregate signature counts for one entity."""
    total_pdfs: int = 0
    signed_pdfs: int = 0

    @computed_field
    @property
    def unsigned_pdfs(self) -> int:
        return self.total_pdfs - self.signed_pdfs

    @computed_field
    @property
    def percentage_signed(self) -> float:
        if self.total_pdfs == 0:
            return 0.0
        return round(self.signed_pdfs / self.total_pdfs * 100, 1)
