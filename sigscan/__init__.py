"""
PDF Signature Scanner
=====================
Detects digital signatures in PDF files and tracks them per document.

Architecture:
    - Detector: Raw-byte presence check for signature dictionary markers
    - Extractor: Sub-filter classification, signer name and signing date
    - Decoders: PDF literal-string and PDF date normalization
    - Store: SQLite tracking table (one record per document)
    - Scanner: Batch scan over documents not yet processed

Version: 1.0.0
"""

__version__ = "1.0.0"
