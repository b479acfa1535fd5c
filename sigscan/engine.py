"""
Signature Engine
================
Path-level orchestrator: reads a document through the storage layer and
runs presence detection and metadata extraction on its bytes.

Usage:
    engine = SignatureEngine(config)
    details = engine.get_details("path/to/contract.pdf")
    # details is a SignatureDetails

Architecture:
    path → storage.read_bytes → SignaturePresenceDetector →
    SignatureMetadataExtractor → SignatureDetails
"""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from . import storage
from .detector import SignaturePresenceDetector
from .models import SignatureDetails

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)-8s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class ScannerConfig:
    """Configuration for the signature engine and batch scanner."""

    # Storage
    db_path: Optional[str] = field(
        default_factory=lambda: os.environ.get("SIGSCAN_DB_PATH")
    )
    data_root: Optional[str] = field(
        default_factory=lambda: os.environ.get("SIGSCAN_DATA_ROOT")
    )

    # Batch scanning
    entity: int = 1
    batch_limit: int = 100
    parallel: int = 1

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


class SignatureEngine:
    """
    Reads documents and reports their signature status.

    Thread-safe for parallel document processing: the detector is
    stateless and every call reads its own buffer.
    """

    def __init__(
        self,
        config: Optional[ScannerConfig] = None,
        detector: Optional[SignaturePresenceDetector] = None,
    ):
        self.config = config or ScannerConfig()
        self.detector = detector or SignaturePresenceDetector()
        self._setup_logging()

    def _setup_logging(self):
        """Configure logging based on config."""
        log_level = getattr(logging, self.config.log_level.upper(), logging.INFO)

        package_logger = logging.getLogger("sigscan")
        package_logger.setLevel(log_level)

        # Console handler
        if not package_logger.handlers:
            console = logging.StreamHandler()
            console.setLevel(log_level)
            console.setFormatter(
                logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
            )
            package_logger.addHandler(console)

        # File handler
        if self.config.log_file:
            log_path = Path(self.config.log_file).resolve()
            already_attached = any(
                isinstance(h, logging.FileHandler)
                and Path(h.baseFilename) == log_path
                for h in package_logger.handlers
            )
            if not already_attached:
                log_path.parent.mkdir(parents=True, exist_ok=True)
                file_handler = logging.FileHandler(log_path, encoding="utf-8")
                file_handler.setLevel(log_level)
                file_handler.setFormatter(
                    logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
                )
                package_logger.addHandler(file_handler)

    def document_path(self, filepath: str, filename: str) -> Path:
        """Resolve a registered document to its location under the data root."""
        return storage.resolve_document_path(
            filepath, filename, data_root=self.config.data_root
        )

    def check_file(self, pdf_path) -> bool:
        """
        Presence check for a file on disk.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            OSError: If the file cannot be read.
        """
        data = storage.read_bytes(pdf_path)
        return self.detector.detect(data)

    def get_details(self, pdf_path) -> SignatureDetails:
        """
        Full inspection of a file on disk.

        Args:
            pdf_path: Path to the PDF file.

        Returns:
            SignatureDetails for the file.

        Raises:
            FileNotFoundError: If the file doesn't exist.
            OSError: If the file cannot be read.
        """
        start_time = time.time()

        data = storage.read_bytes(pdf_path)
        details = self.inspect_bytes(data)

        elapsed = time.time() - start_time
        logger.info(
            f"Inspected {os.path.basename(str(pdf_path))} in {elapsed:.3f}s: "
            f"{'signed' if details.has_signature else 'not signed'}"
        )
        return details

    def inspect_bytes(self, data: bytes) -> SignatureDetails:
        """Inspect an in-memory buffer (e.g. an uploaded file)."""
        return self.detector.inspect(data)
