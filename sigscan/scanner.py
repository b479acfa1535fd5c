"""
Batch Signature Scanner
=======================
Scans registered documents that have no signature record yet and
persists one record per document.

Architecture:
    - The store lists unprocessed document ids (per entity, limited)
    - Worker threads read and inspect documents (pure, no shared state)
    - The calling thread persists results as they complete
    - A failure on one document is logged and the batch continues

Usage:
    scanner = SignatureScanner(store, engine)
    summary = scanner.scan(entity=1, limit=100, parallel=4)
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from .engine import SignatureEngine
from .models import ScanSummary, SignatureDetails
from .store import SignatureStore

logger = logging.getLogger(__name__)


class DocumentMissing(Exception):
    """Raised when a registered document has no file under the data root."""


class SignatureScanner:
    """Runs detection over unprocessed documents and records the outcome."""

    def __init__(self, store: SignatureStore, engine: Optional[SignatureEngine] = None):
        self.store = store
        self.engine = engine or SignatureEngine()

    def scan(
        self,
        entity: int = 1,
        limit: int = 100,
        parallel: int = 1,
        progress_callback: Optional[Callable[[int, int], None]] = None,
    ) -> ScanSummary:
        """
        Scan up to `limit` unprocessed documents of an entity.

        Args:
            entity: Entity whose documents are scanned.
            limit: Maximum number of documents for this run.
            parallel: Number of worker threads (1 = sequential).
            progress_callback: Callback(done, total) after each document.

        Returns:
            ScanSummary with counters and per-document errors.

        Raises:
            ValueError: If limit is negative.
        """
        # SQLite reads a negative LIMIT as "no limit"
        if limit < 0:
            raise ValueError(f"limit must not be negative, got {limit}")

        summary = ScanSummary()
        document_ids = self.store.list_unprocessed(entity=entity, limit=limit)
        total = len(document_ids)

        if not document_ids:
            logger.info(f"No unprocessed documents for entity {entity}")
            return summary

        logger.info(
            f"Scanning {total} documents for entity {entity} "
            f"with {max(1, parallel)} worker(s)"
        )

        with ThreadPoolExecutor(max_workers=max(1, parallel)) as pool:
            futures = {
                pool.submit(self._inspect_document, document_id): document_id
                for document_id in document_ids
            }
            for future in as_completed(futures):
                document_id = futures[future]
                summary.processed += 1
                try:
                    details = future.result()
                    self.store.upsert(document_id, details, entity=entity)
                    if details.has_signature:
                        summary.signatures_found += 1
                except DocumentMissing as e:
                    summary.missing_files += 1
                    logger.warning(str(e))
                except Exception as e:
                    summary.failed += 1
                    summary.errors.append(f"document {document_id}: {e}")
                    logger.error(f"Failed to scan document {document_id}: {e}")

                if progress_callback:
                    progress_callback(summary.processed, total)

        summary.success = summary.failed == 0
        logger.info(summary.message)
        return summary

    def _inspect_document(self, document_id: int) -> SignatureDetails:
        document = self.store.get_document(document_id)
        if document is None:
            raise DocumentMissing(f"Document {document_id} is not registered")

        path = self.engine.document_path(document.filepath, document.filename)
        if not path.is_file():
            raise DocumentMissing(f"File missing for document {document_id}: {path}")

        return self.engine.get_details(path)
