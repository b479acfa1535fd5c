"""
Filesystem Access
=================
The only place where document files are read from disk.

Directory Layout:
    <data_root>/
    └── ecm/
        └── {filepath}/{filename}   # Registered documents
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Project root: one level up from /sigscan/ package
_PROJECT_ROOT = Path(__file__).parent.parent.absolute()

_DEFAULT_DATA_ROOT = _PROJECT_ROOT / "documents"

DOCUMENTS_SUBDIR = "ecm"


def get_data_root() -> Path:
    """Return the configured data root."""
    return Path(os.environ.get("SIGSCAN_DATA_ROOT", str(_DEFAULT_DATA_ROOT)))


def resolve_document_path(
    filepath: str,
    filename: str,
    data_root: Optional[str] = None,
) -> Path:
    """
    Build the absolute path of a registered document.
    E.g., ('contracts/2025', 'lease.pdf') -> <data_root>/ecm/contracts/2025/lease.pdf
    """
    root = Path(data_root) if data_root else get_data_root()
    return root / DOCUMENTS_SUBDIR / filepath.strip("/") / filename


def read_bytes(path) -> bytes:
    """
    Read a whole file into memory.

    Raises:
        FileNotFoundError: If the path does not exist.
        OSError: If the file cannot be read.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Document not found: {path}")

    data = path.read_bytes()
    logger.debug(f"Read {len(data)} bytes from {path}")
    return data
