"""
Signature Presence Detector
===========================
Single-pass substring check for PDF signature dictionary markers.

A buffer is reported as signed when it contains /ByteRange and /SubFilter
and at least one of adbe.pkcs7, ETSI.CAdES or /Type/Sig. The markers are
not bound to any PDF object, so tokens inside comments or unrelated
streams also count.
"""

from __future__ import annotations

import logging
from typing import Optional

from .extractor import BYTE_RANGE_MARKER, SUB_FILTER_MARKER, SignatureMetadataExtractor
from .models import SignatureDetails

logger = logging.getLogger(__name__)

# At least one of these must be present
SIGNATURE_FORMAT_MARKERS = (
    b"adbe.pkcs7",
    b"ETSI.CAdES",
    b"/Type/Sig",
)


class SignaturePresenceDetector:
    """
    Decides whether a PDF buffer carries a digital signature and, if it
    does, hands the buffer to the metadata extractor.
    """

    def __init__(self, extractor: Optional[SignatureMetadataExtractor] = None):
        self.extractor = extractor or SignatureMetadataExtractor()

    def detect(self, data) -> bool:
        """
        Check a buffer for signature markers.

        Never raises: empty or non-binary input is reported as unsigned.
        """
        if not data:
            return False
        if not isinstance(data, (bytes, bytearray, memoryview)):
            logger.debug(f"Ignoring non-binary input of type {type(data).__name__}")
            return False

        data = bytes(data)
        return (
            BYTE_RANGE_MARKER in data
            and SUB_FILTER_MARKER in data
            and any(marker in data for marker in SIGNATURE_FORMAT_MARKERS)
        )

    def inspect(self, data) -> SignatureDetails:
        """Detect presence, then extract metadata for signed buffers."""
        if not self.detect(data):
            return SignatureDetails.not_signed()
        return self.extractor.extract(data)


_default_detector = SignaturePresenceDetector()


def detect(data) -> bool:
    """Module-level shortcut for SignaturePresenceDetector.detect."""
    return _default_detector.detect(data)


def inspect(data) -> SignatureDetails:
    """Module-level shortcut for SignaturePresenceDetector.inspect."""
    return _default_detector.inspect(data)
