"""
HTTP Microservice
=================
Flask-based HTTP API for the PDF signature scanner.

Endpoints:
    POST   /api/check                      → Inspect an uploaded or local PDF
    POST   /api/documents                  → Register a document
    GET    /api/documents/<id>/signature   → Stored signature record
    POST   /api/scan                       → Scan unprocessed documents
    GET    /api/statistics                 → Signed/unsigned counts
    GET    /api/health                     → Health check
    GET    /api/info                       → Scanner version info
"""

from __future__ import annotations

import logging
import os

from flask import Flask, jsonify, request
from flask_cors import CORS

from . import __version__
from .engine import ScannerConfig, SignatureEngine
from .scanner import SignatureScanner
from .store import SqliteSignatureStore

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)


def create_app(config: dict = None) -> Flask:
    """Create and configure the Flask app."""
    if config:
        app.config.update(
            {key: value for key, value in config.items() if value is not None}
        )

    app.config.setdefault("DB_PATH", None)
    app.config.setdefault("DATA_ROOT", None)
    app.config.setdefault("LOG_LEVEL", "INFO")
    app.config.setdefault("MAX_CONTENT_LENGTH", 100 * 1024 * 1024)  # 100MB
    app.config.setdefault("MAX_SCAN_WORKERS", 8)

    # Initialize persistence layer
    store = SqliteSignatureStore(app.config["DB_PATH"])
    app.config["DB_PATH"] = store.db_path
    app.extensions["signature_store"] = store

    # One engine per app; it configures the package logger once
    app.extensions["signature_engine"] = _build_engine()

    return app


def _build_engine() -> SignatureEngine:
    return SignatureEngine(ScannerConfig(
        db_path=app.config.get("DB_PATH"),
        data_root=app.config.get("DATA_ROOT"),
        log_level=app.config.get("LOG_LEVEL", "INFO"),
    ))


def _engine() -> SignatureEngine:
    engine = app.extensions.get("signature_engine")
    if engine is None or engine.config.data_root != app.config.get("DATA_ROOT"):
        engine = _build_engine()
        app.extensions["signature_engine"] = engine
    return engine


def _store() -> SqliteSignatureStore:
    store = app.extensions.get("signature_store")
    if store is None or store.db_path != app.config.get("DB_PATH"):
        store = SqliteSignatureStore(app.config.get("DB_PATH"))
        app.extensions["signature_store"] = store
    return store


def _int_param(params: dict, name: str, default: int) -> int:
    value = params.get(name, default)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{name} must be an integer")


# ─── Health Check ─────────────────────────────────────────────────────────────


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({
        "status": "healthy",
        "service": "pdf-signature-scanner",
        "version": __version__,
    })


@app.route("/api/info", methods=["GET"])
def info():
    """Scanner version and capability info."""
    return jsonify({
        "version": __version__,
        "detection": "byte-scan",
        "signature_types": [
            "PKCS#7 Detached",
            "PKCS#7 SHA1",
            "CAdES Detached",
        ],
        "capabilities": [
            "presence_detection",
            "signer_extraction",
            "signing_date_extraction",
            "batch_scanning",
            "statistics",
        ],
        "supported_formats": ["pdf"],
    })


# ─── Inspection ───────────────────────────────────────────────────────────────


@app.route("/api/check", methods=["POST"])
def check_pdf():
    """
    Inspect a PDF and return its SignatureDetails.

    Accepts either:
        - A file upload (multipart/form-data, field "file")
        - A JSON body with file_path pointing to an existing file
    """
    engine = _engine()

    if "file" in request.files:
        file = request.files["file"]
        if not file.filename:
            return jsonify({"error": "No file selected"}), 400

        details = engine.inspect_bytes(file.read())
        logger.info(
            f"Inspected upload {file.filename}: has_signature={details.has_signature}"
        )
        return jsonify(details.model_dump(mode="json")), 200

    if request.is_json:
        data = request.get_json() or {}
        pdf_path = data.get("file_path")
        if not pdf_path or not os.path.exists(pdf_path):
            return jsonify({"error": f"File not found: {pdf_path}"}), 404
        try:
            details = engine.get_details(pdf_path)
        except OSError as e:
            return jsonify({"error": str(e)}), 500
        return jsonify(details.model_dump(mode="json")), 200

    return jsonify({
        "error": "Provide a file upload or JSON with file_path"
    }), 400


# ─── Documents ────────────────────────────────────────────────────────────────


@app.route("/api/documents", methods=["POST"])
def register_document():
    """Register a document stored under <data_root>/ecm/<filepath>/<filename>."""
    data = request.get_json(silent=True) or {}
    filename = data.get("filename")
    if not filename:
        return jsonify({"error": "filename is required"}), 400

    try:
        entity = _int_param(data, "entity", 1)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    document_id = _store().register_document(
        data.get("filepath", ""), filename, entity
    )
    return jsonify({"success": True, "document_id": document_id}), 201


@app.route("/api/documents/<int:document_id>/signature", methods=["GET"])
def document_signature(document_id: int):
    """Stored signature record of a document."""
    record = _store().get_record(document_id)
    if record is None:
        return jsonify({"error": "Signature record not found"}), 404
    return jsonify(record.model_dump(mode="json"))


# ─── Scan & Statistics ────────────────────────────────────────────────────────


@app.route("/api/scan", methods=["POST"])
def scan_documents():
    """Synchronously scan unprocessed documents of an entity."""
    params = request.get_json(silent=True) or {}
    try:
        entity = _int_param(params, "entity", 1)
        limit = _int_param(params, "limit", 100)
        parallel = _int_param(params, "parallel", 1)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    if limit < 0:
        return jsonify({"error": "limit must not be negative"}), 400
    parallel = min(max(1, parallel), app.config.get("MAX_SCAN_WORKERS", 8))

    scanner = SignatureScanner(_store(), _engine())
    summary = scanner.scan(entity=entity, limit=limit, parallel=parallel)
    return jsonify(summary.model_dump(mode="json")), 200


@app.route("/api/statistics", methods=["GET"])
def statistics():
    """Signed/unsigned counts for an entity."""
    try:
        entity = _int_param(request.args, "entity", 1)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    return jsonify(_store().statistics(entity).model_dump(mode="json"))


# ─── Run Server ──────────────────────────────────────────────────────────────


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    debug: bool = False,
    config: dict = None,
):
    """Start the microservice server."""
    create_app(config)
    app.run(host=host, port=port, debug=debug)


if __name__ == "__main__":
    run_server(debug=True)
