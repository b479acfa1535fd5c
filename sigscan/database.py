"""
SQLite Database Layer
=====================
Persistent storage for registered documents and their signature status.
One tracking row per document, keyed by fk_ecm_file.
No in-memory caching — always reads from disk.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default database path: project_root/signatures.sqlite
_DEFAULT_DB_PATH = str(Path(__file__).parent.parent / "signatures.sqlite")


def get_db_path() -> str:
    """Return the configured database path."""
    return os.environ.get("SIGSCAN_DB_PATH", _DEFAULT_DB_PATH)


@contextmanager
def get_connection(db_path: str = None):
    """
    Context manager for database connections.
    Ensures proper commit/rollback and connection cleanup.
    """
    db_path = db_path or get_db_path()
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA foreign_keys=ON")
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(db_path: str = None):
    """
    Initialize the database schema.
    Safe to call multiple times — uses IF NOT EXISTS.
    """
    db_path = db_path or get_db_path()
    logger.info(f"Initializing database at: {db_path}")

    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS ecm_files (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filepath TEXT NOT NULL DEFAULT '',
                filename TEXT NOT NULL,
                entity INTEGER NOT NULL DEFAULT 1,
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            CREATE INDEX IF NOT EXISTS idx_ecm_files_entity
                ON ecm_files(entity);
        """)

    create_signature_table(db_path)
    logger.info("Database schema initialized successfully")


def create_signature_table(db_path: str = None):
    """Create the signature tracking table if it doesn't exist."""
    with get_connection(db_path) as conn:
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS document_signatures (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                fk_ecm_file INTEGER NOT NULL UNIQUE,
                has_signature INTEGER DEFAULT 0,
                signature_type TEXT DEFAULT NULL,
                signer_name TEXT DEFAULT NULL,
                signature_date DATETIME DEFAULT NULL,
                certificate_issuer TEXT DEFAULT NULL,
                date_checked DATETIME DEFAULT CURRENT_TIMESTAMP,
                entity INTEGER NOT NULL DEFAULT 1
            );

            CREATE INDEX IF NOT EXISTS idx_signatures_ecm_file
                ON document_signatures(fk_ecm_file);
        """)


# ─── Document CRUD ────────────────────────────────────────────────────────────


def insert_document(
    filename: str,
    filepath: str = "",
    entity: int = 1,
    db_path: str = None,
) -> int:
    """Insert a document record. Returns the document id."""
    with get_connection(db_path) as conn:
        cursor = conn.execute(
            "INSERT INTO ecm_files (filepath, filename, entity) VALUES (?, ?, ?)",
            (filepath, filename, entity),
        )
        document_id = cursor.lastrowid
        logger.info(f"Inserted document {document_id}: {filepath}/{filename}")
        return document_id


def get_document(document_id: int, db_path: str = None) -> Optional[dict]:
    """Get a single document record by id."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT id, filepath, filename, entity FROM ecm_files WHERE id = ?",
            (document_id,),
        ).fetchone()
        return dict(row) if row else None


def list_unprocessed_documents(
    entity: int = 1,
    limit: int = 100,
    db_path: str = None,
) -> list[int]:
    """
    Ids of PDF documents in an entity that have no signature record yet.
    Ordered by id, at most `limit` rows.
    """
    with get_connection(db_path) as conn:
        rows = conn.execute(
            """SELECT ef.id FROM ecm_files ef
               WHERE lower(ef.filename) LIKE '%.pdf'
               AND ef.entity = ?
               AND ef.id NOT IN (
                   SELECT fk_ecm_file FROM document_signatures
               )
               ORDER BY ef.id
               LIMIT ?""",
            (entity, int(limit)),
        ).fetchall()
        return [row["id"] for row in rows]


# ─── Signature CRUD ───────────────────────────────────────────────────────────


def upsert_signature(
    document_id: int,
    has_signature: bool,
    signature_type: Optional[str] = None,
    signer_name: Optional[str] = None,
    signature_date: Optional[str] = None,
    certificate_issuer: Optional[str] = None,
    entity: int = 1,
    db_path: str = None,
):
    """Insert or replace the signature record of a document."""
    with get_connection(db_path) as conn:
        conn.execute(
            """INSERT INTO document_signatures
               (fk_ecm_file, has_signature, signature_type, signer_name,
                signature_date, certificate_issuer, date_checked, entity)
               VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP, ?)
               ON CONFLICT(fk_ecm_file) DO UPDATE SET
                   has_signature = excluded.has_signature,
                   signature_type = excluded.signature_type,
                   signer_name = excluded.signer_name,
                   signature_date = excluded.signature_date,
                   certificate_issuer = excluded.certificate_issuer,
                   date_checked = CURRENT_TIMESTAMP,
                   entity = excluded.entity""",
            (document_id, int(has_signature), signature_type, signer_name,
             signature_date, certificate_issuer, entity),
        )
    logger.debug(
        f"Stored signature status for document {document_id}: "
        f"has_signature={has_signature}"
    )


def get_signature(document_id: int, db_path: str = None) -> Optional[dict]:
    """Get the signature record of a document."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            "SELECT * FROM document_signatures WHERE fk_ecm_file = ?",
            (document_id,),
        ).fetchone()
        return dict(row) if row else None


# ─── Statistics ───────────────────────────────────────────────────────────────


def count_pdfs(entity: int = 1, db_path: str = None) -> int:
    """Count registered PDF documents in an entity."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT COUNT(*) AS count FROM ecm_files
               WHERE lower(filename) LIKE '%.pdf' AND entity = ?""",
            (entity,),
        ).fetchone()
        return int(row["count"])


def count_signed(entity: int = 1, db_path: str = None) -> int:
    """Count documents in an entity recorded as signed."""
    with get_connection(db_path) as conn:
        row = conn.execute(
            """SELECT COUNT(*) AS count FROM document_signatures ds
               INNER JOIN ecm_files ef ON ds.fk_ecm_file = ef.id
               WHERE ds.has_signature = 1 AND ef.entity = ?""",
            (entity,),
        ).fetchone()
        return int(row["count"])
