"""
Test Suite for Signature Tracking
=================================
Integration tests for the SQLite store, the batch scanner, the CLI and
the HTTP service.
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from sigscan import database as db
from sigscan import storage
from sigscan.cli import EXIT_NOT_SIGNED, cli
from sigscan.engine import ScannerConfig, SignatureEngine
from sigscan.models import SignatureDetails, SignatureType
from sigscan.scanner import SignatureScanner
from sigscan.server import create_app
from sigscan.store import SqliteSignatureStore


SIGNED_PDF = (
    b"%PDF-1.7\n"
    b"<</Type/Sig/SubFilter/ETSI.CAdES.detached/ByteRange[0 10 20 30]"
    b"/Name(Jane Doe)/M(D:20250101093000+01'00')>>\n"
    b"%%EOF\n"
)

UNSIGNED_PDF = b"%PDF-1.4\n<</Type/Catalog>>\n%%EOF\n"


def signed_details(name: str = "Jane Doe") -> SignatureDetails:
    return SignatureDetails(
        has_signature=True,
        signature_type=SignatureType.CADES_DETACHED,
        signer_name=name,
        signature_date="2025-01-01 09:30:00",
    )


def write_document(data_root: Path, filepath: str, filename: str, data: bytes) -> Path:
    path = data_root / "ecm" / filepath / filename
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return path


@pytest.fixture
def db_path(tmp_path) -> str:
    return str(tmp_path / "signatures.sqlite")


@pytest.fixture
def data_root(tmp_path) -> Path:
    root = tmp_path / "data"
    root.mkdir()
    return root


@pytest.fixture
def store(db_path) -> SqliteSignatureStore:
    return SqliteSignatureStore(db_path)


@pytest.fixture
def engine(db_path, data_root) -> SignatureEngine:
    return SignatureEngine(ScannerConfig(
        db_path=db_path,
        data_root=str(data_root),
        log_level="WARNING",
    ))


# ═══════════════════════════════════════════════════════════════════════════════
# STORAGE / ENGINE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestStorage:
    """Test the file-reading collaborator."""

    def test_read_bytes(self, tmp_path):
        path = tmp_path / "doc.pdf"
        path.write_bytes(SIGNED_PDF)
        assert storage.read_bytes(path) == SIGNED_PDF

    def test_read_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            storage.read_bytes(tmp_path / "missing.pdf")

    def test_resolve_document_path(self, tmp_path):
        path = storage.resolve_document_path(
            "contracts/2025", "lease.pdf", data_root=str(tmp_path)
        )
        assert path == tmp_path / "ecm" / "contracts" / "2025" / "lease.pdf"

    def test_data_root_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SIGSCAN_DATA_ROOT", str(tmp_path))
        assert storage.get_data_root() == tmp_path


class TestSignatureEngine:
    """Test path-level inspection."""

    def test_check_file(self, engine, tmp_path):
        signed = tmp_path / "signed.pdf"
        signed.write_bytes(SIGNED_PDF)
        unsigned = tmp_path / "unsigned.pdf"
        unsigned.write_bytes(UNSIGNED_PDF)

        assert engine.check_file(signed) is True
        assert engine.check_file(unsigned) is False

    def test_get_details(self, engine, tmp_path):
        path = tmp_path / "signed.pdf"
        path.write_bytes(SIGNED_PDF)
        assert engine.get_details(str(path)) == signed_details()

    def test_missing_file_raises(self, engine, tmp_path):
        with pytest.raises(FileNotFoundError):
            engine.get_details(tmp_path / "nope.pdf")

    def test_config_reads_environment(self, monkeypatch):
        monkeypatch.setenv("SIGSCAN_DB_PATH", "/tmp/env.sqlite")
        assert ScannerConfig().db_path == "/tmp/env.sqlite"


# ═══════════════════════════════════════════════════════════════════════════════
# STORE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSqliteSignatureStore:
    """Test the SQLite-backed SignatureStore."""

    def test_init_is_idempotent(self, db_path):
        SqliteSignatureStore(db_path)
        SqliteSignatureStore(db_path)
        db.init_db(db_path)

    def test_register_and_get_document(self, store):
        document_id = store.register_document("contracts", "lease.pdf", entity=3)
        document = store.get_document(document_id)
        assert document.filepath == "contracts"
        assert document.filename == "lease.pdf"
        assert document.entity == 3

    def test_get_unknown(self, store):
        assert store.get(999) is None
        assert store.get_record(999) is None
        assert store.get_document(999) is None

    def test_upsert_and_get(self, store):
        document_id = store.register_document("", "a.pdf")
        store.upsert(document_id, signed_details())

        assert store.get(document_id) == signed_details()
        record = store.get_record(document_id)
        assert record.document_id == document_id
        assert record.date_checked is not None

    def test_upsert_replaces_record(self, store, db_path):
        document_id = store.register_document("", "a.pdf")
        store.upsert(document_id, signed_details("First"))
        store.upsert(document_id, signed_details("Second"))

        assert store.get(document_id).signer_name == "Second"
        with db.get_connection(db_path) as conn:
            count = conn.execute(
                "SELECT COUNT(*) FROM document_signatures WHERE fk_ecm_file = ?",
                (document_id,),
            ).fetchone()[0]
        assert count == 1

    def test_upsert_unsigned(self, store):
        document_id = store.register_document("", "a.pdf")
        store.upsert(document_id, SignatureDetails.not_signed())
        assert store.get(document_id) == SignatureDetails.not_signed()

    def test_list_unprocessed(self, store):
        a = store.register_document("", "a.pdf")
        b = store.register_document("", "B.PDF")
        store.register_document("", "notes.txt")
        store.register_document("", "c.pdf", entity=2)

        assert store.list_unprocessed(entity=1) == [a, b]
        assert store.list_unprocessed(entity=1, limit=1) == [a]

        store.upsert(a, SignatureDetails.not_signed())
        assert store.list_unprocessed(entity=1) == [b]

    def test_statistics(self, store):
        ids = [store.register_document("", f"doc{i}.pdf") for i in range(4)]
        store.register_document("", "other.pdf", entity=2)
        store.upsert(ids[0], signed_details())
        store.upsert(ids[1], SignatureDetails.not_signed())

        stats = store.statistics(entity=1)
        assert stats.total_pdfs == 4
        assert stats.signed_pdfs == 1
        assert stats.unsigned_pdfs == 3
        assert stats.percentage_signed == 25.0

    def test_statistics_empty(self, store):
        stats = store.statistics(entity=1)
        assert stats.total_pdfs == 0
        assert stats.percentage_signed == 0.0


# ═══════════════════════════════════════════════════════════════════════════════
# SCANNER TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestSignatureScanner:
    """Test batch scanning over registered documents."""

    def _register_fixture_documents(self, store, data_root):
        write_document(data_root, "contracts", "signed.pdf", SIGNED_PDF)
        write_document(data_root, "contracts", "unsigned.pdf", UNSIGNED_PDF)
        return (
            store.register_document("contracts", "signed.pdf"),
            store.register_document("contracts", "unsigned.pdf"),
            store.register_document("contracts", "missing.pdf"),
        )

    @pytest.mark.parametrize("parallel", [1, 4])
    def test_scan(self, store, engine, data_root, parallel):
        signed, unsigned, missing = self._register_fixture_documents(store, data_root)

        summary = SignatureScanner(store, engine).scan(entity=1, parallel=parallel)

        assert summary.success is True
        assert summary.processed == 3
        assert summary.signatures_found == 1
        assert summary.missing_files == 1
        assert summary.failed == 0
        assert summary.message == (
            "Processed 3 documents, found 1 with digital signatures"
        )

        assert store.get(signed) == signed_details()
        assert store.get(unsigned) == SignatureDetails.not_signed()
        assert store.get(missing) is None
        assert store.list_unprocessed(entity=1) == [missing]

    def test_rescan_only_touches_unprocessed(self, store, engine, data_root):
        self._register_fixture_documents(store, data_root)
        scanner = SignatureScanner(store, engine)
        scanner.scan()

        summary = scanner.scan()
        assert summary.processed == 1
        assert summary.missing_files == 1

    def test_nothing_to_scan(self, store, engine):
        summary = SignatureScanner(store, engine).scan()
        assert summary.processed == 0
        assert summary.success is True

    def test_limit(self, store, engine, data_root):
        self._register_fixture_documents(store, data_root)
        summary = SignatureScanner(store, engine).scan(limit=2)
        assert summary.processed == 2

    def test_negative_limit_rejected(self, store, engine, data_root):
        signed, _, _ = self._register_fixture_documents(store, data_root)
        with pytest.raises(ValueError):
            SignatureScanner(store, engine).scan(limit=-1)
        assert store.get(signed) is None

    def test_read_error_does_not_abort_batch(self, store, engine, data_root, monkeypatch):
        signed, unsigned, _ = self._register_fixture_documents(store, data_root)
        real_read = storage.read_bytes

        def flaky_read(path):
            if Path(path).name == "unsigned.pdf":
                raise PermissionError("permission denied")
            return real_read(path)

        monkeypatch.setattr(storage, "read_bytes", flaky_read)
        summary = SignatureScanner(store, engine).scan()

        assert summary.success is False
        assert summary.failed == 1
        assert len(summary.errors) == 1
        assert "permission denied" in summary.errors[0]
        assert summary.signatures_found == 1
        assert store.get(signed) == signed_details()
        assert store.get(unsigned) is None

    def test_progress_callback(self, store, engine, data_root):
        self._register_fixture_documents(store, data_root)
        calls = []
        SignatureScanner(store, engine).scan(
            progress_callback=lambda done, total: calls.append((done, total))
        )
        assert calls == [(1, 3), (2, 3), (3, 3)]


# ═══════════════════════════════════════════════════════════════════════════════
# CLI TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestCli:
    """Test the click command-line interface."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_check_signed(self, tmp_path):
        path = tmp_path / "signed.pdf"
        path.write_bytes(SIGNED_PDF)
        result = self.runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == 0
        assert "digitally signed" in result.output

    def test_check_unsigned(self, tmp_path):
        path = tmp_path / "unsigned.pdf"
        path.write_bytes(UNSIGNED_PDF)
        result = self.runner.invoke(cli, ["check", str(path)])
        assert result.exit_code == EXIT_NOT_SIGNED

    def test_check_missing_file(self, tmp_path):
        result = self.runner.invoke(cli, ["check", str(tmp_path / "nope.pdf")])
        assert result.exit_code != 0

    def test_details_json(self, tmp_path):
        path = tmp_path / "signed.pdf"
        path.write_bytes(SIGNED_PDF)
        result = self.runner.invoke(cli, ["details", str(path), "--json-output"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data == {
            "has_signature": True,
            "signature_type": "CAdES Detached",
            "signer_name": "Jane Doe",
            "signature_date": "2025-01-01 09:30:00",
            "certificate_issuer": None,
        }

    def test_details_table(self, tmp_path):
        path = tmp_path / "signed.pdf"
        path.write_bytes(SIGNED_PDF)
        result = self.runner.invoke(cli, ["details", str(path)])
        assert result.exit_code == 0
        assert "Jane Doe" in result.output

    def test_batch_json(self, tmp_path):
        (tmp_path / "a.pdf").write_bytes(SIGNED_PDF)
        (tmp_path / "b.pdf").write_bytes(UNSIGNED_PDF)
        (tmp_path / "notes.txt").write_bytes(SIGNED_PDF)

        result = self.runner.invoke(
            cli, ["batch", str(tmp_path), "--json-output", "-j", "2"]
        )
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert set(data["results"]) == {"a.pdf", "b.pdf"}
        assert data["results"]["a.pdf"]["has_signature"] is True
        assert data["results"]["b.pdf"]["has_signature"] is False
        assert data["errors"] == {}

    def test_batch_empty_directory(self, tmp_path):
        result = self.runner.invoke(cli, ["batch", str(tmp_path)])
        assert result.exit_code == 0
        assert "No PDF files found" in result.output

    def test_info(self, tmp_path):
        fitz = pytest.importorskip("fitz")
        path = tmp_path / "plain.pdf"
        doc = fitz.open()
        doc.new_page()
        doc.save(str(path))
        doc.close()

        result = self.runner.invoke(cli, ["info", str(path)])
        assert result.exit_code == 0
        assert "Pages" in result.output
        assert "Digitally Signed" in result.output

    def test_register_scan_status_stats(self, db_path, data_root):
        write_document(data_root, "contracts", "signed.pdf", SIGNED_PDF)
        base = ["--db", db_path, "--data-root", str(data_root)]

        result = self.runner.invoke(cli, base + ["register", "contracts", "signed.pdf"])
        assert result.exit_code == 0
        assert "Registered" in result.output

        result = self.runner.invoke(cli, base + ["scan", "--limit", "10"])
        assert result.exit_code == 0
        assert "found 1 with digital signatures" in result.output

        result = self.runner.invoke(cli, base + ["status", "1"])
        assert result.exit_code == 0
        assert "Jane Doe" in result.output

        result = self.runner.invoke(cli, base + ["stats"])
        assert result.exit_code == 0
        assert "Signed PDFs" in result.output
        assert "100.0%" in result.output

    def test_status_unknown_document(self, db_path):
        result = self.runner.invoke(cli, ["--db", db_path, "status", "42"])
        assert result.exit_code == 1

    def test_scan_rejects_negative_limit(self, db_path):
        result = self.runner.invoke(cli, ["--db", db_path, "scan", "--limit", "-1"])
        assert result.exit_code == 2
        assert "Invalid value" in result.output

    def test_scan_rejects_zero_workers(self, db_path):
        result = self.runner.invoke(cli, ["--db", db_path, "scan", "-j", "0"])
        assert result.exit_code == 2


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP SERVICE TESTS
# ═══════════════════════════════════════════════════════════════════════════════


class TestServer:
    """Test the Flask HTTP API."""

    @pytest.fixture
    def client(self, db_path, data_root):
        app = create_app({
            "DB_PATH": db_path,
            "DATA_ROOT": str(data_root),
            "LOG_LEVEL": "WARNING",
            "TESTING": True,
        })
        return app.test_client()

    def test_health(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.get_json()["status"] == "healthy"

    def test_info(self, client):
        response = client.get("/api/info")
        assert "CAdES Detached" in response.get_json()["signature_types"]

    def test_check_upload(self, client):
        response = client.post(
            "/api/check",
            data={"file": (io.BytesIO(SIGNED_PDF), "signed.pdf")},
            content_type="multipart/form-data",
        )
        assert response.status_code == 200
        data = response.get_json()
        assert data["has_signature"] is True
        assert data["signature_type"] == "CAdES Detached"
        assert data["signer_name"] == "Jane Doe"

    def test_check_file_path(self, client, tmp_path):
        path = tmp_path / "unsigned.pdf"
        path.write_bytes(UNSIGNED_PDF)
        response = client.post("/api/check", json={"file_path": str(path)})
        assert response.status_code == 200
        assert response.get_json()["has_signature"] is False

    def test_check_missing_path(self, client, tmp_path):
        response = client.post(
            "/api/check", json={"file_path": str(tmp_path / "nope.pdf")}
        )
        assert response.status_code == 404

    def test_check_without_input(self, client):
        response = client.post("/api/check")
        assert response.status_code == 400

    def test_register_scan_and_read_back(self, client, data_root):
        write_document(data_root, "hr", "contract.pdf", SIGNED_PDF)

        response = client.post(
            "/api/documents",
            json={"filepath": "hr", "filename": "contract.pdf"},
        )
        assert response.status_code == 201
        document_id = response.get_json()["document_id"]

        response = client.post("/api/scan", json={"entity": 1, "limit": 10})
        assert response.status_code == 200
        summary = response.get_json()
        assert summary["processed"] == 1
        assert summary["signatures_found"] == 1

        response = client.get(f"/api/documents/{document_id}/signature")
        assert response.status_code == 200
        record = response.get_json()
        assert record["details"]["signer_name"] == "Jane Doe"
        assert record["details"]["signature_date"] == "2025-01-01 09:30:00"

        response = client.get("/api/statistics?entity=1")
        stats = response.get_json()
        assert stats["total_pdfs"] == 1
        assert stats["signed_pdfs"] == 1
        assert stats["percentage_signed"] == 100.0

    def test_register_requires_filename(self, client):
        response = client.post("/api/documents", json={"filepath": "hr"})
        assert response.status_code == 400

    def test_unknown_signature_record(self, client):
        response = client.get("/api/documents/999/signature")
        assert response.status_code == 404

    def test_invalid_entity(self, client):
        response = client.get("/api/statistics?entity=abc")
        assert response.status_code == 400

    def test_scan_rejects_negative_limit(self, client, data_root):
        write_document(data_root, "hr", "contract.pdf", SIGNED_PDF)
        client.post("/api/documents", json={"filepath": "hr", "filename": "contract.pdf"})

        response = client.post("/api/scan", json={"limit": -1})
        assert response.status_code == 400

        stats = client.get("/api/statistics").get_json()
        assert stats["signed_pdfs"] == 0

    def test_scan_clamps_parallel(self, client, monkeypatch):
        seen = {}
        real_scan = SignatureScanner.scan

        def recording_scan(self, **kwargs):
            seen.update(kwargs)
            return real_scan(self, **kwargs)

        monkeypatch.setattr(SignatureScanner, "scan", recording_scan)
        response = client.post("/api/scan", json={"parallel": 100000})
        assert response.status_code == 200
        assert seen["parallel"] == 8

    def test_engine_is_shared_between_requests(self, client, monkeypatch):
        built = []
        real_init = SignatureEngine.__init__

        def counting_init(self, *args, **kwargs):
            built.append(self)
            real_init(self, *args, **kwargs)

        monkeypatch.setattr(SignatureEngine, "__init__", counting_init)
        for _ in range(3):
            response = client.post(
                "/api/check",
                data={"file": (io.BytesIO(SIGNED_PDF), "signed.pdf")},
                content_type="multipart/form-data",
            )
            assert response.status_code == 200
        client.post("/api/scan", json={})

        assert built == []
