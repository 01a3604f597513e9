"""HTTP tests for the API layer, run against the in-memory engine."""

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from tests.fakes import FakeEngine, make_pdf, read_pages


@pytest.fixture
def dirs(tmp_path):
    return tmp_path / "uploads", tmp_path / "outputs"


def make_client(dirs, engine=None, **kwargs):
    upload_dir, output_dir = dirs
    app = create_app(engine=engine or FakeEngine(), upload_dir=upload_dir, output_dir=output_dir, **kwargs)
    return TestClient(app)


@pytest.fixture
def client(dirs):
    with make_client(dirs) as c:
        yield c


def pdf_upload(label="P", pages=10, name="doc.pdf"):
    return ("file", (name, make_pdf(label, pages), "application/pdf"))


def staged_files(dirs):
    return list(dirs[0].iterdir())


class TestStartup:
    def test_directories_and_engine_ready(self, dirs):
        engine = FakeEngine()
        with make_client(dirs, engine):
            assert dirs[0].is_dir()
            assert dirs[1].is_dir()
            assert engine.initialized

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"ok": True, "max_upload_mb": 100}


class TestSplit:
    def test_ranges(self, client, dirs):
        r = client.post(
            "/api/split",
            files=[pdf_upload()],
            data={"splitMode": "ranges", "splitPoints": ["1-3", "4-10"], "outputFileNameBase": "report"},
        )

        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["message"] == "PDF split into 2 files successfully"
        names = [f["fileName"] for f in body["data"]]
        assert names == ["report_part1_pages1-3.pdf", "report_part2_pages4-10.pdf"]
        assert body["data"][0]["downloadUrl"] == "/api/download/report_part1_pages1-3.pdf"
        assert read_pages(dirs[1] / names[1]) == [f"P{i}" for i in range(4, 11)]
        assert staged_files(dirs) == []

    def test_out_of_bounds_range(self, client, dirs):
        r = client.post(
            "/api/split",
            files=[pdf_upload()],
            data={"splitMode": "ranges", "splitPoints": ["1-3", "9-15"]},
        )

        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert "15" in body["message"] and "10" in body["message"]
        assert body["data"] is None
        assert staged_files(dirs) == []
        assert list(dirs[1].iterdir()) == []

    def test_partial_failure_lists_kept_files(self, dirs):
        with make_client(dirs, FakeEngine(fail_assemble_on=2)) as client:
            r = client.post(
                "/api/split",
                files=[pdf_upload()],
                data={"splitMode": "pages", "splitPoints": ["4", "7"], "outputFileNameBase": "doc"},
            )

        assert r.status_code == 500
        body = r.json()
        assert body["success"] is False
        assert body["message"].startswith("PDF processing failed: ")
        assert [f["fileName"] for f in body["data"]] == ["doc_part1_pages1-3.pdf"]
        assert staged_files(dirs) == []


class TestMerge:
    def test_merge_in_order(self, client, dirs):
        r = client.post(
            "/api/merge",
            files=[
                ("files", ("b.pdf", make_pdf("B", 1), "application/pdf")),
                ("files", ("a.pdf", make_pdf("A", 2), "application/pdf")),
            ],
            data={"outputFileName": "together"},
        )

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["fileName"] == "together.pdf"
        assert read_pages(dirs[1] / "together.pdf") == ["B1", "A1", "A2"]
        assert staged_files(dirs) == []

    def test_single_file_rejected(self, client):
        r = client.post("/api/merge", files=[("files", ("a.pdf", make_pdf("A", 2), "application/pdf"))])
        assert r.status_code == 400
        assert "At least 2 files" in r.json()["message"]

    def test_non_pdf_rejected(self, client):
        r = client.post(
            "/api/merge",
            files=[
                ("files", ("a.pdf", make_pdf("A", 1), "application/pdf")),
                ("files", ("notes.txt", b"hello", "text/plain")),
            ],
        )
        assert r.status_code == 400
        assert "Only PDF files are supported" in r.json()["message"]


class TestConvertAndDownload:
    def test_convert_then_download(self, client):
        r = client.post(
            "/api/convert",
            files=[pdf_upload(pages=12)],
            data={"pages": "10,2", "imageFormat": "jpg", "dpi": "96", "outputFileNameBase": "scan"},
        )

        assert r.status_code == 200
        files = r.json()["data"]
        assert [f["fileName"] for f in files] == ["scan_page_10.jpeg", "scan_page_02.jpeg"]

        download = client.get(files[0]["downloadUrl"])
        assert download.status_code == 200
        assert download.headers["content-type"] == "image/jpeg"
        assert download.content == b"IMG:P10:jpeg:96"

    def test_render_failure_reports_kept_images(self, dirs):
        with make_client(dirs, FakeEngine(fail_render_pages=[2])) as client:
            r = client.post("/api/convert", files=[pdf_upload(pages=3)], data={"outputFileNameBase": "r"})

        assert r.status_code == 500
        assert [f["fileName"] for f in r.json()["data"]] == ["r_page_1.png"]

    def test_download_missing(self, client):
        r = client.get("/api/download/nothing.pdf")
        assert r.status_code == 404
        assert r.json()["success"] is False

    def test_download_traversal(self, client, dirs):
        (dirs[1].parent / "secret.txt").write_text("s")
        r = client.get("/api/download/sub%2F..%2F..%2Fsecret.txt")
        assert r.status_code == 400
        assert "Invalid file name" in r.json()["message"]


class TestDocumentEndpoints:
    def test_compress(self, client):
        r = client.post("/api/compress", files=[pdf_upload()], data={"compressionProfile": "print"})

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["originalSize"] > data["fileSize"]
        assert data["compressionRatio"] > 0
        assert r.json()["message"].startswith("PDF compressed successfully")

    def test_convert_pdfa(self, client):
        r = client.post(
            "/api/convert-pdfa",
            files=[pdf_upload(name="contract.pdf")],
            data={"conformanceLevel": "2b"},
        )

        assert r.status_code == 200
        assert r.json()["data"]["fileName"].startswith("contract_pdfa_")
        assert r.json()["message"] == "PDF converted to PDF/A-2B successfully"

    def test_convert_pdfa_message_uses_parsed_level(self, client):
        r = client.post("/api/convert-pdfa", files=[pdf_upload()], data={"conformanceLevel": "PDF/A-3u"})

        assert r.status_code == 200
        assert r.json()["message"] == "PDF converted to PDF/A-3U successfully"

    def test_convert_pdfa_bad_level(self, client):
        r = client.post("/api/convert-pdfa", files=[pdf_upload()], data={"conformanceLevel": "7q"})
        assert r.status_code == 400

    def test_validate_pdfa(self, dirs):
        with make_client(dirs, FakeEngine(pdfa=(2, "B"))) as client:
            r = client.post("/api/validate-pdfa", files=[pdf_upload()], data={"conformanceLevel": "3b"})

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["isCompliant"] is False
        assert data["conformanceLevel"] == "PDF/A-2b"
        assert data["errorCount"] == 1
        assert data["errors"][0]["code"] == "PDFA_LEVEL_MISMATCH"

    def test_extract(self, dirs):
        with make_client(dirs, FakeEngine(images_per_page=1)) as client:
            r = client.post("/api/extract", files=[pdf_upload(pages=3)], data={"pages": "1-2", "extractImages": "true"})

        assert r.status_code == 200
        data = r.json()["data"]
        assert [p["pageNumber"] for p in data["pages"]] == [1, 2]
        assert data["wordCount"] == 6
        assert data["imageCount"] == 2
        assert data["images"][0]["downloadUrl"].startswith("/api/download/extracted_")

    def test_metadata(self, client):
        r = client.post("/api/metadata", files=[pdf_upload(pages=4)])

        assert r.status_code == 200
        data = r.json()["data"]
        assert data["pageCount"] == 4
        assert data["fileSize"] == len(make_pdf("P", 4))
        assert data["title"] == "Fake document"
        assert data["pdfaConformance"] is None


class TestRequestErrors:
    def test_invalid_document(self, client, dirs):
        r = client.post("/api/metadata", files=[("file", ("doc.pdf", b"plain text", "application/pdf"))])
        assert r.status_code == 400
        assert r.json()["success"] is False
        assert staged_files(dirs) == []

    def test_empty_upload(self, client):
        r = client.post("/api/metadata", files=[("file", ("doc.pdf", b"", "application/pdf"))])
        assert r.status_code == 400
        assert r.json()["message"] == "No file provided for metadata extraction"

    def test_malformed_pages(self, client):
        r = client.post("/api/convert", files=[pdf_upload()], data={"pages": "1,,2"})
        assert r.status_code == 400
        assert "Invalid page specification" in r.json()["message"]

    def test_upload_too_large(self, dirs):
        with make_client(dirs, max_upload_bytes=16) as client:
            r = client.post("/api/metadata", files=[pdf_upload(pages=20)])

        assert r.status_code == 413
        assert r.json()["success"] is False
        assert staged_files(dirs) == []
