"""Tests for rendering pages to images."""

import pytest

from app.convert import ImageConverter, normalize_format
from app.errors import InvalidRequest, MalformedPageSpec, RenderFailure
from tests.fakes import FakeEngine, make_pdf


@pytest.fixture
def out_dir(tmp_path):
    return tmp_path / "out"


class TestNormalizeFormat:
    @pytest.mark.parametrize("value, expected", [("png", "png"), ("JPG", "jpeg"), ("jpeg", "jpeg"), ("tif", "tiff"), (None, "png")])
    def test_aliases(self, value, expected):
        assert normalize_format(value) == expected

    def test_unsupported(self):
        with pytest.raises(InvalidRequest, match="Unsupported image format"):
            normalize_format("bmp")


class TestImageConverter:
    def test_requested_order(self, out_dir):
        engine = FakeEngine()
        artifacts = ImageConverter(engine, out_dir).convert(make_pdf("P", 10), pages="5,1", base="scan")

        assert [a.name for a in artifacts] == ["scan_page_05.png", "scan_page_01.png"]
        assert engine.rendered == [5, 1]
        assert artifacts[0].path.read_bytes() == b"IMG:P5:png:150"

    def test_all_pages_by_default(self, out_dir):
        artifacts = ImageConverter(FakeEngine(), out_dir).convert(make_pdf("P", 3), base="scan")
        assert [a.name for a in artifacts] == ["scan_page_1.png", "scan_page_2.png", "scan_page_3.png"]

    def test_padding_follows_page_count(self, out_dir):
        artifacts = ImageConverter(FakeEngine(), out_dir).convert(make_pdf("P", 125), pages="7", image_format="jpg", base="b")
        assert [a.name for a in artifacts] == ["b_page_007.jpeg"]

    def test_repeated_page_rendered_once(self, out_dir):
        engine = FakeEngine()
        artifacts = ImageConverter(engine, out_dir).convert(make_pdf("P", 4), pages="2,2", base="x")

        assert engine.rendered == [2]
        assert len(artifacts) == 2
        assert artifacts[0] == artifacts[1]

    @pytest.mark.parametrize("requested, used", [(10, 72), (150, 150), (1200, 300)])
    def test_dpi_clamped(self, out_dir, requested, used):
        artifacts = ImageConverter(FakeEngine(), out_dir).convert(make_pdf("P", 1), dpi=requested)
        assert artifacts[0].path.read_bytes().endswith(f":{used}".encode())

    def test_out_of_range_selection_is_empty(self, out_dir):
        with pytest.raises(InvalidRequest, match="No valid pages"):
            ImageConverter(FakeEngine(), out_dir).convert(make_pdf("P", 3), pages="7-9")

    def test_malformed_selection(self, out_dir):
        with pytest.raises(MalformedPageSpec):
            ImageConverter(FakeEngine(), out_dir).convert(make_pdf("P", 3), pages="1,x")

    def test_render_failure_keeps_earlier_images(self, out_dir):
        engine = FakeEngine(fail_render_pages=[3])
        with pytest.raises(RenderFailure) as exc:
            ImageConverter(engine, out_dir).convert(make_pdf("P", 5), pages="1-5", base="r")

        assert exc.value.page == 3
        kept = exc.value.artifacts
        assert [a.name for a in kept] == ["r_page_1.png", "r_page_2.png"]
        assert all(a.path.exists() for a in kept)
        assert sorted(p.name for p in out_dir.iterdir()) == ["r_page_1.png", "r_page_2.png"]
        assert all(doc.closed for doc in engine.opened)
