"""End-to-end stamping through the reportlab/PyPDF2 backend"""

from io import BytesIO

import pytest
from PyPDF2 import PdfReader

from pdf_stamper import (
    BackendDrawFailure,
    PdfStamperError,
    ReportlabBackend,
    SourceUnreadable,
    StamperSettings,
    StampingSession,
    decode_custom_metadata,
    decrypt_file,
)
from pdf_stamper.session import PRINT_ONLY_PERMISSIONS
from tests.conftest import RecordingBackend, make_pages


def _content(page) -> bytes:
    return page.get_contents().get_data()


class TestImport:

    def test_page_count_and_sizes_preserved(self, mixed_pdf, tmp_path):
        out = tmp_path / "out.pdf"
        session = StampingSession().from_file(mixed_pdf)
        assert session.page_count == 3
        assert [p.orientation for p in session.document.pages] == ["P", "L", "P"]

        session.stamp_text("X", 10, 10).save(out)

        src, dst = PdfReader(str(mixed_pdf)), PdfReader(str(out))
        assert len(dst.pages) == len(src.pages)
        for a, b in zip(src.pages, dst.pages):
            assert float(a.mediabox.width) == pytest.approx(float(b.mediabox.width))
            assert float(a.mediabox.height) == pytest.approx(float(b.mediabox.height))

    def test_sizes_in_points(self, sample_pdf):
        session = StampingSession(StamperSettings(unit="pt")).from_file(sample_pdf)
        page = session.document.pages[0]
        assert page.width == pytest.approx(595.2756, abs=1e-3)
        assert page.height == pytest.approx(841.8898, abs=1e-3)

    def test_sizes_in_millimetres(self, sample_pdf):
        page = StampingSession().from_file(sample_pdf).document.pages[0]
        assert page.width == pytest.approx(210.0, abs=1e-3)
        assert page.height == pytest.approx(297.0, abs=1e-3)

    def test_missing_source(self, tmp_path):
        with pytest.raises(SourceUnreadable):
            StampingSession().from_file(tmp_path / "nope.pdf")

    def test_not_a_pdf(self, tmp_path):
        bogus = tmp_path / "bogus.pdf"
        bogus.write_bytes(b"this is not a pdf at all")
        with pytest.raises(SourceUnreadable):
            StampingSession().from_file(bogus)

    def test_output_requires_source(self):
        with pytest.raises(PdfStamperError):
            StampingSession().output()


class TestStamping:

    def test_text_on_every_page(self, sample_pdf, tmp_path):
        out = tmp_path / "test-text.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("TEST", 50, 50).save(out)

        assert out.exists()
        assert out.stat().st_size > 1000
        reader = PdfReader(str(out))
        for page in reader.pages:
            assert "TEST" in page.extract_text()

    def test_only_on_pages(self, sample_pdf, tmp_path):
        out = tmp_path / "test-specific-page.pdf"
        StampingSession().from_file(sample_pdf).only_on_pages([1]).stamp_text("PAGE 1 ONLY", 50, 50).save(out)

        reader = PdfReader(str(out))
        assert "PAGE 1 ONLY" in reader.pages[0].extract_text()
        assert "PAGE 1 ONLY" not in reader.pages[1].extract_text()

    def test_filter_change_does_not_touch_queued_stamps(self, sample_pdf, tmp_path):
        out = tmp_path / "filters.pdf"
        (
            StampingSession()
            .from_file(sample_pdf)
            .only_on_pages([2])
            .stamp_text("SECOND", 10, 10)
            .only_on_pages([])
            .stamp_text("BOTH", 10, 30)
            .save(out)
        )
        reader = PdfReader(str(out))
        assert b"SECOND" not in _content(reader.pages[0])
        assert b"SECOND" in _content(reader.pages[1])
        assert all(b"BOTH" in _content(p) for p in reader.pages)

    def test_stacking_follows_queue_order(self, sample_pdf, tmp_path):
        out = tmp_path / "stack.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("FIRSTOP", 50, 50).stamp_text("SECONDOP", 50, 50).save(out)
        data = _content(PdfReader(str(out)).pages[1])
        assert data.index(b"FIRSTOP") < data.index(b"SECONDOP")

    def test_watermark_over_content(self, sample_pdf, tmp_path):
        out = tmp_path / "test-watermark.pdf"
        StampingSession().from_file(sample_pdf).watermark_text("CONFIDENTIAL").save(out)

        for i, page in enumerate(PdfReader(str(out)).pages, start=1):
            data = _content(page)
            assert data.index(f"(SamplePage{i})".encode()) < data.index(b"(CONFIDENTIAL)")

    def test_watermark_under_content(self, sample_pdf, tmp_path):
        out = tmp_path / "under.pdf"
        (
            StampingSession()
            .from_file(sample_pdf)
            .watermark_text("DRAFT", {"layer": "under", "color": "#FF0000"})
            .stamp_text("ONTOP", 10, 10)
            .save(out)
        )
        data = _content(PdfReader(str(out)).pages[0])
        assert data.index(b"(DRAFT)") < data.index(b"(SamplePage1)") < data.index(b"(ONTOP)")

    def test_watermark_only_pages_option(self, sample_pdf, tmp_path):
        out = tmp_path / "wm-page.pdf"
        StampingSession().from_file(sample_pdf).watermark_text("P2", {"only_pages": [2]}).save(out)
        reader = PdfReader(str(out))
        assert b"(P2)" not in _content(reader.pages[0])
        assert b"(P2)" in _content(reader.pages[1])

    def test_image_and_html(self, sample_pdf, sample_png, tmp_path):
        out = tmp_path / "rich.pdf"
        (
            StampingSession()
            .from_file(sample_pdf)
            .stamp_image(sample_png, 20, 20, {"width": 30, "rotate": 15})
            .stamp_html("<p><strong>Approved</strong> by QA</p>", 20, 100, {"width": 80})
            .save(out)
        )
        data = _content(PdfReader(str(out)).pages[0])
        assert b" Do" in data
        assert b"Approved" in data

    def test_bad_image_aborts_save(self, sample_pdf, tmp_path):
        bad = tmp_path / "bad.png"
        bad.write_bytes(b"definitely not an image")
        out = tmp_path / "never.pdf"
        session = StampingSession().from_file(sample_pdf).stamp_image(bad, 10, 10)
        with pytest.raises(BackendDrawFailure):
            session.save(out)
        assert not out.exists()

    def test_unregistered_font_aborts_save(self, sample_pdf, tmp_path):
        out = tmp_path / "never.pdf"
        session = StampingSession(StamperSettings(default_font="Arial")).from_file(sample_pdf).stamp_text("X", 1, 1)
        with pytest.raises(BackendDrawFailure):
            session.save(out)
        assert not out.exists()

    def test_malformed_color_degrades(self, sample_pdf, tmp_path):
        out = tmp_path / "color.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("HUE", 10, 10, {"color": ["a", 0, 0]}).save(out)
        assert b"(HUE)" in _content(PdfReader(str(out)).pages[0])

    def test_fresh_sessions_share_nothing(self, sample_pdf, tmp_path):
        out1, out2 = tmp_path / "test1.pdf", tmp_path / "test2.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("FIRST", 50, 50).save(out1)
        StampingSession().from_file(sample_pdf).save(out2)
        assert out1.stat().st_size != out2.stat().st_size
        assert b"FIRST" not in _content(PdfReader(str(out2)).pages[0])

    def test_output_can_be_rendered_twice(self, sample_pdf):
        session = StampingSession().from_file(sample_pdf).stamp_text("ONCE", 10, 10)
        first, second = session.output(), session.output()
        for data in (first, second):
            assert _content(PdfReader(BytesIO(data)).pages[0]).count(b"(ONCE)") == 1

    def test_overwrites_existing_output(self, sample_pdf, tmp_path):
        out = tmp_path / "out.pdf"
        out.write_bytes(b"old")
        StampingSession().from_file(sample_pdf).save(out)
        assert out.read_bytes().startswith(b"%PDF")


class TestConfig:

    def test_apply_config_stamp(self, sample_pdf, tmp_path):
        out = tmp_path / "test-config.pdf"
        config = {"stamp": {"type": "text", "value": "APPROVED", "x": 100, "y": 150}}
        StampingSession().from_file(sample_pdf).apply_config(config).save(out)
        assert all(b"APPROVED" in _content(p) for p in PdfReader(str(out)).pages)

    def test_apply_config_page_and_watermark(self, sample_pdf, tmp_path):
        out = tmp_path / "cfg.pdf"
        config = {
            "stamp": {"type": "html", "value": "<i>checked</i>", "x": 10, "y": 10, "page": 2},
            "watermark": {"text": "SECRET", "opacity": 0.3},
        }
        session = StampingSession().from_file(sample_pdf).apply_config(config)
        ops = list(session.queue)
        assert ops[0].kind == "html" and ops[0].pages == frozenset({2})
        # the stamp page becomes the session default, like only_on_pages()
        assert ops[1].kind == "watermark" and ops[1].pages == frozenset({2})
        assert ops[1].options.opacity == 0.3
        assert ops[1].options.rotate == 45

        session.save(out)
        reader = PdfReader(str(out))
        assert b"SECRET" not in _content(reader.pages[0])
        assert b"SECRET" in _content(reader.pages[1])

    def test_unknown_stamp_type_is_text(self, sample_pdf):
        session = StampingSession().from_file(sample_pdf).apply_config({"stamp": {"type": "stencil", "value": "v"}})
        assert list(session.queue)[0].kind == "text"

    def test_empty_watermark_text_ignored(self, sample_pdf):
        session = StampingSession().from_file(sample_pdf).apply_config({"watermark": {"text": ""}})
        assert len(session.queue) == 0


class TestMetadata:

    def test_metadata_written(self, sample_pdf, tmp_path):
        out = tmp_path / "meta.pdf"
        (
            StampingSession()
            .from_file(sample_pdf)
            .set_metadata(title="Quarterly", author="Finance", keywords="q3, report")
            .set_custom_metadata({"ref": "INV-7", "amount": 12.5})
            .save(out)
        )
        info = PdfReader(str(out)).metadata
        assert info["/Title"] == "Quarterly"
        assert info["/Author"] == "Finance"
        assert info["/Creator"] == "PDF Stamper"
        assert info["/Keywords"].startswith("q3, report | meta:")
        assert decode_custom_metadata(info["/Keywords"]) == {"ref": "INV-7", "amount": 12.5}

    def test_creator_from_settings(self):
        backend = RecordingBackend(make_pages(1))
        session = StampingSession(StamperSettings(creator="Acme Stamp"), backend=backend).from_file("x.pdf")
        session.output()
        assert backend.metadata == {"/Creator": "Acme Stamp"}


class TestSecurity:

    def test_encrypt_pdf(self, sample_pdf, tmp_path):
        out = tmp_path / "test-encrypted.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("LOCKED", 10, 10).encrypt_pdf("1234").save(out)

        reader = PdfReader(str(out))
        assert reader.is_encrypted
        assert reader.decrypt("1234")
        assert len(reader.pages) == 2
        permissions = int(reader.trailer["/Encrypt"].get_object()["/P"])
        assert permissions & 0b100
        assert not permissions & 0b10000

    def test_reused_backend_forgets_protection(self, sample_pdf, tmp_path):
        backend = ReportlabBackend()
        locked, plain = tmp_path / "locked.pdf", tmp_path / "plain.pdf"
        StampingSession(backend=backend).from_file(sample_pdf).set_metadata(title="First").encrypt_pdf("1234").save(locked)
        StampingSession(backend=backend).from_file(sample_pdf).save(plain)

        assert PdfReader(str(locked)).is_encrypted
        reader = PdfReader(str(plain))
        assert not reader.is_encrypted
        assert "/Title" not in reader.metadata

    def test_protection_request(self):
        backend = RecordingBackend(make_pages(1))
        StampingSession(backend=backend).from_file("x.pdf").encrypt_pdf("pw").output()
        user, owner, permissions = backend.protection
        assert user == "pw"
        assert owner and owner != "pw"
        assert permissions == PRINT_ONLY_PERMISSIONS

    def test_encrypt_file_round_trip(self, sample_pdf, tmp_path):
        out = tmp_path / "sealed.pdf"
        StampingSession().from_file(sample_pdf).stamp_text("SEALED", 10, 10).encrypt_file("passphrase").save(out)

        assert not out.read_bytes().startswith(b"%PDF")
        plain = decrypt_file(out, "passphrase", tmp_path / "plain.pdf")
        assert b"SEALED" in _content(PdfReader(str(plain)).pages[0])

    def test_both_layers(self, sample_pdf, tmp_path):
        out = tmp_path / "both.pdf"
        StampingSession().from_file(sample_pdf).encrypt_pdf("1234").encrypt_file("k").save(out)
        plain = decrypt_file(out, "k", tmp_path / "plain.pdf")
        reader = PdfReader(str(plain))
        assert reader.is_encrypted
        assert reader.decrypt("1234")

    def test_empty_passphrase_rejected(self, sample_pdf):
        with pytest.raises(ValueError):
            StampingSession().from_file(sample_pdf).encrypt_file("")
