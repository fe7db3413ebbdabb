# index.py — PDF Stamper front-end
# Features:
#  - Text / Image / HTML stamps and watermarks, each with its own page list
#  - Document metadata + custom metadata carried in Keywords
#  - Optional PDF password and whole-file AES-GCM envelope
#  - Template Save/Load (stamp list as JSON)
#  - Envelope decryption
#
# Run with:  streamlit run index.py

import io
import json
import base64
import tempfile
from pathlib import Path
from typing import List, Optional

import streamlit as st
from PIL import Image
from PyPDF2 import PdfReader
import pypdfium2 as pdfium

from pdf_stamper import (
    DecryptionFailed,
    PdfStamperError,
    StampingSession,
    decode_custom_metadata,
    open_envelope,
)
from pdf_stamper.config import stamps_to_template_dict, template_dict_to_stamps
from pdf_stamper.geometry import ANCHORS
from pdf_stamper.operations import HTML, IMAGE, KINDS, WATERMARK


# ─────────────────────────────────────────────────────────────────────────────
# App config / constants
st.set_page_config(page_title="PDF Stamper", layout="wide")
PREVIEW_LIMIT = 10  # limit preview pages for performance


# ─────────────────────────────────────────────────────────────────────────────
# Utility functions
def parse_pages(text: str) -> List[int]:
    """'1, 3-5' -> [1, 3, 4, 5]; blank means all pages."""
    pages = []
    for part in text.replace(" ", "").split(","):
        if not part:
            continue
        if "-" in part:
            lo, hi = part.split("-", 1)
            pages.extend(range(int(lo), int(hi) + 1))
        else:
            pages.append(int(part))
    return pages


def compress_image(img_bytes: bytes, max_size=(800, 800)) -> bytes:
    """Shrink large uploads before they are embedded; keeps alpha as PNG."""
    im = Image.open(io.BytesIO(img_bytes))
    if im.width <= max_size[0] and im.height <= max_size[1]:
        return img_bytes
    im.thumbnail(max_size)
    out = io.BytesIO()
    im.save(out, format="PNG")
    return out.getvalue()


# ─────────────────────────────────────────────────────────────────────────────
# Session defaults
ss = st.session_state
if "stamps" not in ss: ss.stamps = []
if "pdf_bytes" not in ss: ss.pdf_bytes = None
if "preview_page_index" not in ss: ss.preview_page_index = 0


# ─────────────────────────────────────────────────────────────────────────────
# Session building
def build_session(pdf_bytes: bytes, stamps: List[dict], workdir: Path, meta: dict, custom: dict,
                  pdf_password: str = "", passphrase: str = "") -> StampingSession:
    src = workdir / "source.pdf"
    src.write_bytes(pdf_bytes)

    session = StampingSession().from_file(src)
    for i, s in enumerate(stamps):
        options = dict(s.get("options", {}))
        if s["type"] == WATERMARK:
            session.watermark_text(s["value"], options)
        elif s["type"] == IMAGE:
            img_path = workdir / f"stamp_{i}.png"
            img_path.write_bytes(base64.b64decode(s["image_b64"]))
            session.stamp_image(img_path, s["x"], s["y"], options)
        elif s["type"] == HTML:
            session.stamp_html(s["value"], s["x"], s["y"], options)
        else:
            session.stamp_text(s["value"], s["x"], s["y"], options)

    session.set_metadata(**meta)
    if custom:
        session.set_custom_metadata(custom)
    if pdf_password:
        session.encrypt_pdf(pdf_password)
    if passphrase:
        session.encrypt_file(passphrase)
    return session


def render_pdf_pages_to_images(pdf_bytes: bytes, scale: float, limit: int) -> List[Image.Image]:
    pdf = pdfium.PdfDocument(pdf_bytes)
    images = []
    for i in range(min(len(pdf), limit)):
        pg = pdf.get_page(i)
        images.append(pg.render(scale=scale).to_pil())
        pg.close()
    pdf.close()
    return images


# ─────────────────────────────────────────────────────────────────────────────
# Sidebar — Upload PDF + Add New Stamp
with st.sidebar:
    st.header("PDF Upload")
    pdf_file = st.file_uploader("Upload PDF", type=["pdf"])
    render_scale = st.slider("Preview quality / scale", 1.0, 3.0, 1.5, 0.1)
    if pdf_file:
        ss.pdf_bytes = pdf_file.read()

    st.markdown("---")
    st.header("Add New Stamp")
    new_type = st.radio("Type", list(KINDS), horizontal=True)
    pages_txt = st.text_input("Only on pages (e.g. 1,3-4; blank = all)", "")

    options: dict = {}
    value = ""
    image_b64: Optional[str] = None
    nx = ny = 0.0

    if new_type == WATERMARK:
        value = st.text_input("Watermark text", "CONFIDENTIAL")
        options["position"] = st.selectbox("Position", list(ANCHORS), index=ANCHORS.index("center"))
        options["opacity"] = st.slider("Opacity", 0.0, 1.0, 0.15, 0.05)
        options["rotate"] = st.slider("Rotation (°)", -180.0, 180.0, 45.0)
        options["layer"] = st.radio("Layer", ["over", "under"], horizontal=True)
        options["color"] = st.color_picker("Color", "#000000")
    else:
        nx = st.number_input("X (mm)", 0.0, 5000.0, 50.0)
        ny = st.number_input("Y (mm)", 0.0, 5000.0, 50.0)
        rot = st.slider("Rotation (°)", -180.0, 180.0, 0.0)
        if rot:
            options["rotate"] = rot
        if new_type == IMAGE:
            up = st.file_uploader("Image (PNG/JPG)", type=["png", "jpg", "jpeg"], key="new_img")
            if up:
                image_b64 = base64.b64encode(compress_image(up.read())).decode("utf-8")
            value = up.name if up else ""
            options["width"] = st.number_input("Width (mm, 0 = natural)", 0.0, 5000.0, 40.0)
            options["height"] = st.number_input("Height (mm, 0 = keep ratio)", 0.0, 5000.0, 0.0)
        elif new_type == HTML:
            value = st.text_area("HTML", "<b>Approved</b><br/>by the review board")
            options["width"] = st.number_input("Width (mm, 0 = to page edge)", 0.0, 5000.0, 0.0)
            options["font_size"] = st.number_input("Font size (pt)", 4, 200, 12)
        else:
            value = st.text_input("Text", "APPROVED")
            options["font_size"] = st.number_input("Font size (pt)", 4, 200, 12)
            options["color"] = st.color_picker("Text color", "#000000")

    if st.button("➕ Add stamp"):
        try:
            only_pages = parse_pages(pages_txt)
        except ValueError:
            st.error("Page list must look like '1,3-4'.")
        else:
            if new_type == IMAGE and not image_b64:
                st.warning("Please upload an image.")
            else:
                if only_pages:
                    options["only_pages"] = only_pages
                entry = {"type": new_type, "value": value, "x": nx, "y": ny, "options": options}
                if image_b64:
                    entry["image_b64"] = image_b64
                ss.stamps.append(entry)
                st.success("Stamp added.")

# ─────────────────────────────────────────────────────────────────────────────
# Template Save/Load
st.sidebar.markdown("---")
st.sidebar.header("📁 Template Save/Load")
tpl_bytes = json.dumps(stamps_to_template_dict(ss.stamps), indent=2).encode("utf-8")
st.sidebar.download_button("💾 Download template", tpl_bytes, "stamp_template.json", "application/json")
tpl_file = st.sidebar.file_uploader("Upload template.json", type=["json"], key="tpl_upload")
if tpl_file and st.sidebar.button("📄 Apply Template"):
    try:
        ss.stamps = template_dict_to_stamps(json.loads(tpl_file.read().decode("utf-8")))
        st.sidebar.success("Template applied ✅")
    except ValueError as e:
        st.sidebar.error(f"Error applying template: {e}")


# ─────────────────────────────────────────────────────────────────────────────
# MAIN LAYOUT — Preview (left) and Right Control Panel
main_col, right_col = st.columns([0.62, 0.38], gap="large")

with right_col:
    st.header("Stamp Queue")
    if not ss.stamps:
        st.info("Add a stamp from the left sidebar.")
    for i, s in enumerate(list(ss.stamps)):
        pages = s.get("options", {}).get("only_pages") or "all"
        c1, c2 = st.columns([0.8, 0.2])
        with c1:
            st.write(f"#{i+1} [{s['type'].upper()}] pages {pages}: {s['value'][:30]}")
        with c2:
            if st.button("🗑", key=f"del_{i}"):
                ss.stamps.pop(i)
                st.rerun()

    st.markdown("---")
    with st.expander("📝 Metadata", expanded=False):
        meta = {
            "title": st.text_input("Title", ""),
            "author": st.text_input("Author", ""),
            "subject": st.text_input("Subject", ""),
            "keywords": st.text_input("Keywords", ""),
            "creator": st.text_input("Creator", ""),
        }
        custom_txt = st.text_area("Custom metadata (JSON object)", "{}")
    try:
        custom = json.loads(custom_txt or "{}")
        if not isinstance(custom, dict):
            raise ValueError
    except ValueError:
        st.error("Custom metadata must be a JSON object.")
        custom = {}

    with st.expander("🔐 Security Options (optional)", expanded=False):
        pdf_password = st.text_input("PDF password (print-only)", type="password")
        passphrase = st.text_input("File envelope passphrase (AES-256-GCM)", type="password")
        if passphrase:
            st.caption("The result will be an encrypted envelope, not a PDF viewer file.")

    apply_now = st.button("✅ Apply Stamp(s) to PDF", use_container_width=True, key="apply_btn")

    st.markdown("---")
    with st.expander("🔓 Decrypt an envelope", expanded=False):
        sealed_file = st.file_uploader("Sealed file", key="sealed_upload")
        open_pw = st.text_input("Passphrase", type="password", key="open_pw")
        if sealed_file and open_pw and st.button("Decrypt"):
            try:
                plain = open_envelope(sealed_file.read(), open_pw)
            except DecryptionFailed:
                st.error("❌ Wrong passphrase or corrupted file.")
            else:
                st.download_button("📥 Download decrypted PDF", plain, file_name="decrypted.pdf", mime="application/pdf")

# LEFT (CENTER) — Preview of the stamped output
with main_col:
    st.header("Preview")
    if not ss.pdf_bytes:
        st.info("Upload a PDF in the left sidebar.")
    else:
        try:
            with tempfile.TemporaryDirectory() as tmp:
                preview_session = build_session(ss.pdf_bytes, ss.stamps, Path(tmp), meta, custom)
                preview_bytes = preview_session.output()
            base_imgs = render_pdf_pages_to_images(preview_bytes, render_scale, PREVIEW_LIMIT)
        except PdfStamperError as e:
            st.error(f"Unable to render preview: {e}")
            base_imgs = []

        if base_imgs:
            if len(base_imgs) > 1:
                ss.preview_page_index = st.slider("Preview page", 1, len(base_imgs), ss.preview_page_index + 1, 1) - 1
            else:
                ss.preview_page_index = 0
            idx = min(ss.preview_page_index, len(base_imgs) - 1)
            st.image(base_imgs[idx], caption=f"Preview page {idx+1}/{len(base_imgs)}")
            keywords = (PdfReader(io.BytesIO(preview_bytes)).metadata or {}).get("/Keywords")
            st.caption(f"Custom metadata: {decode_custom_metadata(keywords) or 'none'}")


# ─────────────────────────────────────────────────────────────────────────────
# APPLY — render, protect, seal, download
if apply_now:
    if not ss.pdf_bytes:
        st.error("Please upload a PDF.")
    else:
        with st.spinner("Applying stamps to PDF..."):
            try:
                with tempfile.TemporaryDirectory() as tmp:
                    session = build_session(ss.pdf_bytes, ss.stamps, Path(tmp), meta, custom, pdf_password, passphrase)
                    out_path = session.save(Path(tmp) / "stamped.pdf")
                    result = out_path.read_bytes()
            except PdfStamperError as e:
                st.error(f"❌ Stamping failed: {e}")
                st.stop()

        fname = "stamped.pdf.enc" if passphrase else "stamped_output.pdf"
        mime = "application/octet-stream" if passphrase else "application/pdf"
        st.download_button("📥 Download stamped PDF", result, file_name=fname, mime=mime)
        st.success("✅ Done! Stamps applied.")
