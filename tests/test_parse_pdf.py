from io import BytesIO

from PIL import Image

import agency_crm.core.parse_pdf as parse_pdf
from agency_crm.core.parse_pdf import (
    extract_document_text,
    extract_text_from_image,
    extract_text_from_pdf,
    normalize_extracted_text,
)


def _make_pdf_bytes(text: str) -> bytes:
    header = b"%PDF-1.4\n"
    objects = [
        b"1 0 obj<< /Type /Catalog /Pages 2 0 R >>endobj\n",
        b"2 0 obj<< /Type /Pages /Kids [3 0 R] /Count 1 >>endobj\n",
        (
            b"3 0 obj<< /Type /Page /Parent 2 0 R /MediaBox [0 0 300 144] "
            b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>endobj\n"
        ),
    ]
    stream = f"BT /F1 12 Tf 72 72 Td ({text}) Tj ET".encode("utf-8")
    objects.append(
        b"4 0 obj<< /Length "
        + str(len(stream)).encode("ascii")
        + b" >>stream\n"
        + stream
        + b"\nendstream\nendobj\n"
    )
    objects.append(b"5 0 obj<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>endobj\n")

    body = b""
    offsets = []
    current = len(header)
    for obj in objects:
        offsets.append(current)
        body += obj
        current += len(obj)

    xref = b"xref\n0 " + str(len(objects) + 1).encode("ascii") + b"\n"
    xref += b"0000000000 65535 f \n"
    for offset in offsets:
        xref += f"{offset:010d} 00000 n \n".encode("ascii")
    trailer = b"trailer<< /Root 1 0 R /Size " + str(len(objects) + 1).encode("ascii") + b" >>\n"
    startxref = len(header) + len(body)
    eof = b"startxref\n" + str(startxref).encode("ascii") + b"\n%%EOF"
    return header + body + xref + trailer + eof


def _make_png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (40, 20), color="white").save(buffer, format="PNG")
    return buffer.getvalue()


def test_extract_text_from_pdf():
    pdf_bytes = _make_pdf_bytes("Policy Document")
    assert "Policy Document" in extract_text_from_pdf(pdf_bytes)


def test_extract_text_empty_bytes():
    assert extract_text_from_pdf(b"") == ""
    assert extract_document_text(b"", filename="scan.png") == ""


def test_extract_text_pdfminer_fallback(monkeypatch):
    monkeypatch.setattr(parse_pdf, "_extract_with_pypdf", lambda _bytes: [""])
    monkeypatch.setattr(parse_pdf, "_extract_with_pdfminer", lambda _bytes: " fallback text ")

    text = extract_text_from_pdf(b"pdf-bytes", filename="document.pdf")

    assert text == "fallback text"


def test_extract_text_ocr_fallback(monkeypatch):
    monkeypatch.setattr(parse_pdf, "_extract_with_pypdf", lambda _bytes: [])
    monkeypatch.setattr(parse_pdf, "_extract_with_pdfminer", lambda _bytes: "")
    monkeypatch.setattr(
        parse_pdf,
        "_extract_with_ocr",
        lambda _bytes, filename=None: ["Poliçe No: 12345", "Net Prim: 100 TL"],
    )

    text = extract_text_from_pdf(b"pdf-bytes", filename="scan.pdf")

    assert text == "Poliçe No: 12345\n\nNet Prim: 100 TL"


def test_extract_text_from_image_uses_turkish_ocr(monkeypatch):
    captured = {}

    def fake_image_to_string(image, lang=None):
        captured["lang"] = lang
        captured["size"] = image.size
        return "Sigortalı:\tALİ VELİ\r\n"

    monkeypatch.setattr(parse_pdf.pytesseract, "image_to_string", fake_image_to_string)

    text = extract_text_from_image(_make_png_bytes(), filename="scan.png")

    assert text == "Sigortalı: ALİ VELİ"
    assert captured == {"lang": "tur", "size": (40, 20)}


def test_extract_text_from_invalid_image():
    assert extract_text_from_image(b"not an image", filename="scan.png") == ""


def test_extract_document_text_dispatch(monkeypatch):
    monkeypatch.setattr(parse_pdf, "extract_text_from_pdf", lambda data, filename=None: "pdf")
    monkeypatch.setattr(parse_pdf, "extract_text_from_image", lambda data, filename=None: "image")

    assert extract_document_text(b"%PDF-1.4", filename="upload") == "pdf"
    assert extract_document_text(b"abc", filename="x.PDF") == "pdf"
    assert extract_document_text(b"abc", content_type="application/pdf") == "pdf"
    assert extract_document_text(b"abc", filename="photo.jpg") == "image"
    assert extract_document_text(b"abc", content_type="image/png") == "image"
    assert extract_document_text(b"abc", filename="unknown.bin") == "image"


def test_normalize_extracted_text_preserves_table_spacing():
    raw_text = "Column\tAmount\r\nPoliçe   Tutar\r\nToplam\t1.250,50 TL\r\r\n"
    normalized = normalize_extracted_text(raw_text)

    assert "Column Amount" in normalized
    assert "Poliçe  Tutar" in normalized
    assert "1.250,50 TL" in normalized
    assert "\n\n" in normalized
    assert not normalized.startswith("\n")
    assert not normalized.endswith("\n")
