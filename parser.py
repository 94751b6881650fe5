import io
import logging
import os
import re
import shutil
import subprocess
from typing import Dict, List, Optional, Tuple

import docx
import fitz  # PyMuPDF
from pdfminer.high_level import extract_text as pdfminer_extract_text

from errors import CorruptDocument, EmptyDocument, OversizedDocument, UnsupportedFormat
from models import (
    AWARDS,
    CERTIFICATIONS,
    CONTACT_INFORMATION,
    EDUCATION,
    PROFESSIONAL_SUMMARY,
    PROJECTS,
    SKILLS,
    UNCLASSIFIED,
    WORK_EXPERIENCE,
    ExtractedText,
    RawDocument,
    SectionSpan,
)

try:
    from pdf2image import convert_from_bytes
    import pytesseract
except ImportError:  # pragma: no cover - OCR is an optional fallback
    convert_from_bytes = None
    pytesseract = None

PDF_TEXT_MIN_LENGTH = 80  # Heuristic threshold to trigger fallbacks
WINDOWS_TESSERACT_CANDIDATES = [
    r"C:\Program Files\Tesseract-OCR\tesseract.exe",
    r"C:\Program Files (x86)\Tesseract-OCR\tesseract.exe",
]
WINDOWS_POPPLER_CANDIDATES = [
    r"C:\Program Files\poppler\Library\bin",
    r"C:\poppler\Library\bin",
    r"C:\poppler\bin",
]

PDF = "pdf"
DOC = "doc"
DOCX = "docx"

PDF_MIME = "application/pdf"
DOC_MIME = "application/msword"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

MIME_TYPES: Dict[str, str] = {
    PDF_MIME: PDF,
    "application/x-pdf": PDF,
    DOC_MIME: DOC,
    DOCX_MIME: DOCX,
}
GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}
EXTENSIONS: Dict[str, str] = {".pdf": PDF, ".doc": DOC, ".docx": DOCX}

ZIP_SIGNATURE = b"PK\x03\x04"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"
DOC_TEXT_RUN_MIN_LENGTH = 4

_configured_poppler_path: Optional[str] = None
logger = logging.getLogger(__name__)

OCR_AVAILABLE = convert_from_bytes is not None and pytesseract is not None


def _configure_ocr_backends() -> None:
    """Best-effort configuration for OCR toolchain on Windows installs."""
    global _configured_poppler_path

    env_tesseract_cmd = os.getenv("TESSERACT_CMD")
    if env_tesseract_cmd and os.path.exists(env_tesseract_cmd):
        pytesseract.pytesseract.tesseract_cmd = env_tesseract_cmd
    else:
        existing_cmd = getattr(pytesseract.pytesseract, "tesseract_cmd", "")
        if not shutil.which(existing_cmd):
            for candidate in WINDOWS_TESSERACT_CANDIDATES:
                if os.path.exists(candidate):
                    pytesseract.pytesseract.tesseract_cmd = candidate
                    break

    potential_paths = []
    poppler_env = os.getenv("POPPLER_PATH")
    if poppler_env:
        potential_paths.append(poppler_env)
    potential_paths.extend(WINDOWS_POPPLER_CANDIDATES)
    for candidate in potential_paths:
        if candidate and os.path.isdir(candidate):
            _configured_poppler_path = candidate
            break


if OCR_AVAILABLE:
    _configure_ocr_backends()


# --- Section heading vocabulary ------------------------------------------------

SECTION_HEADINGS: Dict[str, List[str]] = {
    CONTACT_INFORMATION: [
        "contact",
        "contact information",
        "contact info",
        "contact details",
        "personal details",
        "personal information",
    ],
    PROFESSIONAL_SUMMARY: [
        "summary",
        "professional summary",
        "profile",
        "professional profile",
        "career summary",
        "executive summary",
        "objective",
        "career objective",
        "about me",
    ],
    WORK_EXPERIENCE: [
        "experience",
        "work experience",
        "professional experience",
        "employment history",
        "employment",
        "work history",
        "job history",
        "career history",
        "relevant experience",
    ],
    EDUCATION: [
        "education",
        "academic background",
        "academic qualifications",
        "education history",
        "education and training",
    ],
    SKILLS: [
        "skills",
        "technical skills",
        "core skills",
        "key skills",
        "core competencies",
        "competencies",
        "proficiencies",
        "technologies",
        "tech stack",
    ],
    PROJECTS: [
        "projects",
        "personal projects",
        "academic projects",
        "key projects",
        "selected projects",
        "project highlights",
    ],
    CERTIFICATIONS: [
        "certifications",
        "certification",
        "certificates",
        "licenses",
        "licenses and certifications",
        "professional certifications",
    ],
    AWARDS: [
        "awards",
        "honors",
        "honours",
        "awards and honors",
        "achievements",
        "accomplishments",
        "recognition",
    ],
}

HEADING_LOOKUP: Dict[str, str] = {
    alias: label for label, aliases in SECTION_HEADINGS.items() for alias in aliases
}
HEADING_MAX_WORDS = 6
SECTION_TRIM_CHARS = " -\t*#=_|>:"


# --- Extraction ----------------------------------------------------------------

def resolve_format(document: RawDocument) -> str:
    """Map the declared MIME type (or, for generic types, the extension) to pdf/doc/docx."""
    mime = (document.mime_type or "").split(";")[0].strip().lower()
    if mime in MIME_TYPES:
        return MIME_TYPES[mime]
    if mime in GENERIC_MIME_TYPES:
        ext = os.path.splitext(document.filename or "")[1].lower()
        if ext in EXTENSIONS:
            return EXTENSIONS[ext]
    raise UnsupportedFormat(
        f"Unsupported file type {document.mime_type or 'unknown'!r} for {document.filename!r}"
    )


def extract_document(document: RawDocument, max_size_bytes: Optional[int] = None) -> ExtractedText:
    """Extract normalized text and detected sections from an uploaded document."""
    if max_size_bytes is not None and document.size > max_size_bytes:
        raise OversizedDocument(
            f"{document.filename!r} is {document.size} bytes; the limit is {max_size_bytes}"
        )

    doc_format = resolve_format(document)
    if doc_format == PDF:
        text = _extract_pdf_text(document.content, document.filename)
    elif doc_format == DOCX:
        text = _extract_docx_text(document.content, document.filename)
    else:
        text = _extract_doc_text(document.content, document.filename)

    normalized = normalize_text(text)
    if not normalized:
        raise EmptyDocument(f"No readable text found in {document.filename!r}")

    return ExtractedText(text=normalized, sections=tuple(segment_sections(normalized)))


def _extract_pdf_text(data: bytes, filename: str) -> str:
    """Attempt PyMuPDF, fall back to pdfminer, then OCR if needed."""
    text = ""
    parsed = False

    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            text = "\n".join(page.get_text("text", sort=True) for page in doc)
        parsed = True
    except Exception as exc:
        logger.debug("PyMuPDF could not open %s: %s", filename, exc)

    if parsed and len(text.strip()) < PDF_TEXT_MIN_LENGTH:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                block_chunks: List[str] = []
                for page in doc:
                    for block in page.get_text("blocks"):
                        block_text = block[4]
                        if block_text:
                            block_chunks.append(block_text.strip())
            alt_text = "\n".join(block_chunks)
            if len(alt_text.strip()) > len(text.strip()):
                text = alt_text
        except Exception as exc:
            logger.debug("PyMuPDF block extraction failed for %s: %s", filename, exc)

    if len(text.strip()) < PDF_TEXT_MIN_LENGTH:
        try:
            text = pdfminer_extract_text(io.BytesIO(data)) or text
            parsed = True
        except Exception as exc:
            logger.debug("pdfminer could not parse %s: %s", filename, exc)

    if len(text.strip()) < PDF_TEXT_MIN_LENGTH and OCR_AVAILABLE:
        try:
            ocr_text = _extract_pdf_via_ocr(data)
        except Exception as exc:
            logger.debug("OCR fallback failed for %s: %s", filename, exc)
        else:
            parsed = True
            if ocr_text.strip():
                logger.info("OCR fallback succeeded for %s", filename)
                text = ocr_text if len(ocr_text.strip()) > len(text.strip()) else text
            else:
                logger.warning("OCR fallback yielded empty text for %s", filename)
    elif len(text.strip()) < PDF_TEXT_MIN_LENGTH:
        logger.warning(
            "PDF text extraction produced < %s characters for %s",
            PDF_TEXT_MIN_LENGTH,
            filename,
        )

    if not parsed:
        raise CorruptDocument(f"{filename!r} is not a readable PDF")
    return text


def _extract_pdf_via_ocr(data: bytes) -> str:
    """Last-resort OCR extraction for image-based PDFs."""
    kwargs = {}
    if _configured_poppler_path:
        kwargs["poppler_path"] = _configured_poppler_path

    images = convert_from_bytes(data, dpi=300, **kwargs)
    return "\n".join(pytesseract.image_to_string(image) for image in images)


def _extract_docx_text(data: bytes, filename: str) -> str:
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        raise CorruptDocument(f"{filename!r} is not a readable DOCX file: {exc}") from exc

    chunks = [para.text for para in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                chunks.append(" | ".join(cells))
    return "\n".join(chunks)


def _extract_doc_text(data: bytes, filename: str) -> str:
    """Legacy Word files: DOCX payloads renamed .doc, antiword, then raw text runs."""
    if data.startswith(ZIP_SIGNATURE):
        return _extract_docx_text(data, filename)
    if not data.startswith(OLE_SIGNATURE):
        raise CorruptDocument(f"{filename!r} is not a Word document")

    antiword = os.getenv("ANTIWORD_CMD") or shutil.which("antiword")
    if antiword:
        try:
            completed = subprocess.run(
                [antiword, "-"],
                input=data,
                capture_output=True,
                timeout=30,
                check=True,
            )
            text = completed.stdout.decode("utf-8", errors="ignore")
            if text.strip():
                return text
        except (OSError, subprocess.SubprocessError) as exc:
            logger.warning("antiword failed for %s: %s", filename, exc)

    return _recover_doc_text_runs(data)


def _recover_doc_text_runs(data: bytes) -> str:
    """Pull printable runs out of a Word 97 stream (UTF-16LE first, then 8-bit)."""
    pattern = rf"(?:[\x20-\x7e\t\r\n]\x00){{{DOC_TEXT_RUN_MIN_LENGTH},}}".encode("ascii")
    runs = [match.decode("utf-16-le") for match in re.findall(pattern, data)]
    if not runs:
        pattern = rf"[\x20-\x7e\t\r\n]{{{DOC_TEXT_RUN_MIN_LENGTH},}}".encode("ascii")
        runs = [match.decode("ascii") for match in re.findall(pattern, data)]
    return "\n".join(run.replace("\r", "\n") for run in runs)


def normalize_text(text: str) -> str:
    """Normalize whitespace and replace common unicode bullets/dashes."""
    if not text:
        return ""

    char_replacements = {
        "\u2022": "-",
        "\u2023": "-",
        "\u25e6": "-",
        "\u25cf": "-",
        "\u2043": "-",
        "\u2212": "-",
        "\u2013": "-",
        "\u2014": "-",
        "\u2010": "-",
        "\u2012": "-",
        "\u2015": "-",
        "\uf0b7": "-",
        "\uf0d8": "-",
        "\uf0a7": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": '"',
        "\u201d": '"',
        "\ufb01": "fi",
        "\ufb02": "fl",
        "\u00ad": "",
        "\u00b7": "-",
        "\u00a0": " ",
        "\u2024": ".",
        "\x00": "",
    }

    cleaned = text.translate(str.maketrans(char_replacements))
    cleaned = re.sub(r"\r\n?", "\n", cleaned)
    cleaned = re.sub(r"[ \t]+\n", "\n", cleaned)
    cleaned = re.sub(r"\n{3,}", "\n\n", cleaned)
    return cleaned.strip()


# --- Section detection ---------------------------------------------------------

def match_heading(line: str) -> Optional[str]:
    """Return the canonical section a heading line opens, or None for body text.

    Accepts bare headings ("WORK EXPERIENCE", "Skills:") and inline ones
    ("Skills: Python, SQL") where the text before the colon is a known heading.
    """
    stripped = line.strip()
    if not stripped:
        return None

    candidates = [stripped]
    if ":" in stripped:
        candidates.append(stripped.split(":", 1)[0])

    for candidate in candidates:
        cleaned = candidate.strip(SECTION_TRIM_CHARS).lower()
        cleaned = cleaned.replace("&", " and ")
        cleaned = re.sub(r"\s+", " ", cleaned).strip()
        if not cleaned or len(cleaned.split()) > HEADING_MAX_WORDS:
            continue
        label = HEADING_LOOKUP.get(cleaned)
        if label:
            return label
    return None


def segment_sections(text: str) -> List[SectionSpan]:
    """Split normalized text into contiguous labelled spans covering all of it.

    A document that does not open with a heading has its first paragraph
    treated as contact details; anything between that block and the first
    heading is Unclassified.
    """
    if not text:
        return []

    lines: List[Tuple[int, str]] = []
    position = 0
    for line in text.split("\n"):
        lines.append((position, line))
        position += len(line) + 1

    boundaries: List[Tuple[int, str]] = []
    first_heading = match_heading(lines[0][1])
    if first_heading:
        boundaries.append((0, first_heading))
    else:
        boundaries.append((0, CONTACT_INFORMATION))

    in_contact_block = first_heading is None
    for offset, line in lines[1:]:
        label = match_heading(line)
        if label:
            boundaries.append((offset, label))
            in_contact_block = False
        elif in_contact_block and not line.strip():
            boundaries.append((offset, UNCLASSIFIED))
            in_contact_block = False

    spans: List[SectionSpan] = []
    for idx, (start, label) in enumerate(boundaries):
        end = boundaries[idx + 1][0] if idx + 1 < len(boundaries) else len(text)
        spans.append(SectionSpan(label=label, start=start, end=end, text=text[start:end]))
    return spans


def section_body(span_text: str) -> str:
    """Span text without its heading line (inline heading content is kept)."""
    lines = span_text.split("\n")
    if not lines:
        return ""
    first = lines[0]
    if match_heading(first):
        remainder = first.split(":", 1)[1] if ":" in first else ""
        lines = [remainder] + lines[1:]
    return "\n".join(lines).strip()
