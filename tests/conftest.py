import io

import docx
import fitz  # PyMuPDF
import pytest

from analyzer import ResumeAnalysisEngine, SkillLookup
from config import EngineConfig
from models import ExtractedText, RawDocument
from parser import DOCX_MIME, segment_sections
from skills import SkillTaxonomy, load_taxonomy

SAMPLE_RESUME = """Jane Doe
jane.doe@example.com | (555) 123-4567 | linkedin.com/in/janedoe

Professional Summary
Senior software engineer with 8 years of experience building web platforms. Expert in Python and JavaScript with a track record of shipping reliable services.

Experience
Software Engineer, Acme Corp, 2019 - Present
- Reduced API latency by 40% by redesigning the caching layer with Redis
- Led a team of 5 engineers to migrate 120 services to Docker and Kubernetes
- Increased test coverage from 55% to 90% across 3 core React applications

Education
B.Sc. Computer Science, State University, 2015

Skills
Python, JavaScript, React, SQL, Docker, Git, REST APIs, basic Rust"""


def _docx_bytes(text: str) -> bytes:
    document = docx.Document()
    for line in text.split("\n"):
        document.add_paragraph(line)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def _pdf_bytes(text: str) -> bytes:
    doc = fitz.open()
    page = doc.new_page()
    page.insert_text((72, 72), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


def _extracted(text: str) -> ExtractedText:
    return ExtractedText(text=text, sections=tuple(segment_sections(text)))


@pytest.fixture(scope="session")
def sample_resume() -> str:
    return SAMPLE_RESUME


@pytest.fixture(scope="session")
def make_docx():
    """Build an in-memory DOCX with one paragraph per line of text."""
    return _docx_bytes


@pytest.fixture(scope="session")
def make_pdf():
    """Build an in-memory single-page PDF holding the text."""
    return _pdf_bytes


@pytest.fixture(scope="session")
def extracted_from_text():
    """Segment plain text the way the extractor does, skipping document parsing."""
    return _extracted


@pytest.fixture(scope="session")
def taxonomy() -> SkillTaxonomy:
    return load_taxonomy()


@pytest.fixture(scope="session")
def lookup(taxonomy) -> SkillLookup:
    return SkillLookup(taxonomy)


@pytest.fixture(scope="session")
def synthetic_taxonomy() -> SkillTaxonomy:
    return SkillTaxonomy.from_dict(
        {
            "version": "test-1",
            "skills": {
                "JavaScript": {"aliases": ["JavaScript", "JS"], "category": "Programming", "demand": "High"},
                "React": {"aliases": ["React"], "category": "Frontend", "demand": "High"},
                "SQL": {"aliases": ["SQL"], "category": "Database", "demand": "Medium"},
            },
            "reasons": {"Database": "Essential for data storage"},
            "baseline": ["JavaScript", "React", "SQL"],
        }
    )


@pytest.fixture()
def engine(taxonomy) -> ResumeAnalysisEngine:
    return ResumeAnalysisEngine(taxonomy, EngineConfig())


@pytest.fixture()
def sample_docx() -> RawDocument:
    return RawDocument(content=_docx_bytes(SAMPLE_RESUME), mime_type=DOCX_MIME, filename="jane_doe.docx")
