import re
from pathlib import Path
from pdfminer.high_level import extract_text as pdf_extract
from docx import Document
import logging
logging.getLogger("pdfminer").setLevel(logging.ERROR)

SUPPORTED_EXTENSIONS = (".pdf", ".docx", ".txt")


def read_txt(p: Path) -> str:
    return p.read_text(errors="ignore")


def read_docx(p: Path) -> str:
    doc = Document(str(p))
    return "\n".join([para.text for para in doc.paragraphs])


def read_pdf(p: Path) -> str:
    try:
        text = pdf_extract(str(p))
    except Exception:
        text = ""
    if text.strip():
        return text
    # scanned or odd PDFs: fall back to unstructured (OCR capable)
    from unstructured.partition.auto import partition
    elems = partition(filename=str(p))
    return "\n".join([e.text for e in elems if hasattr(e, "text") and e.text])


def clean_text(x: str) -> str:
    x = re.sub(r'\s+', ' ', x).strip()
    return x


def read_document(p: Path) -> str:
    """Extract and whitespace-normalize the text of a supported document."""
    ext = p.suffix.lower()
    if ext == ".pdf":
        t = read_pdf(p)
    elif ext == ".docx":
        t = read_docx(p)
    elif ext == ".txt":
        t = read_txt(p)
    else:
        raise ValueError(f"Unsupported document type: {ext}")
    return clean_text(t)
