"""
CV parsing pipeline: file on disk -> ParsedCVData.

The pipeline is a small LangGraph graph (read -> extract -> normalize). The
checks that decide whether a file is worth reading at all (existence,
extension, size) run before the graph, so callers get a precise error type.
"""
import asyncio
import os
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TypedDict

from dotenv import load_dotenv
from langgraph.graph import StateGraph, END
from pydantic import ValidationError as PydanticValidationError

from cvmatch.helpers.parsing import SUPPORTED_EXTENSIONS, read_document
from cvmatch.helpers.prompts import EXTRACT_CV_PROMPT
from cvmatch.models.models import ContactInfo, EducationEntry, EmploymentEntry, ParsedCVData
from cvmatch.utils.exceptions import (
    CVFileNotFoundError,
    CVParsingError,
    ExternalServiceError,
    FileTooLargeError,
    UnsupportedFileTypeError,
)
from cvmatch.utils.logging_config import get_logger
from cvmatch.utils.utils import ollama_generate, safe_json

load_dotenv()
logger = get_logger(__name__)

MAX_CV_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_PROMPT_CHARS = int(os.getenv("MAX_PROMPT_CHARS", "12000"))
PARSE_TIMEOUT_SECONDS = float(os.getenv("PARSE_TIMEOUT_SECONDS", "120"))

_YEAR_MONTH = re.compile(r"^\s*(\d{4})(?:-(\d{1,2}))?")


class ParseState(TypedDict, total=False):
    file_path: str
    text: str
    raw: Dict[str, Any]
    parsed: ParsedCVData


def _as_text(x: Any) -> Optional[str]:
    if x is None:
        return None
    if isinstance(x, list):
        x = " ".join([str(t).strip() for t in x if str(t).strip()])
    x = str(x).strip()
    return x or None


def _as_list(x: Any) -> Optional[List[str]]:
    if x is None:
        return None
    if isinstance(x, str):
        parts = [p.strip() for p in x.replace(";", ",").split(",")]
        return [p for p in parts if p]
    if isinstance(x, list):
        return [str(t).strip() for t in x if t is not None and str(t).strip()]
    return None


def _as_float(x: Any) -> Optional[float]:
    if isinstance(x, list):
        x = x[0] if x else None
    if x in (None, ""):
        return None
    try:
        return float(x)
    except (TypeError, ValueError):
        return None


def _as_int(x: Any) -> Optional[int]:
    value = _as_float(x)
    return int(value) if value is not None else None


def _months_between(start: Optional[str], end: Optional[str]) -> Optional[int]:
    m_start = _YEAR_MONTH.match(start or "")
    if not m_start:
        return None
    if end:
        m_end = _YEAR_MONTH.match(end)
        if not m_end:
            return None
        end_year, end_month = int(m_end.group(1)), int(m_end.group(2) or 12)
    else:
        now = datetime.utcnow()
        end_year, end_month = now.year, now.month
    months = (end_year - int(m_start.group(1))) * 12 + end_month - int(m_start.group(2) or 1)
    return max(0, months)


def _employment(raw: Any) -> Optional[List[EmploymentEntry]]:
    if not isinstance(raw, list):
        return None
    entries = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        company, position = _as_text(item.get("company")), _as_text(item.get("position"))
        if not company and not position:
            continue
        start, end = _as_text(item.get("start_date")), _as_text(item.get("end_date"))
        duration = _as_float(item.get("duration_months"))
        if duration is None:
            duration = _months_between(start, end)
        entries.append(EmploymentEntry(
            company=company or "",
            position=position or "",
            start_date=start,
            end_date=end,
            duration_months=duration,
            description=_as_text(item.get("description")),
        ))
    return entries


def _education(raw: Any) -> Optional[List[EducationEntry]]:
    if not isinstance(raw, list):
        return None
    entries = []
    for item in raw:
        if not isinstance(item, dict) or not _as_text(item.get("institution")):
            continue
        entries.append(EducationEntry(
            institution=_as_text(item.get("institution")),
            degree=_as_text(item.get("degree")),
            field=_as_text(item.get("field")),
            graduation_year=_as_int(item.get("graduation_year")),
        ))
    return entries


def normalize_parsed_data(data: Dict[str, Any]) -> ParsedCVData:
    """Coerce a loosely-typed extraction into ParsedCVData, deriving gaps."""
    history = _employment(data.get("employment_history"))

    total_years = _as_float(data.get("total_years_experience"))
    if total_years is None and history:
        months = [e.duration_months for e in history if e.duration_months is not None]
        if months:
            total_years = round(sum(months) / 12, 1)

    changes = _as_float(data.get("job_changes_frequency"))
    if changes is None and history and total_years:
        changes = round((len(history) - 1) / total_years, 2)

    contact = data.get("contact_info")
    contact_info = None
    if isinstance(contact, dict):
        contact_info = ContactInfo(
            email=_as_text(contact.get("email")),
            phone=_as_text(contact.get("phone")),
            location=_as_text(contact.get("location")),
        )

    return ParsedCVData(
        total_years_experience=total_years,
        employment_history=history,
        job_changes_frequency=changes,
        roles_positions=_as_list(data.get("roles_positions")),
        skills=_as_list(data.get("skills")),
        dominant_industries=_as_list(data.get("dominant_industries")),
        contact_info=contact_info,
        education=_education(data.get("education")),
    )


# LangGraph nodes
def node_read(state: ParseState):
    path = Path(state["file_path"])
    try:
        text = read_document(path)
    except OSError as e:
        raise CVFileNotFoundError(f"Could not read CV file: {e}", file_path=str(path), cause=e) from e
    except Exception as e:
        raise CVParsingError(f"Text extraction failed: {e}", file_path=str(path), cause=e) from e
    return {"text": text}


def node_extract(state: ParseState):
    text = state.get("text") or ""
    if not text:
        # a blank document is a valid, empty CV
        return {"raw": {}}
    try:
        resp = ollama_generate(EXTRACT_CV_PROMPT.format(doc=text[:MAX_PROMPT_CHARS]))
    except ExternalServiceError as e:
        raise CVParsingError(
            f"Extraction model unavailable: {e}", file_path=state["file_path"], cause=e
        ) from e
    data = safe_json(resp, fallback=None)
    if not isinstance(data, dict):
        raise CVParsingError("Extraction model returned no JSON object", file_path=state["file_path"])
    return {"raw": data}


def node_normalize(state: ParseState):
    try:
        return {"parsed": normalize_parsed_data(state.get("raw") or {})}
    except PydanticValidationError as e:
        raise CVParsingError(
            f"Extracted data did not fit the CV schema: {e}", file_path=state["file_path"], cause=e
        ) from e


def build_parse_graph():
    g = StateGraph(ParseState)
    g.add_node("read", node_read)
    g.add_node("extract", node_extract)
    g.add_node("normalize", node_normalize)
    g.set_entry_point("read")
    g.add_edge("read", "extract")
    g.add_edge("extract", "normalize")
    g.add_edge("normalize", END)
    return g.compile()


_parse_graph = None


def _get_graph():
    global _parse_graph
    if _parse_graph is None:
        _parse_graph = build_parse_graph()
    return _parse_graph


def check_cv_file(file_path: str) -> Path:
    """Reject files the pipeline cannot or should not read."""
    path = Path(file_path or "")
    if not file_path or not path.is_file():
        raise CVFileNotFoundError(f"CV file not found: {file_path}", file_path=file_path)

    ext = path.suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise UnsupportedFileTypeError(
            f"Unsupported CV file type '{ext or '(none)'}'; expected one of {', '.join(SUPPORTED_EXTENSIONS)}",
            file_path=file_path,
            extension=ext,
        )

    try:
        size = path.stat().st_size
    except OSError as e:
        raise CVFileNotFoundError(f"Could not stat CV file: {e}", file_path=file_path, cause=e) from e
    if size > MAX_CV_FILE_SIZE:
        raise FileTooLargeError(
            f"CV file is {size} bytes; the limit is {MAX_CV_FILE_SIZE} bytes",
            file_path=file_path,
            size_bytes=size,
        )
    return path


def parse_cv(file_path: str) -> ParsedCVData:
    """Parse a CV file into structured data, raising a CVParsingError subtype on failure."""
    path = check_cv_file(file_path)
    logger.info(f"Parsing CV {path.name}", extra={"file_path": file_path})
    state = _get_graph().invoke({"file_path": str(path)})
    return state["parsed"]


async def parse_cv_async(file_path: str, timeout: float = None) -> ParsedCVData:
    """Run ``parse_cv`` off the event loop with a timeout."""
    timeout = timeout or PARSE_TIMEOUT_SECONDS
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(loop.run_in_executor(None, parse_cv, file_path), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise CVParsingError(f"CV parsing timed out after {timeout}s", file_path=file_path, cause=e) from e
