import re
from pypdf import PdfReader
from docx import Document
from io import BytesIO

from app.interview.models import ResumeFields

EMAIL_RE = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
PHONE_RE = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
_HEADER_WORDS = {"resume", "curriculum vitae", "cv"}


def parse_pdf(file_bytes: bytes) -> str:
    reader = PdfReader(BytesIO(file_bytes))
    text = []
    for page in reader.pages:
        t = page.extract_text()
        if t:
            text.append(t)
    return "\n".join(text)

def parse_docx(file_bytes: bytes) -> str:
    doc = Document(BytesIO(file_bytes))
    return "\n".join([p.text for p in doc.paragraphs])

def parse_resume(filename: str, file_bytes: bytes) -> str:
    name = str(filename or "").lower().strip()
    if name.endswith(".pdf"):
        return parse_pdf(file_bytes)
    elif name.endswith(".docx"):
        return parse_docx(file_bytes)
    elif name.endswith(".txt"):
        return file_bytes.decode("utf-8", errors="replace")
    else:
        raise ValueError("Unsupported file format. Please upload a PDF, DOCX or TXT file.")


def _guess_name(text: str) -> str | None:
    for line in text.splitlines():
        candidate = line.strip()
        if not candidate:
            continue
        if candidate.lower() in _HEADER_WORDS:
            continue
        if len(candidate) >= 50 or "@" in candidate or any(ch.isdigit() for ch in candidate):
            return None
        return candidate
    return None


def extract_fields(text: str) -> ResumeFields:
    content = str(text or "")
    email = EMAIL_RE.search(content)
    phone = PHONE_RE.search(content)
    return ResumeFields(
        resume_text=content.strip(),
        name=_guess_name(content),
        email=email.group(0).lower() if email else None,
        phone=phone.group(0).strip() if phone else None,
    )


def extract_resume_fields(filename: str, file_bytes: bytes) -> ResumeFields:
    return extract_fields(parse_resume(filename, file_bytes))
