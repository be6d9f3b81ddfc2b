import base64
import binascii
import io
import re
from typing import Tuple

from pypdf import PdfReader

PDF_CONTENT_TYPE = "application/pdf"
DEFAULT_MAX_CHARS = 60000

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?;base64,(?P<payload>.*)$", re.DOTALL)


class DocumentParseError(ValueError):
    pass


def build_data_uri(data: bytes, content_type: str = PDF_CONTENT_TYPE) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{content_type or PDF_CONTENT_TYPE};base64,{encoded}"


def decode_data_uri(data_uri: str) -> Tuple[str, bytes]:
    match = _DATA_URI_RE.match((data_uri or "").strip())
    if not match:
        raise DocumentParseError("Document is not a base64 data URI")
    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DocumentParseError(f"Document data URI is not valid base64: {exc}") from exc
    if not data:
        raise DocumentParseError("Document data URI is empty")
    return match.group("mime") or "application/octet-stream", data


def extract_pdf_text(data: bytes, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = []
        for page in reader.pages:
            page_text = page.extract_text() or ""
            pages.append(page_text)
        text = "\n".join(pages).strip()
    except Exception as exc:
        raise DocumentParseError(f"PDF parse failed: {exc}") from exc

    if not text:
        raise DocumentParseError("PDF parse failed: empty text")

    text = text.replace("\r\n", "\n")
    if max_chars and len(text) > max_chars:
        text = text[:max_chars].rstrip()
    return text
