"""Plain-text extraction from uploaded manuscripts.

Supported formats:

    txt   -- UTF-8 (BOM tolerated), falling back to GB18030 for Chinese
             manuscripts saved by legacy editors
    docx  -- paragraph text via python-docx; formatting is stripped

Anything else, or a file that cannot be decoded, raises
:class:`UnsupportedFormatError`.
"""

from __future__ import annotations

import io
import zipfile
from pathlib import Path

import structlog
from docx import Document
from docx.opc.exceptions import PackageNotFoundError

from lorekeeper.utils.errors import UnsupportedFormatError

logger = structlog.get_logger(logger_name=__name__)

SUPPORTED_FORMATS = ("txt", "docx")

_TEXT_ENCODINGS = ("utf-8-sig", "gb18030")


def _decode_text(data: bytes) -> str:
    for encoding in _TEXT_ENCODINGS:
        try:
            return data.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise UnsupportedFormatError(
        message=f"Text file is not valid {' or '.join(_TEXT_ENCODINGS)}",
    )


def _docx_text(data: bytes) -> str:
    try:
        doc = Document(io.BytesIO(data))
    except (zipfile.BadZipFile, PackageNotFoundError, KeyError, ValueError) as exc:
        raise UnsupportedFormatError(message=f"Corrupt or invalid .docx file: {exc}") from exc
    text = "\n\n".join(para.text for para in doc.paragraphs if para.text.strip())
    logger.info("docx_extracted", paragraphs=len(doc.paragraphs), chars=len(text))
    return text


def extract_plain_text(data: bytes, fmt: str) -> str:
    """Return the plain text of a document.

    Args:
        data: Raw file contents.
        fmt: Format name or file suffix (``"txt"``, ``".docx"``), case-insensitive.

    Returns:
        The document text.

    Raises:
        UnsupportedFormatError: If the format is unsupported or the data is corrupt.
    """
    normalized = fmt.lower().lstrip(".")
    if normalized == "txt":
        return _decode_text(data)
    if normalized == "docx":
        return _docx_text(data)
    raise UnsupportedFormatError(
        message=f"Unsupported format {fmt!r}; expected one of {', '.join(SUPPORTED_FORMATS)}",
    )


def read_document(path: str | Path) -> str:
    """Read *path* and extract its text, inferring the format from the suffix."""
    file_path = Path(path)
    if not file_path.suffix:
        raise UnsupportedFormatError(message=f"Cannot infer format of {file_path.name!r}")
    return extract_plain_text(file_path.read_bytes(), file_path.suffix)
