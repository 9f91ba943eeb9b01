"""Unit tests for plain-text extraction from .txt and .docx manuscripts."""

from __future__ import annotations

import io
from pathlib import Path

import pytest
from docx import Document

from lorekeeper.services.document_reader import extract_plain_text, read_document
from lorekeeper.utils.errors import UnsupportedFormatError


def _docx_bytes(*paragraphs: str) -> bytes:
    doc = Document()
    for text in paragraphs:
        doc.add_paragraph(text)
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


class TestExtractPlainText:
    def test_utf8_text(self) -> None:
        assert extract_plain_text("Aria walked.".encode(), "txt") == "Aria walked."

    def test_utf8_bom_is_stripped(self) -> None:
        data = "\ufeffAria walked.".encode()
        assert extract_plain_text(data, "txt") == "Aria walked."

    def test_gb18030_fallback(self) -> None:
        text = "第一章 初遇\n少年推开了城门。"
        assert extract_plain_text(text.encode("gb18030"), "txt") == text

    def test_format_is_case_insensitive_and_accepts_suffix(self) -> None:
        assert extract_plain_text(b"abc", ".TXT") == "abc"

    def test_docx_paragraphs_joined_by_blank_lines(self) -> None:
        data = _docx_bytes("Chapter 1", "", "Aria walked into the rain.")

        assert extract_plain_text(data, "docx") == "Chapter 1\n\nAria walked into the rain."

    def test_corrupt_docx(self) -> None:
        with pytest.raises(UnsupportedFormatError):
            extract_plain_text(b"definitely not a zip archive", "docx")

    @pytest.mark.parametrize("fmt", ["pdf", "epub", ""])
    def test_unsupported_format(self, fmt: str) -> None:
        with pytest.raises(UnsupportedFormatError):
            extract_plain_text(b"data", fmt)


class TestReadDocument:
    def test_reads_txt_file(self, tmp_path: Path) -> None:
        path = tmp_path / "novel.txt"
        path.write_text("Once upon a time.", encoding="utf-8")

        assert read_document(path) == "Once upon a time."

    def test_reads_docx_file(self, tmp_path: Path) -> None:
        path = tmp_path / "novel.docx"
        path.write_bytes(_docx_bytes("Once upon a time."))

        assert read_document(str(path)) == "Once upon a time."

    def test_missing_suffix(self, tmp_path: Path) -> None:
        path = tmp_path / "novel"
        path.write_text("text", encoding="utf-8")

        with pytest.raises(UnsupportedFormatError):
            read_document(path)
