from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from deepreport.errors import InvalidInputError, UpstreamError
from deepreport.tools.document_extractor import extract_document, is_supported


def test_plain_text_is_decoded():
    assert extract_document("notes.md", "  # Heading\nbody  ".encode()) == "# Heading\nbody"


@pytest.mark.parametrize("filename", ["report.PDF", "deck.pptx", "sheet.xlsx", "notes.txt", "page.html"])
def test_supported_extensions(filename):
    assert is_supported(filename)


def test_unsupported_extension_is_rejected():
    with pytest.raises(InvalidInputError, match="Unsupported file type"):
        extract_document("archive.zip", b"PK")


def test_empty_file_is_rejected():
    with pytest.raises(InvalidInputError, match="No file provided"):
        extract_document("notes.txt", b"")


def test_office_documents_go_through_markitdown():
    converter = MagicMock()
    converter.convert_stream.return_value = MagicMock(text_content="Quarterly results")

    with patch("deepreport.tools.document_extractor.MarkItDown", return_value=converter):
        text = extract_document("q3.docx", b"binary")

    assert text == "Quarterly results"
    assert converter.convert_stream.call_args.kwargs["file_extension"] == ".docx"


def test_converter_failure_is_upstream_error():
    converter = MagicMock()
    converter.convert_stream.side_effect = RuntimeError("corrupt")

    with patch("deepreport.tools.document_extractor.MarkItDown", return_value=converter):
        with pytest.raises(UpstreamError, match="Failed to extract"):
            extract_document("q3.pdf", b"%PDF")


def test_document_without_text_is_rejected():
    converter = MagicMock()
    converter.convert_stream.return_value = MagicMock(text_content="   ")

    with patch("deepreport.tools.document_extractor.MarkItDown", return_value=converter):
        with pytest.raises(InvalidInputError):
            extract_document("scan.pdf", b"%PDF")
