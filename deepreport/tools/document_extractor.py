from __future__ import annotations

from io import BytesIO
from pathlib import PurePath

from loguru import logger
from markitdown import MarkItDown

from deepreport.errors import InvalidInputError, UpstreamError

PLAIN_TEXT_EXTENSIONS = frozenset({".txt", ".md", ".csv", ".json"})
OFFICE_EXTENSIONS = frozenset({".pdf", ".docx", ".pptx", ".xlsx", ".html", ".htm"})
SUPPORTED_EXTENSIONS = PLAIN_TEXT_EXTENSIONS | OFFICE_EXTENSIONS


def file_extension(filename: str) -> str:
    return PurePath(filename).suffix.lower()


def is_supported(filename: str) -> bool:
    return file_extension(filename) in SUPPORTED_EXTENSIONS


def extract_document(filename: str, data: bytes) -> str:
    """Extract text from an uploaded file (office, PDF or plain text).

    Blocking; call it through ``asyncio.to_thread`` from async code.
    """
    extension = file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise InvalidInputError(
            f"Unsupported file type '{extension or filename}'. "
            f"Supported: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )
    if not data:
        raise InvalidInputError("No file provided")

    if extension in PLAIN_TEXT_EXTENSIONS:
        text = data.decode("utf-8", errors="replace")
    else:
        try:
            result = MarkItDown().convert_stream(BytesIO(data), file_extension=extension)
        except Exception as exc:
            logger.warning(f"Content extraction failed for {filename}: {exc}")
            raise UpstreamError("Failed to extract content from document") from exc
        text = getattr(result, "text_content", "") or ""

    text = text.strip()
    if not text:
        raise InvalidInputError(f"No text could be extracted from {filename}")
    return text
