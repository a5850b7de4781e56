"""
PDF Loader Module
Turns broker statements (PDF via PyMuPDF, or plain text files) into
RawDocument line sequences for the extraction engine.
"""

import fitz  # PyMuPDF
import logging
from pathlib import Path

from extractors.models import RawDocument

logger = logging.getLogger(__name__)


class PDFLoadError(Exception):
    """Custom exception for PDF loading errors."""
    pass


def load_pdf(file_path: str) -> str:
    """
    Extract text from all pages of a PDF file.

    Args:
        file_path: Path to the PDF file

    Returns:
        Combined text from all pages as a single string

    Raises:
        PDFLoadError: If the PDF cannot be loaded or read
    """
    # Validate file exists
    pdf_path = Path(file_path)
    if not pdf_path.exists():
        logger.error(f"PDF file not found: {file_path}")
        raise PDFLoadError(f"PDF file not found: {file_path}")

    if not pdf_path.suffix.lower() == '.pdf':
        logger.error(f"File is not a PDF: {file_path}")
        raise PDFLoadError(f"File is not a PDF: {file_path}")

    doc = None
    try:
        doc = fitz.open(file_path)

        if doc.page_count == 0:
            logger.error(f"PDF has no pages: {file_path}")
            raise PDFLoadError(f"PDF has no pages: {file_path}")

        logger.info(f"Loading PDF: {file_path} ({doc.page_count} pages)")

        text_chunks = []
        empty_pages = 0

        for page_num in range(doc.page_count):
            text = doc[page_num].get_text()

            if text.strip():
                text_chunks.append(text)
                logger.debug(f"Page {page_num + 1}: extracted {len(text)} characters")
            else:
                empty_pages += 1
                logger.warning(f"Page {page_num + 1}: empty or no extractable text")

        if not text_chunks:
            raise PDFLoadError(f"No text could be extracted from PDF: {file_path}")

        combined_text = "\n".join(text_chunks)

        logger.info(
            f"Extraction complete: {len(combined_text)} characters from "
            f"{len(text_chunks)} pages ({empty_pages} empty pages skipped)"
        )

        return combined_text

    except fitz.FileDataError as e:
        logger.error(f"Invalid or corrupted PDF file: {file_path}", exc_info=True)
        raise PDFLoadError(f"Invalid or corrupted PDF file: {file_path}") from e

    except PDFLoadError:
        raise

    except Exception as e:
        logger.error(f"Unexpected error loading PDF {file_path}: {e}", exc_info=True)
        raise PDFLoadError(f"Failed to load PDF {file_path}: {str(e)}") from e

    finally:
        if doc is not None:
            doc.close()
            logger.debug(f"PDF document closed: {file_path}")


def load_document(file_path: str) -> RawDocument:
    """
    Load one statement as a RawDocument.

    PDF files go through PyMuPDF; .txt files are read as UTF-8 text
    (already extracted by some other tool).

    Raises:
        PDFLoadError: If the file cannot be read
    """
    path = Path(file_path)

    if path.suffix.lower() == '.txt':
        if not path.exists():
            logger.error(f"Text file not found: {file_path}")
            raise PDFLoadError(f"Text file not found: {file_path}")
        try:
            text = path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise PDFLoadError(f"Failed to read text file {file_path}: {e}") from e
        if not text.strip():
            raise PDFLoadError(f"Text file is empty: {file_path}")
        logger.info(f"Loaded text file: {file_path} ({len(text)} characters)")
    else:
        text = load_pdf(file_path)

    return RawDocument.from_text(text, source=path.name)


def load_documents(file_paths: list[str]) -> tuple[list[RawDocument], list[tuple[str, str]]]:
    """
    Load several statements, each as its own document.

    Args:
        file_paths: List of PDF or text file paths

    Returns:
        (documents, failures) where failures holds (path, error message)

    Raises:
        PDFLoadError: If no paths are given
    """
    if not file_paths:
        logger.error("No files provided")
        raise PDFLoadError("No files provided")

    documents = []
    failed_files = []

    for idx, file_path in enumerate(file_paths, 1):
        try:
            logger.info(f"Processing file {idx}/{len(file_paths)}: {file_path}")
            documents.append(load_document(file_path))
        except PDFLoadError as e:
            logger.error(f"Failed to load {file_path}: {e}")
            failed_files.append((file_path, str(e)))

    if failed_files:
        logger.warning(
            f"Loaded {len(documents)}/{len(file_paths)} files. "
            f"Failed: {', '.join(f[0] for f in failed_files)}"
        )

    return documents, failed_files
