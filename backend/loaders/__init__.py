"""
Loaders Module - Statement text extraction and loading.
"""

from .pdf_loader import (
    load_pdf,
    load_document,
    load_documents,
    PDFLoadError
)

__all__ = [
    'load_pdf',
    'load_document',
    'load_documents',
    'PDFLoadError',
]
