"""
FastAPI Backend for Broker Statement Transaction Extractor
RESTful API endpoints for extracting transactions from statements
"""

from fastapi import FastAPI, File, UploadFile, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from pathlib import Path
from datetime import datetime
import tempfile
import logging
import sys

# Add backend to path
backend_path = Path(__file__).parent.parent / 'backend'
sys.path.insert(0, str(backend_path))

# Import backend modules
from config import config
from logging_config import setup_logging
from loaders.pdf_loader import load_document, PDFLoadError
from extractors import (
    BookingRules,
    ExtractorRegistry,
    RawDocument,
    SecurityRegistry,
    UnrecognizedDocument,
    extract_transactions_from_text,
)
from validators.financial_validator import TransactionValidator

setup_logging()
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Broker Statement Extractor API",
    description="Extract buy/sell, dividend and tax refund transactions from broker statements",
    version=config.VERSION
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# One security registry for the lifetime of the service
securities = SecurityRegistry()


class ExtractRequest(BaseModel):
    text: str
    source: str = "<request>"


def _run_extraction(document: RawDocument) -> dict:
    """
    Extract and validate. Only valid transactions are returned; unrecognized
    documents become HTTP 422.
    """
    try:
        transactions = extract_transactions_from_text(
            document,
            securities=securities,
            bookings=BookingRules.from_config(config),
            max_block_lines=config.MAX_BLOCK_LINES,
        )
    except UnrecognizedDocument as e:
        logger.warning(f"Unrecognized document {document.source}: {e}")
        raise HTTPException(status_code=422, detail=f"Unrecognized document: {e}")

    validator = TransactionValidator(strict_mode=False)
    valid = validator.validate_transactions(transactions)

    return {
        "status": "success",
        "source": document.source,
        "transactions": [txn.to_dict() for txn in valid],
        "summary": {
            "total_transactions": len(transactions),
            "valid_transactions": len(valid),
            "validation": validator.get_stats(),
        },
    }


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {
        "message": "Broker Statement Transaction Extractor API",
        "version": config.VERSION,
        "endpoints": {
            "POST /extract": "Extract transactions from statement text",
            "POST /extract/file": "Extract transactions from an uploaded PDF or text file",
            "GET /extractors": "List supported institutions",
            "GET /health": "Health check"
        }
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now().isoformat()
    }


@app.get("/extractors")
async def list_extractors():
    """List registered institution extractors"""
    return {"extractors": ExtractorRegistry.labels()}


@app.post("/extract")
async def extract_text(request: ExtractRequest):
    """
    Extract transactions from already extracted statement text.

    - **text**: Statement text, one line per statement line
    - **source**: Optional name used in logs and results
    """
    if not request.text.strip():
        raise HTTPException(status_code=400, detail="Text must not be empty")

    logger.info(f"Extracting from text ({len(request.text)} characters)")
    return _run_extraction(RawDocument.from_text(request.text, source=request.source))


@app.post("/extract/file")
async def extract_file(file: UploadFile = File(..., description="PDF or text statement")):
    """
    Extract transactions from an uploaded statement.

    - **file**: A .pdf or .txt statement
    """
    content = await file.read()

    is_valid, error = config.validate_file(file.filename or "", len(content))
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)

    suffix = Path(file.filename).suffix.lower()
    with tempfile.TemporaryDirectory() as tmp_dir:
        tmp_path = Path(tmp_dir) / f"upload{suffix}"
        tmp_path.write_bytes(content)

        try:
            document = load_document(str(tmp_path))
        except PDFLoadError as e:
            logger.error(f"Error loading {file.filename}: {e}")
            raise HTTPException(status_code=400, detail=str(e))

    return _run_extraction(RawDocument(lines=document.lines, source=file.filename))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.API_HOST, port=config.API_PORT)
