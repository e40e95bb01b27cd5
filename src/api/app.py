"""FastAPI application for the certificate number extraction API.

Provides REST endpoints for single and batch extraction, field listing,
and health checks.
"""

import asyncio
import shutil
import time
import uuid
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from src.ocr.document_processor import CertificateProcessor
from src.ocr.errors import EngineInitError, InvalidImageError
from src.utils.config import load_config
from src.utils.logger import get_logger

from .schemas import (
    BatchExtractionResponse,
    BatchItemResponse,
    ExtractionResponse,
    FieldInfo,
    FieldsResponse,
    HealthResponse,
    NumberResultResponse,
    RectangleResponse,
)

logger = get_logger(__name__)

app = FastAPI(
    title="Certificate Number Extraction API",
    description="Extract registration and voucher numbers from scanned certificates",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _get_processor() -> CertificateProcessor:
    """Create a processor from the current configuration."""
    return CertificateProcessor(load_config())


def _request_timeout() -> float | None:
    """Seconds a request waits for recognition, from the batch config."""
    return load_config().batch.timeout_s


_ALLOWED_CONTENT_TYPES = {
    "image/png",
    "image/jpeg",
    "image/tiff",
    "application/octet-stream",
}


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version="1.0.0",
        tesseract_available=shutil.which("tesseract") is not None,
    )


@app.post("/extract", response_model=ExtractionResponse)
async def extract_document(
    file: Annotated[UploadFile, File(...)],
) -> ExtractionResponse:
    """Extract the numeric fields from an uploaded certificate image.

    Args:
        file: Uploaded image file (PNG, JPEG or TIFF).

    Returns:
        Extracted fields, or ``fields=None`` when the registration
        number could not be found.
    """
    start_time = time.time()

    if file.content_type and file.content_type not in _ALLOWED_CONTENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type: {file.content_type}",
        )

    try:
        processor = _get_processor()
        content = await file.read()
        # the worker thread keeps running past the deadline and closes its session
        results = await asyncio.wait_for(
            asyncio.to_thread(
                processor.process, content, filename=file.filename or "document"
            ),
            timeout=_request_timeout(),
        )
    except TimeoutError as exc:
        logger.error("Extraction of %s timed out", file.filename)
        raise HTTPException(status_code=504, detail="Recognition timed out") from exc
    except InvalidImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except EngineInitError as exc:
        logger.error("OCR engine unavailable: %s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    except Exception as exc:
        logger.error("Extraction failed: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    fields = (
        {name: NumberResultResponse.from_result(r) for name, r in results.items()}
        if results is not None
        else None
    )
    return ExtractionResponse(
        success=fields is not None,
        document_id=str(uuid.uuid4()),
        fields=fields,
        processing_time_ms=(time.time() - start_time) * 1000,
    )


@app.post("/extract/batch", response_model=BatchExtractionResponse)
async def extract_batch(
    files: Annotated[list[UploadFile], File(...)],
) -> BatchExtractionResponse:
    """Extract the numeric fields from multiple uploaded certificates.

    Args:
        files: List of uploaded image files.

    Returns:
        Batch extraction results with per-file outcomes.
    """
    results: list[BatchItemResponse] = []
    successful = 0

    for file in files:
        try:
            result = await extract_document(file)
            results.append(
                BatchItemResponse(filename=file.filename or "unknown", result=result)
            )
            successful += 1
        except HTTPException as exc:
            results.append(
                BatchItemResponse(filename=file.filename or "unknown", error=exc.detail)
            )

    return BatchExtractionResponse(
        success=successful > 0,
        total_documents=len(files),
        successful=successful,
        failed=len(files) - successful,
        results=results,
    )


@app.get("/fields", response_model=FieldsResponse)
async def list_fields() -> FieldsResponse:
    """List the configured numeric fields and their search windows."""
    config = load_config()
    return FieldsResponse(
        fields=[
            FieldInfo(
                name=name,
                length=cfg.length,
                prefix=cfg.prefix,
                initial_rect=RectangleResponse(**cfg.rect.model_dump()),
                mandatory=name == config.mandatory_field,
            )
            for name, cfg in config.fields.items()
        ]
    )
