"""Pydantic request/response schemas for the FastAPI endpoints."""

from pydantic import BaseModel

from src.extraction.region_search import NumberResult


class RectangleResponse(BaseModel):
    """A pixel rectangle in page coordinates."""

    left: int
    top: int
    width: int
    height: int


class NumberResultResponse(BaseModel):
    """Response schema for a single extracted number."""

    found_number: str
    text_box: RectangleResponse
    search_rect: RectangleResponse
    status: str

    @classmethod
    def from_result(cls, result: NumberResult) -> "NumberResultResponse":
        return cls(**result.to_dict())


class ExtractionResponse(BaseModel):
    """Response schema for a certificate extraction request.

    ``fields`` is ``None`` when the registration number was not found.
    """

    success: bool
    document_id: str
    fields: dict[str, NumberResultResponse] | None
    processing_time_ms: float


class BatchItemResponse(BaseModel):
    """Response schema for a single item in a batch extraction."""

    filename: str
    result: ExtractionResponse | None = None
    error: str | None = None


class BatchExtractionResponse(BaseModel):
    """Response schema for batch extraction of multiple certificates."""

    success: bool
    total_documents: int
    successful: int
    failed: int
    results: list[BatchItemResponse]


class FieldInfo(BaseModel):
    """Information about a configured numeric field."""

    name: str
    length: int
    prefix: str
    initial_rect: RectangleResponse
    mandatory: bool


class FieldsResponse(BaseModel):
    """Response schema listing the configured fields."""

    fields: list[FieldInfo]


class HealthResponse(BaseModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
