"""FastAPI application for UBL document extraction.

Thin HTTP adapter over the configured extraction provider:
- Health and readiness checks for Kubernetes
- UBL upload with size and content-type validation
- Structured error responses
- Prometheus metrics for monitoring

Based on FastAPI best practices:
https://fastapi.tiangolo.com/
"""

import logging
import time
import uuid
from typing import Any

from fastapi import FastAPI, File, HTTPException, Query, Request, Response, UploadFile, status
from pydantic import BaseModel

from services.api import metrics
from services.extraction.factory import create_extraction_service
from services.extraction.schema import InvoiceExtractionDTO
from services.shared.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="UBL Extraction Service",
    description="Converts UBL 2.1 invoices and credit notes into normalized extraction records",
    version=settings.service_version,
)

extraction_service = create_extraction_service(settings)

ACCEPTED_CONTENT_TYPES = {"application/xml", "text/xml", "application/octet-stream"}


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware to collect request metrics.

    Tracks:
    - Request count by method, endpoint, and status
    - Request duration by method and endpoint
    """
    # Skip metrics for /metrics endpoint itself
    if request.url.path == "/metrics":
        return await call_next(request)

    start_time = time.time()
    response = await call_next(request)
    duration = time.time() - start_time

    metrics.http_requests_total.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code,
    ).inc()

    metrics.http_request_duration_seconds.labels(
        method=request.method,
        endpoint=request.url.path,
    ).observe(duration)

    return response


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    service: str


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    ready: bool


class ExtractionResponse(BaseModel):
    """UBL extraction response."""

    success: bool
    document_id: str
    extracted: InvoiceExtractionDTO | None = None
    raw_payload: dict[str, Any] | None = None
    provider_job_id: str | None = None


def _is_accepted(file: UploadFile) -> bool:
    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type in ACCEPTED_CONTENT_TYPES:
        return True
    return bool(file.filename and file.filename.lower().endswith(".xml"))


@app.get("/health", response_model=HealthResponse, tags=["Health"])
def health_check() -> HealthResponse:
    """Health check endpoint for liveness probe."""
    return HealthResponse(
        status="healthy", version=settings.service_version, service=settings.service_name
    )


@app.get("/ready", response_model=ReadinessResponse, tags=["Health"])
def readiness_check() -> ReadinessResponse:
    """Readiness check endpoint for Kubernetes readiness probe."""
    return ReadinessResponse(ready=extraction_service.is_available())


@app.get("/metrics", tags=["Monitoring"])
def get_metrics() -> Response:
    """Prometheus metrics endpoint."""
    metrics_data, content_type = metrics.get_metrics()
    return Response(content=metrics_data, media_type=content_type)


@app.post("/api/v1/documents/ubl", response_model=ExtractionResponse, tags=["Documents"])
async def extract_ubl_document(
    file: UploadFile = File(..., description="UBL 2.1 Invoice or CreditNote XML"),  # noqa: B008
    document_id: str | None = Query(
        None,
        description="Caller document identifier (a UUID is generated when omitted)",
    ),
) -> ExtractionResponse:
    """Upload a UBL document and return its normalized extraction record.

    ## Usage Example

    ```bash
    curl -X POST "http://localhost:8000/api/v1/documents/ubl?document_id=doc-1" \\
      -F "file=@invoice.xml;type=application/xml"
    ```

    ## Error Handling

    - Returns 400 if the file is empty
    - Returns 413 if the file exceeds the configured size limit
    - Returns 415 if the file is not XML
    - Returns 422 if the XML is not a UBL Invoice/CreditNote with an ID

    Args:
        file: UBL XML file to process (required)
        document_id: Caller document identifier (optional)

    Returns:
        Extraction response with the normalized record and sanitized raw echo

    Raises:
        HTTPException: If the upload is invalid or the document is not UBL
    """
    if not _is_accepted(file):
        metrics.documents_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(
            status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
            detail=f"Invalid file type: {file.content_type}. Only XML documents are supported.",
        )

    content = await file.read()
    if not content:
        metrics.documents_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty file")

    if len(content) > settings.max_upload_bytes:
        metrics.documents_uploaded_total.labels(status="rejected").inc()
        raise HTTPException(
            status_code=413,  # Content Too Large
            detail=f"File exceeds {settings.max_upload_bytes} bytes",
        )

    metrics.document_upload_size_bytes.observe(len(content))

    doc_id = document_id or str(uuid.uuid4())
    mime_type = file.content_type or "application/xml"

    parse_start = time.time()
    result = extraction_service.extract_document(content, doc_id, mime_type)
    metrics.ubl_parse_duration_seconds.observe(time.time() - parse_start)

    if not result.success or result.extracted is None:
        metrics.ubl_documents_parsed_total.labels(status="invalid", document_type="unknown").inc()
        metrics.documents_uploaded_total.labels(status="failed").inc()
        raise HTTPException(
            status_code=422,  # Unprocessable Content
            detail=result.error,
        )

    document_type = str(result.extracted.invoice.extra.get("document_type", "unknown"))
    metrics.ubl_documents_parsed_total.labels(status="success", document_type=document_type).inc()
    metrics.documents_uploaded_total.labels(status="success").inc()
    logger.info(f"Processed UBL upload {doc_id} ({len(content)} bytes)")

    return ExtractionResponse(
        success=True,
        document_id=doc_id,
        extracted=result.extracted,
        raw_payload=result.raw_payload,
        provider_job_id=result.provider_job_id,
    )
