"""FastAPI CV validator service — CV upload, background AI validation, status polling.

Stores the uploaded document, creates a pending record and hands the
validation task to FastAPI background tasks. Clients poll the record's
validation status.
"""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, FastAPI, File, Form, UploadFile
from fastapi.responses import JSONResponse

from config import settings
from documents import DocumentFetcher, InvalidUploadError, validate_upload
from model_client import ModelClient
from models import CVRecord, FormData, UploadResponse, ValidationStatusResponse
from pipeline import run_validation
from records import InMemoryRecordStore, RecordNotFoundError
from storage import InMemoryObjectStore
from validation import ModelVerdictSource

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

_object_store = InMemoryObjectStore()
_records = InMemoryRecordStore()
_fetcher: DocumentFetcher | None = None
_model_client: ModelClient | None = None
_model_configured: bool = False


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the document fetcher and, if an API key is set, the model client."""
    global _fetcher, _model_client, _model_configured

    _fetcher = DocumentFetcher(_object_store)

    if not settings.OPENROUTER_API_KEY:
        logger.info("Model provider not configured (OPENROUTER_API_KEY is empty) — AI validation disabled")
        _model_configured = False
    else:
        logger.info("Using model %s at %s", settings.MODEL_ID, settings.MODEL_API_URL)
        _model_client = ModelClient()
        _model_configured = True

    yield

    if _model_client is not None:
        _model_client.close()
    _fetcher.close()


app = FastAPI(title="CV Validator", version="1.0.0", lifespan=lifespan)


def _not_found(cv_id: str) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": f"CV not found: {cv_id}"})


def _bad_request(detail: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": detail})


@app.post("/api/v1/cvs", response_model=UploadResponse)
async def upload_cv(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    full_name: str = Form(...),
    email: str = Form(...),
    phone: str | None = Form(None),
    skills: str | None = Form(None),
    experience: str | None = Form(None),
):
    """Store a CV with its form data and schedule AI validation."""
    if not full_name.strip():
        return _bad_request("Full name is required")
    if not _EMAIL_RE.match(email):
        return _bad_request("Valid email is required")

    filename = file.filename or ""
    if not filename:
        return _bad_request("File name is required")

    content = await file.read()
    try:
        media_type = validate_upload(content, filename)
    except InvalidUploadError as e:
        logger.info("Rejected upload %s: %s", filename, e)
        return _bad_request(str(e))

    unique_name = f"{int(time.time() * 1000)}-{filename}"
    _object_store.put(settings.STORAGE_BUCKET, unique_name, content, media_type)
    file_url = f"{settings.STORAGE_PUBLIC_URL.rstrip('/')}/{settings.STORAGE_BUCKET}/{unique_name}"

    form = FormData(full_name=full_name, email=email, phone=phone, skills=skills, experience=experience)
    record = _records.create(form, unique_name, file_url)
    logger.info("CV uploaded: cv=%s size=%d bytes type=%s", record.id, len(content), media_type)

    if _model_configured and _model_client is not None and _fetcher is not None:
        payload = {
            "cvId": record.id,
            "fileUrl": file_url,
            "formData": form.model_dump(by_alias=True),
        }
        background_tasks.add_task(
            run_validation,
            payload,
            _records,
            _fetcher,
            ModelVerdictSource(_model_client),
        )
    else:
        logger.warning("AI validation not scheduled for cv=%s — model provider not configured", record.id)

    return UploadResponse(
        success=True,
        id=record.id,
        message="CV uploaded successfully. AI validation is in progress.",
    )


@app.get("/api/v1/cvs", response_model=list[CVRecord])
async def list_cvs():
    """Return all CVs, newest first."""
    return _records.list_all()


@app.get("/api/v1/cvs/{cv_id}", response_model=CVRecord)
async def get_cv(cv_id: str):
    try:
        return _records.get(cv_id)
    except RecordNotFoundError:
        return _not_found(cv_id)


@app.get("/api/v1/cvs/{cv_id}/validation", response_model=ValidationStatusResponse)
async def get_validation_status(cv_id: str):
    """Polling endpoint for the validation status, results and errors."""
    try:
        record = _records.get(cv_id)
    except RecordNotFoundError:
        return _not_found(cv_id)

    return ValidationStatusResponse(
        id=record.id,
        validation_status=record.validation_status,
        validation_results=record.validation_results,
        validation_errors=record.validation_errors,
        validated_at=record.validated_at,
    )


@app.get("/health")
async def health():
    """Return service status and whether the model provider is configured."""
    return {
        "status": "healthy",
        "model_configured": _model_configured,
        "model": settings.MODEL_ID,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
