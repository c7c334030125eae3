# api.py (resume insight backend)
import logging
import os
import uuid
from functools import lru_cache
from typing import Callable, Optional

from fastapi import Depends, FastAPI, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ai_analyzer import SummarizationUnavailable, summarize_resume
from config import Settings, settings
from insights import record_insight
from parser import ExtractionError, extract_text_from_pdf_bytes
from store import InsightStore, JsonFileInsightStore, StorageError

logging.basicConfig(level=settings.log_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

Summarizer = Callable[[str, str], str]


app = FastAPI(title="Resume Insights API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(settings.cors_allowed_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_settings() -> Settings:
    return settings


@lru_cache(maxsize=1)
def get_store() -> InsightStore:
    return JsonFileInsightStore(settings.insights_db_path)


def get_summarizer() -> Summarizer:
    return summarize_resume


def _error(status_code: int, message: str, details: Optional[str] = None) -> JSONResponse:
    body = {"error": message}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body)


def _save_upload(upload_dir: str, document_id: str, filename: str, data: bytes) -> str:
    os.makedirs(upload_dir, exist_ok=True)
    path = os.path.join(upload_dir, f"{document_id}-{os.path.basename(filename)}")
    with open(path, "wb") as buffer:
        buffer.write(data)
    return path


def _summarize_or_none(summarizer: Summarizer, text: str, filename: str) -> Optional[str]:
    try:
        return summarizer(text, filename)
    except SummarizationUnavailable as exc:
        logger.info("Falling back to word frequency for %s: %s", filename, exc)
        return None


@app.post("/api/upload-resume")
async def upload_resume_endpoint(
    resume: Optional[UploadFile] = File(None),
    store: InsightStore = Depends(get_store),
    summarizer: Summarizer = Depends(get_summarizer),
    config: Settings = Depends(get_settings),
):
    if resume is None or not resume.filename:
        return _error(400, "No file uploaded")
    if resume.content_type != PDF_CONTENT_TYPE:
        return _error(400, "Only PDF files are allowed")

    filename = os.path.basename(resume.filename)
    try:
        data = await resume.read()
        extracted_text = await run_in_threadpool(
            extract_text_from_pdf_bytes,
            data,
            min_length=config.pdf_text_min_length,
            ocr_enabled=config.pdf_ocr_enabled,
        )
    except ExtractionError as exc:
        logger.warning("Could not extract text from %s: %s", filename, exc)
        return _error(400, "Could not read text from PDF", str(exc))

    document_id = str(uuid.uuid4())
    try:
        saved_path = await run_in_threadpool(_save_upload, config.upload_dir, document_id, filename, data)
        logger.info("Saved upload %s to %s", filename, saved_path)

        ai_summary = await run_in_threadpool(_summarize_or_none, summarizer, extracted_text, filename)
        record = await run_in_threadpool(
            record_insight,
            store,
            document_id,
            filename,
            extracted_text,
            ai_summary,
            top_words_count=config.top_words_count,
        )
    except StorageError as exc:
        logger.error("Failed to store insight for %s: %s", filename, exc)
        return _error(500, "Failed to process document", str(exc))
    except Exception as exc:
        logger.exception("Upload processing failed for %s", filename)
        return _error(500, "Failed to process document", str(exc))

    return record.to_dict()


@app.get("/api/insights")
async def get_insights_endpoint(
    id: Optional[str] = None,
    store: InsightStore = Depends(get_store),
):
    if id:
        record = await run_in_threadpool(store.get_by_id, id)
        if record is None:
            return _error(404, "Insight not found")
        return record.to_dict()

    records = await run_in_threadpool(store.list_all)
    return [record.to_dict() for record in records]


@app.get("/health")
async def health():
    return {"status": "ok"}
