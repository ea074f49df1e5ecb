import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, File, Request, UploadFile
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from extractor.config import settings
from extractor.core.logging import configure_logging
from extractor.csv_ingest import parse_csv
from extractor.dependencies import get_caller, get_job_manager, get_quota_guard
from extractor.errors import ExtractorError, build_error_payload, extractor_error_handler
from extractor.export import export_filename
from extractor.job_manager import JobManager
from extractor.models.job import ExtractionType
from extractor.quota import QuotaGuard
from extractor.schemas import CsvPreview, ExtractionRequest, JobPage

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    logger.info("Email extractor starting", extra={"environment": settings.ENVIRONMENT})
    yield
    manager_factory = app.dependency_overrides.get(get_job_manager, get_job_manager)
    await manager_factory().shutdown()


app = FastAPI(title="Email Extractor", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_exception_handler(ExtractorError, extractor_error_handler)


# Add error handling middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Request failed: {str(e)}", exc_info=True)
        return JSONResponse(status_code=500, content=build_error_payload("internal_error", "Internal server error"))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=build_error_payload("invalid_request", "Request validation failed", {"errors": jsonable_encoder(exc.errors())}),
    )


# Add exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception handler caught: {str(exc)}", exc_info=True)
    return JSONResponse(status_code=500, content=build_error_payload("internal_error", "Internal server error"))


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.post("/api/jobs", status_code=202)
async def create_job(
    request: ExtractionRequest,
    caller: str = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
):
    """Start an extraction job for one or more websites."""
    job = await manager.create_job(caller, request.raw_urls(), request.source())
    logger.info("Job created", extra={"job_id": job.job_id, "owner_id": caller, "urls": len(job.urls)})
    return job.to_api()


@app.post("/api/jobs/csv", status_code=202)
async def create_csv_job(
    file: UploadFile = File(...),
    caller: str = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
):
    """Start an extraction job from an uploaded CSV of websites."""
    manager.ensure_csv_allowed(caller)
    urls = parse_csv(await file.read(), max_rows=settings.CSV_MAX_ROWS)
    job = await manager.create_job(caller, urls, ExtractionType.CSV)
    logger.info("CSV job created", extra={"job_id": job.job_id, "owner_id": caller, "upload_name": file.filename})
    return job.to_api()


@app.post("/api/csv/parse")
async def preview_csv(file: UploadFile = File(...), caller: str = Depends(get_caller)):
    """Parse a CSV upload without starting a job."""
    urls = parse_csv(await file.read(), max_rows=settings.CSV_MAX_ROWS)
    return CsvPreview(urls=urls, count=len(urls)).model_dump(by_alias=True)


@app.get("/api/jobs")
async def list_jobs(
    limit: int = 20,
    offset: int = 0,
    caller: str = Depends(get_caller),
    manager: JobManager = Depends(get_job_manager),
):
    jobs = manager.list_jobs(caller, limit=limit, offset=offset)
    return JobPage(jobs=[j.to_api() for j in jobs], limit=limit, offset=offset, count=len(jobs)).model_dump(by_alias=True)


@app.get("/api/jobs/{job_id}")
async def get_job(job_id: str, caller: str = Depends(get_caller), manager: JobManager = Depends(get_job_manager)):
    return manager.get_job(job_id, caller).to_api()


@app.post("/api/jobs/{job_id}/cancel")
async def cancel_job(job_id: str, caller: str = Depends(get_caller), manager: JobManager = Depends(get_job_manager)):
    job = await manager.cancel_job(job_id, caller)
    return job.to_api()


@app.get("/api/jobs/{job_id}/download")
async def download_results(job_id: str, caller: str = Depends(get_caller), manager: JobManager = Depends(get_job_manager)):
    data = manager.export(job_id, caller)
    filename = export_filename(manager.get_job(job_id, caller))
    return Response(
        content=data,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/quota")
async def quota_status(caller: str = Depends(get_caller), guard: QuotaGuard = Depends(get_quota_guard)):
    return guard.status(caller).to_api()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("extractor.main:app", host=settings.HOST, port=settings.PORT)
