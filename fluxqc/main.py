import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fluxqc.config import settings
from fluxqc.database import init_db
from fluxqc.routes.datasets import router as datasets_router
from fluxqc.routes.detection import router as detection_router
from fluxqc.routes.imputation import router as imputation_router
from fluxqc.routes.thresholds import router as thresholds_router
from fluxqc.schemas.common import fail
from fluxqc.services.errors import QualityError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Local SQLite gets its schema created; other databases are migrated with Alembic
    if settings.DATABASE_URL.startswith("sqlite"):
        init_db()
    yield


app = FastAPI(title="FluxQC API", version="1.0.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QualityError)
async def quality_error_handler(request: Request, exc: QualityError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=fail(exc.message))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=422, content=fail(problems or "Invalid request"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content=fail("Internal server error"))


@app.get("/")
def root():
    return {"message": "FluxQC API is running", "version": "1.0.0"}


@app.get("/health")
def health():
    return {"status": "healthy"}


app.include_router(datasets_router)
app.include_router(thresholds_router)
app.include_router(detection_router)
app.include_router(imputation_router)
