import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CORS_ORIGINS, RECONCILE_STUCK_JOBS_ON_STARTUP, STUCK_JOB_MAX_AGE, validate_settings
from database import Base, SessionLocal, engine
from exceptions import AdGenError
from orchestrator import reconcile_stuck_jobs
from routers.videos import router as videos_router

# --------------------------------------------------------------------------
# --- Configuration & Setup ---
# --------------------------------------------------------------------------

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


@asynccontextmanager
async def lifespan(app: FastAPI):
    validate_settings()
    Base.metadata.create_all(bind=engine)
    if RECONCILE_STUCK_JOBS_ON_STARTUP:
        db = SessionLocal()
        try:
            reconcile_stuck_jobs(db, STUCK_JOB_MAX_AGE)
        finally:
            db.close()
    yield


app = FastAPI(
    title="Product Video Ad Generator",
    description="Turns product page URLs into short animated video ads.",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --------------------------------------------------------------------------
# --- Error Handling ---
# --------------------------------------------------------------------------

@app.exception_handler(AdGenError)
async def adgen_error_handler(request: Request, exc: AdGenError):
    if exc.status_code >= 500:
        logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        location = ".".join(str(part) for part in errors[0].get("loc", ())[1:])
        message = f"{location}: {errors[0].get('msg')}" if location else errors[0].get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logging.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --------------------------------------------------------------------------
# --- API Endpoints ---
# --------------------------------------------------------------------------

@app.get("/")
def read_root():
    return {"message": "Product Video Ad Generator API is running."}


app.include_router(videos_router, prefix="/api")
