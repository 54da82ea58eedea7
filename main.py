"""
main.py  —  PageLens  FastAPI Server
─────────────────────────────────────
HOW TO RUN LOCALLY:
  playwright install chromium
  uvicorn main:app --reload --port 8000

URLS:
  /docs                      →  Swagger API docs
  /health, /api/health  GET  →  Health check
  /api/analyze          POST →  Analyze a page's load performance

ENVIRONMENT:
  PORT                     port for `python main.py` (default 8000)
  ENVIRONMENT              "production" or "development"
  FRONTEND_URL             dashboard origin allowed by CORS
  MAX_CONCURRENT_ANALYSES  browsers allowed to run at once (default 4)
  ANALYSIS_DEADLINE_S      overall per-request deadline (default 60)
"""
from __future__ import annotations
import os, time, logging
from contextlib import asynccontextmanager

# ── Load .env file (local dev only) ───────────────────────────────────────────
from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schemas import AnalyzeRequest, AnalysisResponse, HealthResponse, ErrorResponse
from collector.errors import (
    AnalysisError, AnalysisTimeoutError, NavigationError, UnreachableURLError,
)
from core_async import get_pool

# ── Logging ───────────────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(message)s",
    datefmt="%H:%M:%S",
)
log = logging.getLogger("pagelens")

# ── Environment ───────────────────────────────────────────────────────────────
IS_PRODUCTION = os.environ.get("ENVIRONMENT", "development") == "production"
PORT          = int(os.environ.get("PORT", 8000))
FRONTEND_URL  = os.environ.get("FRONTEND_URL", "http://localhost:5173")

# HTTP status per failure class; anything else is a 500
ERROR_STATUS = {
    UnreachableURLError:  502,
    AnalysisTimeoutError: 504,
    NavigationError:      502,
}


# ── Startup / Shutdown ────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(app: FastAPI):
    pool = get_pool()
    log.info("=" * 55)
    log.info("  PageLens starting ...")
    log.info("  Environment:  {}".format("PRODUCTION" if IS_PRODUCTION else "local dev"))
    log.info("  Browsers:     up to {} concurrent".format(pool.max_concurrent))
    log.info("  Deadline:     {:g}s per analysis".format(pool.deadline_s))
    log.info("  CORS origin:  {}".format(FRONTEND_URL))
    if not IS_PRODUCTION:
        log.info("  API Docs:     http://localhost:{}/docs".format(PORT))
    log.info("=" * 55)
    yield
    log.info("PageLens shutting down.")


# ── FastAPI App ───────────────────────────────────────────────────────────────
app = FastAPI(
    title="PageLens",
    description="""
## PageLens — Page Load Performance Analyzer

Loads a page in a headless Chromium, reads the browser's own performance
telemetry and returns Core Web Vitals, navigation timing, a resource
waterfall and prioritised suggestions.

| Method | Path | Description |
|--------|------|-------------|
| `POST` | `/api/analyze` | Analyze a URL |
| `GET` | `/health` | Health check |
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS ──────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_URL, "http://localhost:5173", "http://localhost"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request timing log ────────────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    t0 = time.time()
    response = await call_next(request)
    ms = round((time.time() - t0) * 1000)
    log.info("{:6}  {:<40}  {}  {}ms".format(
        request.method, str(request.url.path), response.status_code, ms))
    return response


# ── Error shapes ──────────────────────────────────────────────────────────────
@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    """Answer 400 {"error": ...} with the first validation message."""
    return JSONResponse(status_code=400, content={"error": _first_validation_message(exc)})


@app.exception_handler(AnalysisError)
async def analysis_error(request: Request, exc: AnalysisError):
    status = ERROR_STATUS.get(type(exc), 500)
    return JSONResponse(
        status_code=status,
        content=ErrorResponse(
            error="Analysis failed: {}".format(exc.message),
            detail=exc.kind,
        ).model_dump(),
    )


# ─────────────────────────────────────────────────────────────────────────────
# SYSTEM ENDPOINTS
# ─────────────────────────────────────────────────────────────────────────────

@app.get("/health", response_model=HealthResponse, tags=["System"], summary="Health check")
@app.get("/api/health", response_model=HealthResponse, tags=["System"], include_in_schema=False)
async def health_check():
    return HealthResponse()


# ─────────────────────────────────────────────────────────────────────────────
# ANALYSIS ENDPOINTS
# ─────────────────────────────────────────────────────────────────────────────

@app.post(
    "/api/analyze",
    response_model=AnalysisResponse,
    tags=["Analyzer"],
    summary="Analyze a page",
    description="""
Load the URL in a fresh headless browser (1920×1080, desktop Chrome UA),
wait for `load` plus a 2 s settle delay, then report:

- **Core Web Vitals**: LCP, FID (always unknown), CLS with ratings
- **Navigation timing**: TTFB, DOMContentLoaded, load, DOM interactive
- **Additional metrics**: FCP, TTI / TBT / Speed Index (heuristics), DNS, TCP, TLS
- **Resources**: per-request waterfall and per-type totals
- **Suggestions**: errors first, then warnings, info, success
    """,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid URL"},
        500: {"model": ErrorResponse, "description": "Analysis failed unexpectedly"},
        502: {"model": ErrorResponse, "description": "Target unreachable or failed to load"},
        504: {"model": ErrorResponse, "description": "Analysis timed out"},
    },
)
async def analyze_page(body: AnalyzeRequest):
    report = await get_pool().run(body.url)
    return report.to_dict()


# ─────────────────────────────────────────────────────────────────────────────
# HELPER FUNCTIONS
# ─────────────────────────────────────────────────────────────────────────────

def _first_validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "missing":
        return "URL is required"
    cause = (first.get("ctx") or {}).get("error")
    if cause is not None:
        return str(cause)
    return "Invalid URL format"


# ─────────────────────────────────────────────────────────────────────────────
# LOCAL DEV ENTRY POINT
# Run with:  python main.py
# ─────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host      = "0.0.0.0",
        port      = PORT,
        reload    = not IS_PRODUCTION,
        log_level = "info",
    )
