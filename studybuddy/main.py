import time

import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from studybuddy.dependencies import get_cache, get_pattern_store
from studybuddy.middleware.rate_limit import limiter
from studybuddy.routers import patterns as patterns_router
from studybuddy.routers import questions as questions_router
from studybuddy.services.cache import CacheService
from studybuddy.services.logging import configure_logging, log_api_request
from studybuddy.services.monitoring import REQUEST_COUNT, REQUEST_DURATION, get_metrics, health_checker
from studybuddy.services.patterns import PatternStore

# Configure logging
configure_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="StudyBuddy Question Generator",
    description="Turns study material into validated quiz questions using local or cloud LLMs",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


# Request logging and metrics
@app.middleware("http")
async def add_process_time_header(request: Request, call_next):
    start_time = time.time()
    log_api_request(request)

    response = await call_next(request)

    process_time = time.time() - start_time
    response.headers["X-Process-Time"] = str(process_time)

    REQUEST_COUNT.labels(
        method=request.method,
        endpoint=request.url.path,
        status=response.status_code
    ).inc()
    REQUEST_DURATION.labels(
        method=request.method,
        endpoint=request.url.path
    ).observe(process_time)

    log_api_request(request, response, process_time)
    return response


# ----------------- Health & Monitoring Endpoints -----------------
@app.get("/health")
def health_check(
    cache: CacheService = Depends(get_cache),
    store: PatternStore = Depends(get_pattern_store),
):
    """Health check endpoint"""
    return health_checker.get_health_status(cache, store)


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return get_metrics()


# ----------------- Routers -----------------
app.include_router(questions_router.router)
app.include_router(patterns_router.router)
