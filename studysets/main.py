import time

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from studysets import config
from studysets.db import init_db
from studysets.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from studysets.routers import categories as categories_router
from studysets.routers import quiz as quiz_router
from studysets.routers import stats as stats_router
from studysets.routers import study_sets as study_sets_router
from studysets.services.llm import LLMNotConfigured
from studysets.services.logging import REQUEST_ID_HEADER, bind_request_context, configure_logging, log_request
from studysets.services.monitoring import REQUEST_COUNT, REQUEST_DURATION, get_metrics, health_checker

configure_logging()
logger = structlog.get_logger()

app = FastAPI(
    title="Study Sets",
    description="Quiz generation from study materials with per-category progress tracking",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(LLMNotConfigured)
async def llm_not_configured(request: Request, exc: LLMNotConfigured):
    logger.error("llm_not_configured", error=str(exc))
    return JSONResponse(status_code=503, content={"error": "Quiz generation is not configured on this server"})


@app.middleware("http")
async def observe_request(request: Request, call_next):
    request_id = bind_request_context(request)
    started = time.perf_counter()

    response = await call_next(request)

    duration = time.perf_counter() - started
    # label by route template so /api/study-sets/{study_set_id} is one series, not one per id
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=response.status_code).inc()
    REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(duration)

    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time"] = f"{duration:.4f}"
    log_request(request, response.status_code, duration)
    return response


# ----------------- Health & Monitoring Endpoints -----------------
@app.get("/health")
def health_check():
    return health_checker.get_health_status()


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint"""
    return get_metrics()


# ----------------- Startup -----------------
@app.on_event("startup")
def on_startup():
    init_db()
    logger.info("application_started", database=config.DATABASE_URL.split("://")[0], version=app.version)


# ----------------- Routers -----------------
app.include_router(quiz_router.router)
app.include_router(study_sets_router.router)
app.include_router(categories_router.router)
app.include_router(stats_router.router)
