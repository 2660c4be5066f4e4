"""
Health checks and monitoring with Prometheus metrics
"""
import time

import psutil
import structlog
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest
from sqlmodel import Session, func, select

from studysets import config
from studysets.db import engine
from studysets.models import Category, QuizQuestion, StudySet
from studysets.services.cache import cache

logger = structlog.get_logger()

HEALTHY = "healthy"
DEGRADED = "degraded"
UNHEALTHY = "unhealthy"

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
AI_GENERATION_REQUESTS = Counter(
    'ai_generation_requests_total', 'LLM generation calls by kind and result', ['type', 'status']
)
QUESTIONS_SAVED = Counter('quiz_questions_saved_total', 'Quiz questions persisted after normalization')
STORED_ROWS = Gauge('studysets_stored_rows', 'Rows per table at the last health check', ['table'])

COUNTED_TABLES = {"study_sets": StudySet, "quiz_questions": QuizQuestion, "categories": Category}


class HealthChecker:
    def __init__(self):
        self.start_time = time.time()

    def check_database(self) -> dict:
        """Counts rows of the main tables; a failing query marks the database unhealthy."""
        try:
            with Session(engine) as session:
                counts = {
                    name: session.exec(select(func.count()).select_from(model)).one()
                    for name, model in COUNTED_TABLES.items()
                }
        except Exception as e:
            logger.error("health_check_failed", component="database", error=str(e))
            return {"status": UNHEALTHY, "message": f"Database query failed: {e}"}

        for name, count in counts.items():
            STORED_ROWS.labels(table=name).set(count)
        return {"status": HEALTHY, "rows": counts}

    def check_cache(self) -> dict:
        """The in-process fallback works but is per-worker, so it only counts as degraded."""
        key = "health:probe"
        cache.set(key, "ok", expire=10)
        round_trip = cache.get(key) == "ok"
        cache.delete(key)

        if not round_trip:
            return {"status": UNHEALTHY, "backend": cache.backend, "message": "Cache round trip failed"}
        status = HEALTHY if cache.backend == "redis" else DEGRADED
        return {"status": status, "backend": cache.backend}

    def check_llm(self) -> dict:
        # configuration only; no request is sent to the provider
        if not config.OPENAI_API_KEY:
            return {"status": UNHEALTHY, "message": "OPENAI_API_KEY not set"}
        return {
            "status": HEALTHY,
            "models": {"quiz": config.QUIZ_MODEL, "vision": config.VISION_MODEL, "utility": config.UTILITY_MODEL},
        }

    def get_system_metrics(self) -> dict:
        memory = psutil.virtual_memory()
        process = psutil.Process()
        return {
            "cpu_percent": psutil.cpu_percent(interval=None),
            "memory_percent": memory.percent,
            "process_rss_mb": round(process.memory_info().rss / (1024 ** 2), 1),
            "uptime_seconds": round(time.time() - self.start_time, 1),
        }

    def get_health_status(self) -> dict:
        checks = {
            "database": self.check_database(),
            "cache": self.check_cache(),
            "llm": self.check_llm(),
        }
        statuses = {name: check["status"] for name, check in checks.items()}
        if UNHEALTHY in statuses.values():
            overall = UNHEALTHY
        elif DEGRADED in statuses.values():
            overall = DEGRADED
        else:
            overall = HEALTHY

        return {
            "status": overall,
            "timestamp": time.time(),
            "checks": checks,
            "system_metrics": self.get_system_metrics(),
            "unhealthy_components": [name for name, status in statuses.items() if status == UNHEALTHY],
        }


# Global health checker instance
health_checker = HealthChecker()


def get_metrics():
    """Get Prometheus metrics"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
