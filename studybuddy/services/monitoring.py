"""
Health checks and monitoring with Prometheus metrics
"""
import time

import psutil
import structlog
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

from studybuddy import config

logger = structlog.get_logger()

# Prometheus metrics
REQUEST_COUNT = Counter('http_requests_total', 'Total HTTP requests', ['method', 'endpoint', 'status'])
REQUEST_DURATION = Histogram('http_request_duration_seconds', 'HTTP request duration', ['method', 'endpoint'])
GENERATION_REQUESTS = Counter(
    'question_generation_requests_total', 'Question generation requests', ['subject', 'outcome']
)
GENERATION_ATTEMPTS = Counter(
    'question_generation_attempts_total', 'Question generation attempts', ['strategy', 'outcome']
)
GENERATION_DURATION = Histogram(
    'question_generation_duration_seconds', 'Time to complete a generation request', ['subject']
)
QUESTIONS_REJECTED = Counter('questions_rejected_total', 'Candidate questions rejected by validation', ['subject'])
STORED_PATTERNS = Gauge('stored_patterns', 'Stored question patterns', ['subject'])


class HealthChecker:
    def __init__(self):
        self.start_time = time.time()

    def check_cache(self, cache) -> dict:
        """Check cache round trip"""
        try:
            test_key = "health_check_test"
            cache.set(test_key, "test_value", expire=10)
            value = cache.get(test_key)
            cache.delete(test_key)
            if value == "test_value":
                return {"status": "healthy", "message": "Cache operations successful", "backend": cache.backend}
            return {"status": "unhealthy", "message": "Cache operations failed", "backend": cache.backend}
        except Exception as e:
            logger.error("health_check_failed", component="cache", error=str(e))
            return {"status": "unhealthy", "message": f"Cache check failed: {e}"}

    def check_llm(self) -> dict:
        """Report which completion providers are configured"""
        providers = []
        if config.LOCAL_LLM_ENABLED:
            providers.append({"name": "ollama", "model": config.LOCAL_LLM_MODEL, "base_url": config.LOCAL_LLM_BASE_URL})
        if config.OPENAI_API_KEY:
            providers.append({"name": "openai", "model": config.OPENAI_MODEL})
        if not providers:
            return {
                "status": "degraded",
                "message": "No LLM provider configured; only basic extraction is available",
                "providers": [],
            }
        return {"status": "healthy", "message": "LLM providers configured", "providers": providers}

    def check_pattern_store(self, store) -> dict:
        """Check pattern store and refresh the pattern gauges"""
        try:
            stats = store.stats()
            for subject, count in stats["subjects"].items():
                STORED_PATTERNS.labels(subject=subject).set(count)
            return {
                "status": "healthy",
                "message": "Pattern store available",
                "total_patterns": stats["total_patterns"],
                "total_subjects": stats["total_subjects"],
            }
        except Exception as e:
            logger.error("health_check_failed", component="pattern_store", error=str(e))
            return {"status": "unhealthy", "message": f"Pattern store check failed: {e}"}

    def get_system_metrics(self) -> dict:
        """Get system resource metrics"""
        try:
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')
            return {
                "cpu_percent": psutil.cpu_percent(interval=None),
                "memory_percent": memory.percent,
                "memory_available_gb": round(memory.available / (1024**3), 2),
                "disk_percent": disk.percent,
                "disk_free_gb": round(disk.free / (1024**3), 2),
                "uptime_seconds": time.time() - self.start_time,
            }
        except Exception as e:
            logger.error("system_metrics_failed", error=str(e))
            return {"error": str(e)}

    def get_health_status(self, cache, store) -> dict:
        """Get overall health status"""
        checks = {
            "cache": self.check_cache(cache),
            "llm": self.check_llm(),
            "pattern_store": self.check_pattern_store(store),
        }

        # A missing LLM degrades generation but does not make the service unhealthy
        unhealthy_checks = [name for name, check in checks.items() if check["status"] == "unhealthy"]
        overall_status = "healthy" if not unhealthy_checks else "unhealthy"

        return {
            "status": overall_status,
            "timestamp": time.time(),
            "checks": checks,
            "system_metrics": self.get_system_metrics(),
            "unhealthy_components": unhealthy_checks,
        }


# Global health checker instance
health_checker = HealthChecker()


def get_metrics():
    """Get Prometheus metrics"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
