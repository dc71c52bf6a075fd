"""
Prometheus metrics and cache health checks
"""
import time

from prometheus_client import Counter, Gauge, CONTENT_TYPE_LATEST, generate_latest

# Prometheus metrics
CACHE_REQUESTS = Counter('quizforge_cache_requests_total', 'Cache lookups', ['cache', 'result'])
CACHE_EVICTIONS = Counter('quizforge_cache_evictions_total', 'Cache entries removed', ['cache', 'reason'])
CACHE_WRITE_FAILURES = Counter('quizforge_cache_write_failures_total', 'Persistent cache writes that fell back to memory', ['cache'])
CACHE_ENTRIES = Gauge('quizforge_cache_entries', 'Live entries tracked by a cache', ['cache'])
QUIZ_GENERATION_REQUESTS = Counter('quizforge_quiz_generation_requests_total', 'Quiz generation attempts', ['model', 'status'])
DOCUMENTS_PARSED = Counter('quizforge_documents_parsed_total', 'Documents run through the parser', ['status'])


class HealthChecker:
    def __init__(self):
        self.start_time = time.time()

    def check_cache(self, cache) -> dict:
        """Check that a cache's backend answers"""
        if cache.ping():
            stats = cache.get_stats()
            return {
                "status": "healthy",
                "message": "Cache backend reachable",
                "backend": stats.backend,
                "entries": stats.size
            }
        return {
            "status": "unhealthy",
            "message": "Cache backend unreachable",
            "backend": cache.backend
        }

    def get_health_status(self, caches) -> dict:
        """Get overall health status for every named cache"""
        checks = {cache.name: self.check_cache(cache) for cache in caches}
        unhealthy_checks = [name for name, check in checks.items() if check["status"] == "unhealthy"]

        return {
            "status": "healthy" if not unhealthy_checks else "unhealthy",
            "timestamp": time.time(),
            "uptime_seconds": time.time() - self.start_time,
            "checks": checks,
            "unhealthy_components": unhealthy_checks
        }


def get_metrics():
    """Get Prometheus metrics in the text exposition format"""
    return generate_latest(), CONTENT_TYPE_LATEST
