"""
Runtime configuration read from the environment
"""
import os
from dataclasses import dataclass


def read_environment() -> dict:
    """Read every setting from the current environment"""
    return {
        "redis_url": os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        # "persistent" keeps quiz and pdf results in Redis, "memory" keeps everything in-process
        "cache_backend": os.getenv("QUIZFORGE_CACHE_BACKEND", "persistent"),
        "cache_max_entries": int(os.getenv("QUIZFORGE_CACHE_MAX_ENTRIES", "100")),
        "cache_sweep_interval": float(os.getenv("QUIZFORGE_CACHE_SWEEP_INTERVAL", str(5 * 60))),
        "quiz_cache_ttl": float(os.getenv("QUIZFORGE_QUIZ_CACHE_TTL", str(60 * 60))),
        "pdf_cache_ttl": float(os.getenv("QUIZFORGE_PDF_CACHE_TTL", str(24 * 60 * 60))),
        "api_cache_ttl": float(os.getenv("QUIZFORGE_API_CACHE_TTL", str(15 * 60))),
        # Stubbed parser/generator latency, in seconds
        "simulated_delay": float(os.getenv("QUIZFORGE_SIMULATED_DELAY", "3.0")),
        "max_upload_bytes": int(os.getenv("QUIZFORGE_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
        "log_level": os.getenv("QUIZFORGE_LOG_LEVEL", "INFO"),
    }


# Values as of import, used as defaults by the modules below
_env = read_environment()
REDIS_URL = _env["redis_url"]
CACHE_BACKEND = _env["cache_backend"]
CACHE_MAX_ENTRIES = _env["cache_max_entries"]
CACHE_SWEEP_INTERVAL = _env["cache_sweep_interval"]
QUIZ_CACHE_TTL = _env["quiz_cache_ttl"]
PDF_CACHE_TTL = _env["pdf_cache_ttl"]
API_CACHE_TTL = _env["api_cache_ttl"]
SIMULATED_DELAY = _env["simulated_delay"]
MAX_UPLOAD_BYTES = _env["max_upload_bytes"]
LOG_LEVEL = _env["log_level"]


@dataclass(frozen=True)
class Settings:
    redis_url: str = REDIS_URL
    cache_backend: str = CACHE_BACKEND
    cache_max_entries: int = CACHE_MAX_ENTRIES
    cache_sweep_interval: float = CACHE_SWEEP_INTERVAL
    quiz_cache_ttl: float = QUIZ_CACHE_TTL
    pdf_cache_ttl: float = PDF_CACHE_TTL
    api_cache_ttl: float = API_CACHE_TTL
    simulated_delay: float = SIMULATED_DELAY
    max_upload_bytes: int = MAX_UPLOAD_BYTES
    log_level: str = LOG_LEVEL


def load_settings(**overrides) -> Settings:
    """Build settings from the environment as it is now, with explicit overrides taking precedence"""
    values = read_environment()
    values.update(overrides)
    return Settings(**values)
