from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Link Checker"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = True
    LOG_DIR: str = "logs"

    # ── Redis ───────────────────────────────────
    REDIS_URL: str = "redis://localhost:6379/0"

    # ── Link checker limits ─────────────────────
    LINK_CHECKER_MAX_DEPTH: int = 999999  # page cap is the practical limit
    LINK_CHECKER_MAX_PAGES: int = 2000
    LINK_CHECKER_MAX_CONCURRENCY: int = 10
    LINK_CHECKER_TIMEOUT: float = 10.0  # seconds per network operation
    LINK_CHECKER_MAX_CONTENT_SIZE: int = 5 * 1024 * 1024
    LINK_CHECKER_JOB_TTL: int = 3600
    LINK_CHECKER_MAX_LINKS: int = 5000
    LINK_CHECKER_USER_AGENT: str = "LinkChecker/2.0"
    LINK_CHECKER_WORKER_TOKEN: Optional[str] = None

    # ── Rate limiting ───────────────────────────
    RATE_LIMITS: Dict[str, int] = {
        "/api/v1/link-checker/start": 10,
        "/api/v1/link-checker/info": 30,
    }
    WHITELIST_IPS: List[str] = []
    FORCE_IN_MEMORY_RATE_LIMITER: bool = False

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


settings = Settings()
