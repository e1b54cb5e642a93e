import os
from dataclasses import dataclass, field
from typing import List


def _split(value: str) -> List[str]:
    return [v.strip() for v in value.split(",") if v.strip()]


@dataclass
class Settings:
    database_url: str = "sqlite+aiosqlite:///./dashboard.db"
    jwt_secret: str = "devsecret"
    jwt_algorithm: str = "HS256"
    # polling dashboards stay open for days; keep this >= 1 day
    token_ttl_minutes: int = 60 * 24 * 30
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            jwt_secret=os.getenv("JWT_SECRET", cls.jwt_secret),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", cls.jwt_algorithm),
            token_ttl_minutes=int(os.getenv("TOKEN_TTL_MINUTES", str(cls.token_ttl_minutes))),
            cors_origins=_split(os.getenv("CORS_ORIGINS", "*")),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )
