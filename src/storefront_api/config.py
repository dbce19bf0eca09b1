import os
from dataclasses import dataclass, field
from typing import Any, Dict, List


def _required_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(
            f"Missing required environment variable '{name}'. "
            "Set it in the process environment or in a .env file."
        )
    return value


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"Environment variable '{name}' must be an integer, got {raw!r}") from None


@dataclass(frozen=True)
class Settings:
    """Typed view of the service configuration."""

    db_user: str
    db_password: str
    db_name: str
    jwt_secret: str
    port: int = 3000
    db_host: str = "localhost"
    db_port: int = 5432
    db_pool_min: int = 1
    db_pool_max: int = 10
    # UTC offset applied to every database session.
    db_time_zone: str = "-08:00"
    jwt_algorithm: str = "HS256"
    jwt_expires_minutes: int = 10080  # 7 days
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @property
    def connect_kwargs(self) -> Dict[str, Any]:
        """libpq connection parameters for the pool."""
        return {
            "host": self.db_host,
            "port": self.db_port,
            "user": self.db_user,
            "password": self.db_password,
            "dbname": self.db_name,
        }


# PUBLIC_INTERFACE
def load_settings() -> Settings:
    """Read the current environment and build a Settings instance."""
    origins_env = os.getenv("CORS_ALLOW_ORIGINS")
    allow_origins = ["*"]
    if origins_env:
        allow_origins = [o.strip() for o in origins_env.split(",") if o.strip()]

    return Settings(
        db_user=_required_env("DB_USER"),
        db_password=_required_env("DB_PASSWORD"),
        db_name=_required_env("DB_NAME"),
        # Required for security; do not default.
        jwt_secret=_required_env("JWT_KEY"),
        port=_int_env("PORT", 3000),
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=_int_env("DB_PORT", 5432),
        db_pool_min=_int_env("DB_POOL_MIN", 1),
        db_pool_max=_int_env("DB_POOL_MAX", 10),
        db_time_zone=os.getenv("DB_TIME_ZONE", "-08:00"),
        jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
        jwt_expires_minutes=_int_env("JWT_EXPIRES_MINUTES", 10080),
        cors_allow_origins=allow_origins,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
