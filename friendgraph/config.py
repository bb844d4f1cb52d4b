"""
Configuration utilities for the friend graph service.
"""

from functools import lru_cache
import os
from typing import List

from pydantic import BaseModel


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """
    Application settings loaded from environment variables.

    Set JWT_SECRET to a random value of at least 32 bytes outside local
    development; the default only matches the legacy client.
    """

    neo4j_uri: str = os.getenv("NEO4J_URI", "bolt://localhost:7687")
    neo4j_user: str = os.getenv("NEO4J_USER", "neo4j")
    neo4j_password: str = os.getenv("NEO4J_PASSWORD", "password")
    # Create the :User uniqueness constraints on startup.
    ensure_constraints: bool = _env_bool("NEO4J_ENSURE_CONSTRAINTS", "true")

    jwt_secret: str = os.getenv("JWT_SECRET", "secretKey")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expires_minutes: int = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

    bcrypt_rounds: int = int(os.getenv("BCRYPT_ROUNDS", "10"))

    # Leave users with a pending request (either direction) out of recommendations.
    exclude_pending: bool = _env_bool("FRIENDGRAPH_EXCLUDE_PENDING")

    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: List[str] = [
        origin.strip()
        for origin in os.getenv("CORS_ORIGINS", "*").split(",")
        if origin.strip()
    ]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached application settings."""
    return Settings()
