from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Ephemeris backend: "swisseph" (local) or "remote" (HTTP astronomy service)
    EPHEMERIS_BACKEND: str = "swisseph"
    EPHEMERIS_API_URL: str = "http://localhost:8080"
    EPHEMERIS_API_KEY: str = ""
    EPHEMERIS_TIMEOUT_SECONDS: float = 10.0
    EPHEMERIS_MAX_RETRIES: int = 1  # never more than one retry
    EPHEMERIS_CACHE_TTL: int = 3600  # remote response memo, seconds

    # Swiss Ephemeris data files (empty → built-in Moshier ephemeris)
    SWISSEPH_PATH: str = ""
    HOUSE_SYSTEM: str = "P"  # Placidus

    # Redis (horoscope results)
    REDIS_URL: str = "redis://localhost:6379"
    REDIS_ENABLED: bool = False

    # MongoDB (natal charts)
    MONGODB_URI: str = "mongodb://localhost:27017"
    MONGODB_DB_NAME: str = "natalcore"
    MONGODB_ENABLED: bool = False

    # Horoscope validity windows (days)
    DAILY_VALIDITY_DAYS: int = 1
    DEFAULT_VALIDITY_DAYS: int = 7
    EXTENDED_VALIDITY_DAYS: int = 730  # ~2 years for the top tier
    EXTENDED_VALIDITY_TIER: int = 3

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
