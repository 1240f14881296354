from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./fluxqc.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    REDIS_URL: str = "redis://localhost:6379/0"
    S3_ENDPOINT: str = ""
    S3_ACCESS_KEY: str = ""
    S3_SECRET_KEY: str = ""
    S3_BUCKET: str = "fluxqc"
    S3_USE_SSL: bool = False

    # Detection: max detail rows stored per run (0 = unlimited). The aggregate
    # outlier count on the result is always exact.
    DETECTION_DETAIL_LIMIT: int = 1000

    # Imputation confidence: relative trust per fill method, all in [0.55, 0.85]
    IMPUTATION_METHOD_WEIGHTS: dict[str, float] = {
        "MEAN": 0.6,
        "MEDIAN": 0.65,
        "MODE": 0.55,
        "FORWARD_FILL": 0.7,
        "BACKWARD_FILL": 0.7,
        "LINEAR": 0.8,
        "SPLINE": 0.85,
        "POLYNOMIAL": 0.8,
    }
    DEFAULT_METHOD_WEIGHT: float = 0.75

    # Version file parsing runs in a small thread pool
    PARSE_WORKERS: int = 2
    PARSE_TIMEOUT_SECONDS: float = 300.0

    CACHE_PARSED_TABLES: bool = False
    TABLE_CACHE_TTL: int = 3600

    PUBLISH_PROGRESS: bool = False

    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
