"""
Core settings and environment variables for the Waste Watch service.
Uses pydantic-settings for type-safe environment variable loading.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Create a .env file in the root directory to configure these.
    """

    # Application
    APP_NAME: str = "Waste Watch"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - Frontend URLs allowed to access this API
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIREBASE_STORAGE_BUCKET: Optional[str] = None

    # In-memory stores for local development and tests (no Firebase credentials needed)
    USE_MOCK_DB: bool = False

    # Image blobs
    # - BLOB_BACKEND: "local" (files under UPLOAD_DIR) or "firebase" (Cloud Storage bucket)
    BLOB_BACKEND: str = "local"
    UPLOAD_DIR: str = "./uploads"
    MAX_FILE_SIZE: int = 5 * 1024 * 1024
    MAX_IMAGES_PER_REPORT: int = 5
    ALLOWED_IMAGE_TYPES: str = "image/jpeg,image/png,image/gif,image/webp"
    IMAGE_CACHE_MAX_AGE: int = 31557600  # one year, blobs never change once stored

    # Bearer credentials (issuance lives in the auth service)
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7

    # Rewards
    REPORT_REWARD_POINTS: int = 10
    COMPLETION_REWARD_POINTS: int = 10
    SILVER_TIER_POINTS: int = 1000
    GOLD_TIER_POINTS: int = 5000
    PLATINUM_TIER_POINTS: int = 10000

    # Discovery
    GEO_RESULT_CAP: int = 100
    DEFAULT_SEARCH_RADIUS_METERS: int = 10000
    MAX_SEARCH_RADIUS_METERS: int = 50000
    # Firestore proximity scans read the latitude band in pages, up to a fixed budget
    GEO_SCAN_PAGE_SIZE: int = 200
    GEO_SCAN_LIMIT: int = 2000
    DEFAULT_PAGE_SIZE: int = 50

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def allowed_image_types(self) -> List[str]:
        return [t.strip().lower() for t in self.ALLOWED_IMAGE_TYPES.split(",") if t.strip()]


# Global settings instance
settings = Settings()
