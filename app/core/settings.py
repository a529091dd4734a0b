"""
Core settings and environment variables for AlertShip.
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
    APP_NAME: str = "AlertShip"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # CORS - Frontend URLs allowed to access this API
    # Comma-separated. In production set this to your exact origin(s).
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Firebase/Firestore
    FIREBASE_PROJECT_ID: Optional[str] = None
    FIREBASE_CREDENTIALS_PATH: Optional[str] = None  # Path to service account JSON
    FIREBASE_STORAGE_BUCKET: Optional[str] = None  # Report photos; photos are skipped when unset
    FIREBASE_WEB_API_KEY: Optional[str] = None  # Identity Toolkit REST (email/password flows)

    # Mock DB mode for local development without Firebase credentials
    # MOCK_DB_PATH="" keeps the mock database in memory only
    USE_MOCK_DB: bool = False
    MOCK_DB_PATH: str = "./mock_db.json"

    # Google Places / Geocoding
    # Without a key the search and map views degrade to an explicit error state.
    GOOGLE_MAPS_API_KEY: Optional[str] = None
    PLACES_COUNTRY: str = "IN"
    # Location bias rectangle "south,west,north,east" (Gurgaon area)
    PLACES_BIAS_BOUNDS: str = "28.0,76.5,28.8,77.5"
    EXTERNAL_TIMEOUT_SECONDS: float = 5.0

    # Auth / sessions
    AUTH_COOKIE_NAME: str = "idToken"
    SESSION_COOKIE_NAME: str = "alertship_sid"
    AUTH_COOKIE_SECURE: bool = False
    RESEND_VERIFICATION_COOLDOWN_SECONDS: int = 60

    # Reports
    LATEST_REPORTS_LIMIT: int = 4
    MAX_REPORT_SESSIONS: int = 1000

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: Optional[str] = None  # File logging disabled when unset

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "allow"  # Allow extra env vars to prevent crashes

    @property
    def cors_origins_list(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]


# Global settings instance
settings = Settings()
