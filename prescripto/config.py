"""
Application configuration settings loaded from environment variables.
Uses pydantic_settings for validation and type conversion.
"""
from pydantic_settings import BaseSettings
from typing import List, Literal, Optional

class Settings(BaseSettings):
    """
    Application settings class with environment variable validation.

    Attributes:
        database_url: SQLAlchemy connection string
        secret_key: Secret key for JWT token encoding
        algorithm: Algorithm used for JWT encoding (typically HS256)
        access_token_expire_minutes: Access token expiration time in minutes

        # Record settings
        record_id_strategy: How daily record sequence numbers are assigned.
            "counter" uses an atomic per-day counter row, "count" counts the
            records already created that day.
        max_test_images: Maximum number of images attached to a test result
        stats_window_months: Number of trailing months covered by record stats

        # Cloudinary settings (optional - uploads fail when unset)
        cloudinary_cloud_name: Cloudinary cloud name
        cloudinary_api_key: Cloudinary API key
        cloudinary_api_secret: Cloudinary API secret

        # HTTP settings
        cors_origins: Origins allowed by the CORS middleware
        log_level: Root logging level
    """
    # Database settings
    database_url: str = "sqlite:///./prescripto.db"

    # JWT settings
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Record settings
    record_id_strategy: Literal["counter", "count"] = "counter"
    max_test_images: int = 5
    stats_window_months: int = 6

    # Cloudinary settings
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # HTTP settings
    cors_origins: List[str] = [
        "http://localhost:5173",  # Patient frontend development server
        "http://localhost:5174",  # Admin/doctor panel development server
    ]
    log_level: str = "INFO"

    class Config:
        """Configuration for environment variables loading"""
        env_file = ".env"
        case_sensitive = False

# Create settings instance
settings = Settings()
