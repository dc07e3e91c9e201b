"""Application configuration and settings."""
import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Application settings loaded from environment variables."""

    # Strava OAuth Configuration
    STRAVA_CLIENT_ID: str = os.getenv("STRAVA_CLIENT_ID", "")
    STRAVA_CLIENT_SECRET: str = os.getenv("STRAVA_CLIENT_SECRET", "")
    STRAVA_REDIRECT_URI: str = os.getenv("STRAVA_REDIRECT_URI", "http://localhost:5173/strava-callback")
    STRAVA_AUTH_URL: str = "https://www.strava.com/oauth/authorize"
    STRAVA_TOKEN_URL: str = "https://www.strava.com/oauth/token"
    STRAVA_API_BASE: str = "https://www.strava.com/api/v3"

    # RideWithGPS OAuth Configuration
    RWGPS_CLIENT_ID: str = os.getenv("RWGPS_CLIENT_ID", "")
    RWGPS_CLIENT_SECRET: str = os.getenv("RWGPS_CLIENT_SECRET", "")
    RWGPS_REDIRECT_URI: str = os.getenv("RWGPS_REDIRECT_URI", "http://localhost:5173/rwgps-callback")
    RWGPS_AUTH_URL: str = "https://ridewithgps.com/oauth/authorize"
    RWGPS_TOKEN_URL: str = "https://ridewithgps.com/oauth/token"
    RWGPS_API_BASE: str = "https://ridewithgps.com"

    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./db/heatmap.db")

    # Application Configuration
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:5173")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Upstream API behaviour
    USER_AGENT: str = "ActivityHeatmap/1.0"
    PAGE_DELAY_SECONDS: float = float(os.getenv("PAGE_DELAY_SECONDS", "0.1"))
    TRACK_DELAY_SECONDS: float = float(os.getenv("TRACK_DELAY_SECONDS", "0.2"))

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == "development"


settings = Settings()
