# perfaudit/core/config.py
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    """Loads environment variables from .env file."""
    REPORTS_DIR: str = "reports"
    REPORTS_URL_PREFIX: str = "/reports"
    PASS_COUNT: int = 3

    # Browser shared by every pass of a batch
    CHROME_PATH: str = "google-chrome"
    CHROME_FLAGS: List[str] = [
        "--headless=new",
        "--no-sandbox",
        "--disable-dev-shm-usage",
        "--disable-gpu",
        "--disable-setuid-sandbox",
        "--window-size=1920,1080",
    ]
    BROWSER_STARTUP_TIMEOUT: float = 30.0

    # Lighthouse CLI
    LIGHTHOUSE_PATH: str = "lighthouse"
    PASS_TIMEOUT: float = 120.0
    THROTTLING_METHOD: str = "provided"
    DISABLE_STORAGE_RESET: bool = True

    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

# Create a single instance of the settings to be used across the application
settings = Settings()
