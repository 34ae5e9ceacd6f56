"""
Configuration management using Pydantic Settings
"""
from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional

BACKEND_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Core
    mongodb_uri: str = "mongodb://localhost:27017"  # Override via MONGODB_URI env var in production
    mongodb_db_name: str = "corridor_vibe"
    environment: str = "development"  # development | production
    use_mocks: bool = False  # Serve mock feed records instead of calling CDOT

    # CORS Configuration
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000"

    # Traffic feeds - CDOT (COtrip) data API
    cdot_api_key: Optional[str] = None
    cdot_base_url: str = "https://data.cotrip.org/api/v1"
    cdot_timeout_seconds: float = 30.0

    # Incident text normalization - Anthropic Messages API (optional)
    anthropic_api_key: Optional[str] = None
    anthropic_model: str = "claude-3-haiku-20240307"
    llm_timeout_seconds: float = 10.0  # Per incident, not per run
    llm_max_retries: int = 2
    narrative_enabled: bool = False

    # Segment configuration
    segments_config_path: str = str(BACKEND_DIR / "config" / "segments.v1.json")
    segments_config_url: Optional[str] = None
    segments_config_token: Optional[str] = None

    # Scheduling
    run_interval_seconds: int = 300
    run_on_startup: bool = True

    # Trend / history
    history_window_minutes: int = 120
    weather_surface_scope: str = "corridor"  # corridor | segment

    # Application
    debug: bool = False
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse comma-separated CORS origins into a list"""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def feeds_use_mock(self) -> bool:
        """Mock feeds when the flag is set OR the API key is missing"""
        return self.use_mocks or not self.cdot_api_key

    @property
    def llm_enabled(self) -> bool:
        """Text model calls need a non-empty Anthropic key"""
        return bool(self.anthropic_api_key)

    def missing_required(self) -> List[str]:
        """
        Names of settings a live worker run cannot do without

        Returns:
            Environment variable names that are unset; empty when the run may proceed
        """
        missing = []
        if not self.use_mocks and not self.cdot_api_key:
            missing.append("CDOT_API_KEY")
        if not self.mongodb_uri:
            missing.append("MONGODB_URI")
        if not self.segments_config_url and not self.segments_config_path:
            missing.append("SEGMENTS_CONFIG_PATH")
        return missing


# Global settings instance
settings = Settings()
