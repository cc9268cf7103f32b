# services/api/settings.py
from pydantic_settings import BaseSettings
from pydantic import ConfigDict, Field
from typing import List, Optional
from pathlib import Path


class Settings(BaseSettings):
    # Storage settings
    # "json" keeps everything in flat files under data_dir; "sqlite" uses db_url
    storage_backend: str = "json"
    data_dir: str = "data"
    db_url: str = "sqlite:///data/seeds.db"

    # CORS settings
    allowed_origins: str = "http://localhost:3000,http://localhost:8000"

    # Editor autosave: delay after the last local edit before the sheet is written
    autosave_delay_seconds: float = Field(default=2.0, ge=0)

    # ---- PDF export ----
    pdf_company_name: str = "Rubin Seeds"
    pdf_subtitle: str = "Admin Panel"

    # Optional TTF font for non-latin text (customer names, notes, cells).
    # Without it the core Helvetica font is used and unsupported characters are replaced.
    pdf_font_path: Optional[str] = None

    # Rendered PDFs are cached per sheet revision for this long
    pdf_cache_ttl_seconds: int = Field(default=60, ge=0)

    model_config = ConfigDict(
        # Always load .env from the same folder as this settings.py
        env_file=str(Path(__file__).resolve().parent / ".env"),
        extra="ignore",
    )

    def get_origins_list(self) -> List[str]:
        """Parse comma-separated origins into a list."""
        if not self.allowed_origins:
            return ["*"]
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]


_settings_instance = None

def get_settings() -> Settings:
    """Singleton pattern for settings."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
    return _settings_instance
