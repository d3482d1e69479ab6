# All fields can be overridden through environment variables (.env)
#
# Development example:
# APP_NAME=מערכת סידור עבודה - מד"א
# DEBUG=true
# DATABASE_URL=sqlite:///./sidur.db
# FRONTEND_ORIGIN=http://localhost:3000
# BACKEND_CORS_ORIGINS=http://localhost:3000
# TIMEZONE=Asia/Jerusalem
#
# Production example:
# DEBUG=false
# DATABASE_URL=postgresql+psycopg://sidur_user:sidur_password@db_host/sidur_db
# FRONTEND_ORIGIN=https://sidur.example.org
# BACKEND_CORS_ORIGINS=https://sidur.example.org
# PERSISTENCE_TIMEOUT_SECONDS=15
# PDF_FONT_PATH=/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf

import json
from typing import List, Union, Optional
from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    APP_NAME: str = 'מערכת סידור עבודה - מד"א'

    # Application
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./sidur.db"

    FRONTEND_ORIGIN: str = "http://localhost:3000"

    # CORS
    # Union keeps a plain CSV value from being JSON-decoded by the env source
    BACKEND_CORS_ORIGINS: Union[List[str], str] = []

    # Local time used for timestamps and export titles
    TIMEZONE: str = "Asia/Jerusalem"

    # Caller-level timeout around one schedule tree load
    PERSISTENCE_TIMEOUT_SECONDS: float = 10.0

    # Roster conventions
    DEFAULT_STATION: str = "כללי"
    SHARED_AMBULANCE_UNIT_TYPE: str = "אטן"

    # Websocket liveness (seconds)
    HEARTBEAT_TIMEOUT_SECONDS: int = 30
    HEARTBEAT_CHECK_INTERVAL_SECONDS: int = 10

    # TTF with Hebrew glyphs for PDF export; the bundled DejaVu Sans when unset
    PDF_FONT_PATH: Optional[str] = None

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    def assemble_cors_origins(cls, v: Union[str, List[str]], info) -> List[str]:
        if not v or v == []:
            # fall back to FRONTEND_ORIGIN
            frontend = info.data.get("FRONTEND_ORIGIN", "http://localhost:3000")
            return [frontend]
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, str):
            return json.loads(v)
        elif isinstance(v, list):
            return v
        raise ValueError(v)

    @field_validator("DEBUG", mode="before")
    def parse_debug(cls, v: Union[str, bool]) -> bool:
        if isinstance(v, str):
            return v.lower() in ("true", "1", "t", "yes")
        return bool(v)

    @field_validator("PERSISTENCE_TIMEOUT_SECONDS")
    def check_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("PERSISTENCE_TIMEOUT_SECONDS must be positive")
        return v

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
