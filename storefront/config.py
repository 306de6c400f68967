from __future__ import annotations
import logging
import os
import sys
from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    DATABASE_URL: str = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
    DATABASE_NAME: str = os.getenv("DATABASE_NAME", "huskthreads")

    # Durable client-side slot holding the cart
    STATE_FILE: str = os.getenv("STATE_FILE", str(Path.home() / ".huskthreads_state.json"))
    CART_STORAGE_KEY: str = "huskthreads_cart"

    FREE_SHIPPING_THRESHOLD: float = 999
    SHIPPING_FEE: float = 99
    DEFAULT_COUNTRY: str = "India"

    CLOUDINARY_CLOUD_NAME: str = os.getenv("CLOUDINARY_CLOUD_NAME", "")
    CLOUDINARY_UPLOAD_PRESET: str = os.getenv("CLOUDINARY_UPLOAD_PRESET", "")
    UPLOAD_BASE_URL: str = "https://api.cloudinary.com/v1_1"
    UPLOAD_TIMEOUT: float = 30.0

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    PORT: int = int(os.getenv("PORT", 8000))

settings = Settings()

_configured = False

def setup_logging(level: Optional[str] = None) -> None:
    global _configured
    if _configured:
        return

    log_level = (level or settings.LOG_LEVEL).upper()
    root = logging.getLogger()
    root.setLevel(getattr(logging, log_level, logging.INFO))

    # Avoid duplicate handlers when embedded under uvicorn or pytest
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s"))
        root.addHandler(handler)

    _configured = True
