import os
import sys
import logging
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Environment check
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if IS_PRODUCTION else "DEBUG").upper()
LOG_FILE = os.getenv("LOG_FILE")

_handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
if LOG_FILE:
    _handlers.append(logging.FileHandler(LOG_FILE, encoding="utf-8"))

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=_handlers
)

# Reduce noise from database and HTTP libraries
logging.getLogger('sqlalchemy.engine').setLevel(logging.WARNING)
logging.getLogger('sqlalchemy.pool').setLevel(logging.WARNING)
logging.getLogger('httpx').setLevel(logging.WARNING)
logging.getLogger('httpcore').setLevel(logging.WARNING)
logging.getLogger('multipart').setLevel(logging.WARNING)
logging.getLogger('starlette').setLevel(logging.WARNING)
logging.getLogger('uvicorn').setLevel(logging.INFO)
logging.getLogger('fastapi').setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# Database Settings
DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL and IS_PRODUCTION:
    raise ValueError("DATABASE_URL must be set in production environment")
elif not DATABASE_URL:
    logger.warning("DATABASE_URL not found in environment variables. Using a local SQLite file for development only.")
    DATABASE_URL = f"sqlite:///{BASE_DIR / 'prepdesk.db'}"

SQL_ECHO = os.getenv("SQL_ECHO", "false").lower() == "true"

# Period Settings
YEAR_WINDOW = int(os.getenv("YEAR_WINDOW", "20"))  # years listed back from the current year
MIN_YEAR = int(os.getenv("MIN_YEAR", "1900"))
MAX_YEAR = int(os.getenv("MAX_YEAR", "2100"))

# API Settings
API_TITLE = "Prepdesk Content Pipeline"
API_VERSION = "1.0.0"
API_DESCRIPTION = "Admin pipeline for period-organized exam content, questions and topic assignments"

# CORS Configuration
CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:3001",
    "http://127.0.0.1:8000"
]


def clean_cors_origins(origins):
    """Clean and validate CORS origins, dropping malformed entries and duplicates"""
    cleaned_origins = []
    for origin in origins:
        cleaned = origin.strip().replace(';', '').strip()
        if cleaned and (cleaned.startswith('http://') or cleaned.startswith('https://')):
            cleaned_origins.append(cleaned)
        elif cleaned:
            logger.warning(f"Invalid CORS origin format: '{origin}'")

    seen = set()
    unique_origins = []
    for origin in cleaned_origins:
        if origin not in seen:
            seen.add(origin)
            unique_origins.append(origin)
    return unique_origins


# Check for environment variable override for CORS origins
_cors_override = os.getenv("CORS_ORIGINS")
if _cors_override:
    CORS_ORIGINS = _cors_override.split(",")

ALLOWED_ORIGINS = clean_cors_origins(CORS_ORIGINS)
