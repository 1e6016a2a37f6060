import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

DATABASE_PATH = os.getenv("TSKR_DATABASE_PATH", "tskr.db")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
MODEL = os.getenv("TSKR_MODEL", "claude-sonnet-4-5")
LOG_LEVEL = os.getenv("TSKR_LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("TSKR_CORS_ORIGINS", "http://localhost:5173").split(",")
    if origin.strip()
]

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Set up root logging once for the app process."""
    logging.basicConfig(level=(level or LOG_LEVEL).upper(), format=LOG_FORMAT)
