# /askscript/config.py
"""
Centralized configuration for the AskScript service.
Includes storage paths, matching parameters, canned answers and server settings.
"""
import os
from pathlib import Path
from dotenv import load_dotenv
from rich.console import Console
from .observability import configure_logging

# ==============================================================================
# CONSOLE & ENVIRONMENT
# ==============================================================================
console = Console()
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    return str(raw).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        value = int(raw)
    except ValueError:
        return int(default)
    return max(minimum, value)


def _env_float(name: str, default: float, minimum: float = 0.0, maximum: float | None = None) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        value = float(raw)
    except ValueError:
        return float(default)
    value = max(float(minimum), value)
    if maximum is not None:
        value = min(float(maximum), value)
    return value


# ==============================================================================
# GLOBAL CONFIGURATION
# ==============================================================================
# --- Path Configuration ---
# Data directory is at ../../data relative to this file (src/askscript/config.py)
_BASE_DIR = Path(__file__).resolve().parent.parent.parent

DATA_DIR = Path(os.getenv("ASKSCRIPT_DATA_DIR", str(_BASE_DIR / "data")))
UPLOAD_DIR = Path(os.getenv("UPLOAD_DIR", str(DATA_DIR / "uploads")))
MAPPINGS_PATH = Path(os.getenv("MAPPINGS_PATH", str(DATA_DIR / "script_mappings.json")))
LINK_LOG_PATH = Path(os.getenv("LINK_LOG_PATH", str(DATA_DIR / "script_links.txt")))
PUBLIC_DIR = Path(os.getenv("PUBLIC_DIR", str(_BASE_DIR / "public")))
METRICS_DIR = Path(os.getenv("METRICS_DIR", str(DATA_DIR / "logs")))

# --- Server ---
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8080, minimum=1)
# Prefix for the URLs written to the link log.
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://localhost:{PORT}").rstrip("/")
IO_MAX_WORKERS = _env_int("IO_MAX_WORKERS", 8, minimum=1)

# --- Question Matching ---
# Distance on a 0-1 scale; 0.0 accepts only exact matches, 1.0 accepts anything.
MATCH_THRESHOLD = _env_float("MATCH_THRESHOLD", 0.4, minimum=0.0, maximum=1.0)
NO_DATA_ANSWER = os.getenv("NO_DATA_ANSWER", "No data found for this script.")
FALLBACK_ANSWER = os.getenv("FALLBACK_ANSWER", "Sorry, please ask related questions.")
RESTORE_INDEXES_ON_STARTUP = _env_bool("RESTORE_INDEXES_ON_STARTUP", True)

# --- Create necessary directories ---
DATA_DIR.mkdir(parents=True, exist_ok=True)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
METRICS_DIR.mkdir(parents=True, exist_ok=True)
LOG_PATH = Path(os.getenv("LOG_PATH", str(METRICS_DIR / "app.log")))
LOG_PATH.parent.mkdir(parents=True, exist_ok=True)
configure_logging(LOG_PATH)
