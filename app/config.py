# app/config.py
import os
from pathlib import Path

# ----------------------------
# Paths
# ----------------------------
BASE_DIR = Path(__file__).resolve().parent  # .../app
PROJECT_ROOT = BASE_DIR.parent  # repo root

UPLOAD_DIR = Path(os.environ.get("UPLOAD_DIR", str(PROJECT_ROOT / "uploads")))
OUTPUT_DIR = Path(os.environ.get("OUTPUT_DIR", str(PROJECT_ROOT / "outputs")))

# ----------------------------
# Limits
# ----------------------------
MAX_UPLOAD_MB = int(os.environ.get("MAX_UPLOAD_MB", "100"))
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

DEFAULT_DPI = int(os.environ.get("DEFAULT_DPI", "150"))

# ----------------------------
# HTTP
# ----------------------------
API_PREFIX = os.environ.get("API_PREFIX", "/api")
CORS_ALLOWED_ORIGINS = [
    o.strip()
    for o in os.environ.get("CORS_ALLOWED_ORIGINS", "http://localhost:3000,http://localhost:5173").split(",")
    if o.strip()
]

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# ----------------------------
# Engine
# ----------------------------
GHOSTSCRIPT_BIN = os.environ.get("GHOSTSCRIPT_BIN", "gs")
PDFA_ICC_PROFILE = Path(os.environ.get("PDFA_ICC_PROFILE", "/usr/share/color/icc/sRGB.icc"))
