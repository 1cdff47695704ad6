"""Project-wide configuration."""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(os.environ.get("PHOTO_CURATOR_PROJECT_ROOT", Path.cwd()))

load_dotenv(PROJECT_ROOT / ".env")

DB_PATH = Path(os.environ.get("PHOTO_CURATOR_DB_PATH", PROJECT_ROOT / "photo_curator.duckdb"))
MODELS_DIR = Path(os.environ.get("PHOTO_CURATOR_MODELS_DIR", PROJECT_ROOT / "models"))

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

# Face detection – InsightFace
FACE_MODEL_NAME = os.environ.get("FACE_MODEL_NAME", "buffalo_l")
FACE_DEVICE = os.environ.get("FACE_DEVICE", "cpu")
FACE_DESCRIPTOR_DIM = 512

# Worker process timeouts (seconds)
WORKER_STARTUP_TIMEOUT = float(os.environ.get("WORKER_STARTUP_TIMEOUT", "10"))
MODEL_LOAD_TIMEOUT = float(os.environ.get("MODEL_LOAD_TIMEOUT", "30"))
DETECT_TIMEOUT = float(os.environ.get("DETECT_TIMEOUT", "60"))
WORKER_SHUTDOWN_TIMEOUT = float(os.environ.get("WORKER_SHUTDOWN_TIMEOUT", "5"))
WORKER_START_ATTEMPTS = int(os.environ.get("WORKER_START_ATTEMPTS", "3"))

# Clustering – Euclidean distance between descriptors
CLUSTER_DISTANCE_THRESHOLD = float(os.environ.get("CLUSTER_DISTANCE_THRESHOLD", "0.6"))

# Detector input resolution per quality tier
QUALITY_INPUT_SIZES: dict[str, int] = {
    "fast": 128,
    "balanced": 256,
    "accurate": 512,
}

DEFAULT_QUALITY = "balanced"
DEFAULT_SENSITIVITY = 0.5
DEFAULT_MIN_FACE_SIZE = 40
SENSITIVITY_RANGE = (0.3, 0.9)
