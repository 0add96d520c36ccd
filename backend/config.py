"""
Runtime configuration read from environment variables.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
FACES_DB_PATH = Path(os.getenv("FACES_DB_PATH", str(DATA_DIR / "faces.json")))
ATTENDANCE_LOG_PATH = Path(os.getenv("ATTENDANCE_LOG_PATH", str(DATA_DIR / "attendance.json")))

# Euclidean distance threshold, tuned for L2-normalised descriptors
MATCH_THRESHOLD = float(os.getenv("MATCH_THRESHOLD", "0.6"))

MODEL_NAME = os.getenv("MODEL_NAME", "buffalo_l")
DET_SIZE = int(os.getenv("DET_SIZE", "640"))
USE_GPU = os.getenv("USE_GPU", "1") == "1"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
REQUEST_LOG_FILE = os.getenv("REQUEST_LOG_FILE", "request_performance.log")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))


@dataclass
class Settings:
    faces_db_path: Path = FACES_DB_PATH
    attendance_log_path: Path = ATTENDANCE_LOG_PATH
    match_threshold: float = MATCH_THRESHOLD
    model_name: str = MODEL_NAME
    det_size: int = DET_SIZE
    use_gpu: bool = USE_GPU
    log_level: str = LOG_LEVEL
    # None or empty string disables the request performance log
    request_log_file: Optional[str] = REQUEST_LOG_FILE or None
    cors_origins: List[str] = field(default_factory=lambda: list(CORS_ORIGINS))
