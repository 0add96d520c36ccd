import logging
import os
import gzip
import shutil
import time
from logging.handlers import TimedRotatingFileHandler

from fastapi import Request

APP_LOGGER_NAME = "face_attendance"
PERFORMANCE_LOGGER_NAME = "performance_logger"
LOG_MAX_SIZE = 20 * 1024 * 1024  # 20 MB
LOG_BACKUP_COUNT = 5             # Keep last 5 log files
MAX_LOGGED_BODY = 512            # Base64 images are truncated in the request log


def setup_app_logger(level: str = "INFO") -> logging.Logger:
    """Console logging for the application logger and its children."""
    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
    return logger


def setup_logger(log_file: str) -> logging.Logger:
    """
    Configure rotating and timed log handler for request timings.
    Rotation:
      - Weekly (every Monday at midnight)
      - Max file size: 20 MB
      - Automatically compresses old logs
    """
    logger = logging.getLogger(PERFORMANCE_LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    # One request log per process; a new app takes over the logger
    for existing in list(logger.handlers):
        if getattr(existing, "baseFilename", None) == os.path.abspath(log_file):
            return logger
        logger.removeHandler(existing)
        existing.close()

    # Use a TimedRotatingFileHandler (weekly rotation)
    handler = TimedRotatingFileHandler(
        log_file,
        when="W0",             # Rotate weekly (Monday)
        backupCount=LOG_BACKUP_COUNT,
        encoding="utf-8",
        delay=True,
    )

    # Set a max size limit using RotatingFileHandler logic manually
    def should_rollover_by_size():
        return os.path.exists(log_file) and os.path.getsize(log_file) >= LOG_MAX_SIZE

    old_emit = handler.emit

    def emit_with_size_check(record):
        if should_rollover_by_size():
            handler.doRollover()
        old_emit(record)

    handler.emit = emit_with_size_check
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))

    def compress_old_log(source_path):
        compressed_path = f"{source_path}.gz"
        with open(source_path, "rb") as f_in, gzip.open(compressed_path, "wb") as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.remove(source_path)

    old_do_rollover = handler.doRollover

    def do_rollover_and_compress():
        old_do_rollover()
        log_dir = os.path.dirname(handler.baseFilename)
        base_name = os.path.basename(handler.baseFilename)
        for file in os.listdir(log_dir):
            # Rotated files carry a date suffix; the live file stays as is
            if file.startswith(base_name + ".") and not file.endswith(".gz"):
                compress_old_log(os.path.join(log_dir, file))

    handler.doRollover = do_rollover_and_compress

    logger.addHandler(handler)
    return logger


def _truncate(text: str) -> str:
    if len(text) <= MAX_LOGGED_BODY:
        return text
    return f"{text[:MAX_LOGGED_BODY]}...<{len(text) - MAX_LOGGED_BODY} more chars>"


def create_logging_middleware(app, logger):
    """
    Adds a middleware to log request & response time, IP, and bodies.
    """
    @app.middleware("http")
    async def log_request_response_time(request: Request, call_next):
        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "-"
        method = request.method
        path = request.url.path

        body_bytes = await request.body()
        request_body = _truncate(body_bytes.decode("utf-8", errors="replace")) if body_bytes else ""

        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        log_message = (
            f"IP={client_ip} | {method} {path} | Status={response.status_code} | "
            f"Time={process_time:.4f}s | RequestBody={request_body}"
        )

        logger.info(log_message)
        response.headers["X-Process-Time"] = str(round(process_time, 4))
        return response

    return app
