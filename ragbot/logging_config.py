"""Logging setup: brief console output plus a detailed per-session rotating log file"""
import glob
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

CONSOLE_FORMAT = '%(levelname)s: %(message)s'
FILE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s'

# Third-party loggers that flood the console at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "google_genai", "asyncpg")


def _prune_session_logs(log_path: Path, keep: int) -> None:
    """Delete old session logs so that at most `keep` remain after this session starts"""
    pattern = str(log_path.parent / f"{log_path.stem}_*.log")
    existing = sorted(glob.glob(pattern), reverse=True)  # Newest first (timestamped names)
    for old_log in existing[max(keep - 1, 0):]:
        try:
            Path(old_log).unlink()
        except OSError:
            pass  # Another process may hold or have removed it


def setup_logging(
    log_file: str = "logs/ragbot.log",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    keep_sessions: int = 5,
) -> Path:
    """
    Configure root logging with two destinations.

    - Console: brief `LEVEL: message` lines at `console_level`
    - File: timestamped per-session file at `file_level`, rotated at 10MB

    Each process start writes to `<stem>_<YYYYmmdd_HHMMSS>.log` next to
    `log_file`; only the newest `keep_sessions` files are kept.

    Args:
        log_file: Base log file path (directory is created if missing)
        console_level: Console logging level
        file_level: File logging level
        keep_sessions: Number of session log files to retain

    Returns:
        Path of this session's log file
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _prune_session_logs(log_path, keep_sessions)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    session_log = log_path.parent / f"{log_path.stem}_{timestamp}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    file_handler = RotatingFileHandler(
        session_log,
        mode='a',
        maxBytes=10*1024*1024,  # 10MB
        backupCount=10,
        encoding='utf-8'
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.info(f"Logging configured: console={logging.getLevelName(console_level)}, file={session_log} ({logging.getLevelName(file_level)})")
    return session_log
