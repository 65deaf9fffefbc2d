# sitelens/core/logging.py
# -----------------------------------------------------------------------------
# Loguru logging setup
# - rotating file sink with backtraces
# - stderr sink so uvicorn output and pipeline steps share one stream
# -----------------------------------------------------------------------------
import sys
from pathlib import Path

from loguru import logger

from sitelens.core.config import settings


def setup_logging() -> None:
    log_dir = Path(settings.LOG_DIR)
    log_dir.mkdir(exist_ok=True, parents=True)

    logger.remove()  # drop the default handler
    logger.add(sys.stderr, level=settings.LOG_LEVEL)
    logger.add(
        log_dir / "app.log",
        rotation="10 MB",
        retention=10,  # keep the ten newest rotated files
        enqueue=True,  # safe across worker processes
        backtrace=True,
        diagnose=False,
        level=settings.LOG_LEVEL,
    )
