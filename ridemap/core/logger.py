# ridemap/core/logger.py
from loguru import logger
import sys

# Default sink until setup_logging() reconfigures it
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "{message}",
    level="INFO",
)

__all__ = ["logger"]
