"""Logging configuration for ZoneSim."""
import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from zonesim.config import get_settings

# Default logs directory (created on demand)
LOGS_DIR = Path(__file__).parent.parent / "logs"

# Log file paths
SIM_LOG_FILE_NAME = "simulation.log"
ROADS_LOG_FILE_NAME = "roads.log"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logging(level: Optional[str] = None, log_dir: Optional[Path] = None):
    """Configure logging for the simulation.

    Console output always goes to stdout. File logging is enabled by the
    ``log_to_file`` setting or by passing an explicit ``log_dir``.
    """
    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    # Root logger configuration
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Console handler (stdout)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    if log_dir is not None or settings.log_to_file:
        target_dir = Path(log_dir) if log_dir is not None else LOGS_DIR
        target_dir.mkdir(parents=True, exist_ok=True)

        # Simulation log file handler (rotating, 10MB max, keep 5 backups)
        sim_file_handler = RotatingFileHandler(
            target_dir / SIM_LOG_FILE_NAME,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        sim_file_handler.setLevel(log_level)
        sim_file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(sim_file_handler)

        # Road graph rebuilds are chatty, keep them in their own file too
        roads_file_handler = RotatingFileHandler(
            target_dir / ROADS_LOG_FILE_NAME,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        roads_file_handler.setLevel(log_level)
        roads_file_handler.setFormatter(logging.Formatter(
            '%(asctime)s - [ROADS] - %(levelname)s - %(message)s',
            datefmt=DATE_FORMAT
        ))
        logging.getLogger('zonesim.engine.road_network').addHandler(roads_file_handler)

    # Reduce noise from libraries
    logging.getLogger('numpy').setLevel(logging.WARNING)
    logging.getLogger('shapely').setLevel(logging.WARNING)

    return root_logger

