import logging
import logging.config
from pathlib import Path
from typing import Optional, Union

import yaml

from ..config.settings import get_settings


def setup_logging(config_path: Optional[Union[str, Path]] = None, level: Optional[str] = None) -> None:
    """
    Set up logging configuration from a YAML file.

    Args:
        config_path (Path): Path to the logging configuration YAML file.
            Defaults to ``LOGGING_CONFIG_PATH`` from settings.
        level (str): Optional root level override (e.g. from ``--loglevel``).
    """
    settings = get_settings()
    path = Path(config_path or settings.LOGGING_CONFIG_PATH)
    root_level = (level or settings.LOG_LEVEL).upper()

    if path.exists():
        try:
            with open(path, "rt") as f:
                log_config = yaml.safe_load(f.read())
            log_config.setdefault("root", {})["level"] = root_level
            logging.config.dictConfig(log_config)
            logging.info(f"Logging configured successfully from {path}")
        except Exception as e:
            logging.basicConfig(level=root_level)  # Basic config as fallback
            logging.error(f"Error loading logging configuration from {path}: {e}. Using basicConfig.")
    else:
        logging.basicConfig(level=root_level)
        logging.warning(f"Logging configuration file not found at {path}. Using basicConfig.")
