import logging
import logging.config
import yaml
from pathlib import Path
from ..config.settings import settings

# The JSON formatter referenced by logging_config.yaml comes from python-json-logger.

DEFAULT_LOGGING_CONFIG_PATH = Path(settings.LOGGING_CONFIG_PATH)


def setup_logging(config_path: Path = DEFAULT_LOGGING_CONFIG_PATH) -> None:
    """
    Set up logging configuration from a YAML file.

    Args:
        config_path (Path): Path to the logging configuration YAML file.
    """
    if config_path.exists():
        try:
            with open(config_path, 'rt') as f:
                log_config = yaml.safe_load(f.read())
            if settings.DEBUG:
                log_config.setdefault("loggers", {}).setdefault("mutual_aid", {})["level"] = "DEBUG"
            logging.config.dictConfig(log_config)
            logging.getLogger(__name__).info(f"Logging configured successfully from {config_path}")
        except Exception as e:
            logging.basicConfig(level=logging.INFO)  # Basic config as fallback
            logging.error(f"Error loading logging configuration from {config_path}: {e}. Using basicConfig.")
    else:
        logging.basicConfig(level=logging.INFO)
        logging.warning(f"Logging configuration file not found at {config_path}. Using basicConfig.")
