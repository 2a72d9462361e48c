#!/usr/bin/env python3
"""
Configuration management for absolutify.

This module centralizes logging setup and configuration loading. It handles
environment variables, the optional .env file and the optional targets.yaml
file that extends which elements get their URI attribute rewritten.
"""

from os import environ, path, access, R_OK
from typing import Dict, Any
from logging import getLogger, basicConfig, NullHandler, StreamHandler, INFO, DEBUG, WARNING, ERROR
import sys
import yaml
from dotenv import load_dotenv

# Elements whose URI attribute is rewritten when no targets file says otherwise
DEFAULT_TARGET_ATTRIBUTES: Dict[str, str] = {"a": "href", "img": "src"}

LEVEL_MAP = {
    "DEBUG": DEBUG,
    "INFO": INFO,
    "WARNING": WARNING,
    "ERROR": ERROR
}


def _setup_global_logger(stream=None, level_name=None):
    """Setup a single global logger for the entire application.

    Environment Variables:
        LOG_LEVEL: Set log level (DEBUG, INFO, WARNING, ERROR) - defaults to INFO
        LOG_TIMESTAMPS: Enable/disable timestamps in logs (true/false) - defaults to true

    The logger outputs to stdout with line buffering for real-time logging,
    unless another stream is given (the CLI logs to stderr).
    All modules should use get_logger() to create module-specific loggers that inherit this configuration.
    """
    level = LEVEL_MAP.get((level_name or environ.get("LOG_LEVEL", "INFO")).upper(), INFO)

    show_timestamps = environ.get("LOG_TIMESTAMPS", "true").lower() != "false"
    if show_timestamps:
        log_format = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    else:
        log_format = '%(name)s - %(levelname)s - %(message)s'

    basicConfig(
        level=level,
        format=log_format,
        handlers=[StreamHandler(stream or sys.stdout)],
        force=True  # Force reconfiguration if already configured
    )

    try:
        sys.stdout.reconfigure(line_buffering=True)
        sys.stderr.reconfigure(line_buffering=True)
    except AttributeError:
        # Replaced streams (e.g. captured by a test runner) may not support it
        pass

    return getLogger("Absolutify")


def get_logger(name: str):
    """Get a module-specific logger with the unified configuration.

    Args:
        name: The logger name (e.g., "absolutify", "cli")

    Returns:
        A logger named "Absolutify.{name}"
    """
    return getLogger(f"Absolutify.{name}")


def configure_logging(level_name: str | None = None, stream=None):
    """Reconfigure the global logger, e.g. to log to stderr at DEBUG from the CLI."""
    return _setup_global_logger(stream, level_name)


# Library loggers stay silent until the host (or the CLI) configures logging
getLogger("Absolutify").addHandler(NullHandler())
logger = get_logger("config")


def load_environment() -> bool:
    """Load variables from a .env file next to the modules, if present.

    Only the CLI calls this; importing the library never touches os.environ.
    Returns True when a file was loaded.
    """
    dotenv_path = path.join(path.dirname(path.abspath(__file__)), '.env')
    if not path.exists(dotenv_path):
        return False
    load_dotenv(dotenv_path)
    logger.info(f"Loaded environment variables from {dotenv_path}")
    return True


class Config:
    """Configuration manager for absolutify.

    Loading order:
    1. Environment variables
    2. .env file (CLI only, via load_environment(); overrides nothing already set)
    3. targets.yaml (or the file named by TARGETS_FILE)

    Example targets.yaml:
    ```yaml
    targets:
      iframe: src
      video: poster
    ```
    """

    def __init__(self):
        """Initialize configuration with environment variables and validation."""
        self._validate_and_set_config()
        self._load_targets()

    def _validate_and_set_config(self):
        """Validate and set all configuration values."""
        base_dir = path.dirname(path.abspath(__file__))
        self.BASE_URL = (environ.get("BASE_URL") or "").strip() or None
        self.TARGETS_CONFIG_PATH = environ.get("TARGETS_FILE", path.join(base_dir, "targets.yaml"))
        self.TARGETS_FILE_SIZE_LIMIT = 1024 * 1024

    def _safe_read_yaml(self, file_path: str, max_size: int, kind: str) -> Any | None:
        """Safely read a YAML file with consistent validation.

        Args:
            file_path: Path to the YAML file
            max_size: Maximum allowed file size in bytes
            kind: Short label for logging context (e.g. 'targets')

        Returns:
            Parsed YAML (mapping/list/primitive) or None on failure.
        """
        try:
            if not path.isfile(file_path):
                logger.debug(f"{kind.capitalize()} file not found at {file_path}")
                return None
            if not access(file_path, R_OK):
                logger.error(f"No read permission for {kind} file at {file_path}")
                return None
            size = path.getsize(file_path)
            if size > max_size:
                logger.error(f"{kind.capitalize()} file too large: {size} bytes (limit: {max_size} bytes)")
                return None
            with open(file_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
            if not data:
                logger.warning(f"Empty or invalid YAML in {kind} file {file_path}")
                return None
            return data
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML in {kind} file {file_path}: {e}")
        except OSError as e:
            logger.error(f"Error loading {kind} file {file_path}: {e}")
        return None

    def _load_targets(self) -> None:
        """Populate self.TARGET_ATTRIBUTES from the defaults plus targets.yaml.

        Element names are lowercased; attribute names are kept as written
        since they are matched case-insensitively. Any failure leaves the
        defaults in place.
        """
        targets: Dict[str, str] = dict(DEFAULT_TARGET_ATTRIBUTES)
        targets_path = self.TARGETS_CONFIG_PATH
        config_data = self._safe_read_yaml(targets_path, self.TARGETS_FILE_SIZE_LIMIT, 'targets')

        section = config_data.get('targets') if isinstance(config_data, dict) else None
        if config_data and not isinstance(section, dict):
            logger.warning(f"Targets file {targets_path} must contain a 'targets' mapping; using defaults")
        elif isinstance(section, dict):
            for element, attribute in section.items():
                if isinstance(element, str) and isinstance(attribute, str) and element.strip() and attribute.strip():
                    targets[element.strip().lower()] = attribute.strip()
                    logger.debug(f"Loaded target {element} -> {attribute}")
                else:
                    logger.warning(f"Skipping invalid target entry in {targets_path}: {element}={attribute}")
            logger.info(f"Loaded {len(targets)} target elements from {targets_path}")

        self.TARGET_ATTRIBUTES = targets

    def reload_targets(self):
        """Reload target elements from the configuration file."""
        logger.info("Reloading targets configuration")
        self._validate_and_set_config()
        self._load_targets()

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of current configuration for logging/debugging."""
        return {
            "base_url": self.BASE_URL,
            "targets_file": self.TARGETS_CONFIG_PATH,
            "targets": dict(self.TARGET_ATTRIBUTES),
            "log_level": environ.get("LOG_LEVEL", "INFO").upper(),
        }


# Global configuration instance
config = Config()
