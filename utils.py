# utils.py
"""
Utility functions for the attractor viewer.

This module provides the configuration loader and the logging setup. They
are used by the entry point and do not belong to the integration core or
the renderer.
"""
import logging
import logging.handlers
import json
import os
from typing import Dict, Any

# --- Data Contracts ---
#
# setup_logging(config: Dict[str, Any]) -> None:
#   - Inputs:
#     - config: A dictionary whose optional "logging" section may hold
#       "level", "format", "log_file", "max_bytes" and "backup_count".
#       A null or empty "log_file" disables file logging.
#   - Outputs: None
#   - Side Effects: Replaces the handlers of the root Python logger with a
#     console handler and, when enabled, a rotating file handler. Creates
#     the log directory if needed.
#
# load_config(path: str) -> Dict[str, Any]:
#   - Outputs: The parsed JSON document with every top-level section
#     present (missing sections become empty dicts).
#   - Side Effects: Logs and re-raises FileNotFoundError and
#     json.JSONDecodeError.

CONFIG_SECTIONS = ('logging', 'simulation_parameters', 'run_control', 'visualization')

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(threadName)s - %(message)s'


def setup_logging(config: Dict[str, Any]) -> None:
    """
    Configures the root logger from the "logging" section of the config.
    """
    log_config = config.get('logging') or {}
    log_level = str(log_config.get('level', 'INFO')).upper()
    log_format = log_config.get('format', DEFAULT_LOG_FORMAT)
    log_file_path = log_config.get('log_file', 'logs/attractor_flow.log')

    logger = logging.getLogger()
    logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicate output on re-configuration.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(log_format)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file_path:
        log_dir = os.path.dirname(log_file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path,
            maxBytes=int(log_config.get('max_bytes', 1024 * 1024)),
            backupCount=int(log_config.get('backup_count', 5)),
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logging.info("Logging system initialized.")
    logging.debug(f"Log level set to {log_level}.")
    logging.debug(f"Log file path: {log_file_path or '(disabled)'}")


def load_config(path: str) -> Dict[str, Any]:
    """Loads the JSON configuration file."""
    logging.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
    except FileNotFoundError:
        logging.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logging.error(f"Error decoding JSON from {path}.")
        raise

    for section in CONFIG_SECTIONS:
        if config.get(section) is None:
            config[section] = {}
    logging.info("Configuration loaded successfully.")
    return config
