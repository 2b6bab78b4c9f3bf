"""
Logging setup

The package logs through one named logger. configure_logging installs the
default stderr handler or a user supplied dict, JSON, YAML or fileConfig
configuration.
"""
import json
import logging.config
from typing import Optional, Union, Dict

import yaml

from .constants import KUSTOMIZE_TO_HELM_LOGLEVEL

LOGGER_NAME = "kustomize_to_helm"
LOGGER_FORMAT = (
    "%(asctime)s.%(msecs)03d %(process)s %(name)s "
    "%(levelname)s [%(filename)s:%(funcName)s():%(lineno)s] %(message)s"
)
LOGGER_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "kustomize_to_helm": {
            "()": "logging.Formatter",
            "fmt": LOGGER_FORMAT,
            "datefmt": LOGGER_DATE_FORMAT,
        },
    },
    "handlers": {
        "kustomize_to_helm": {
            "formatter": "kustomize_to_helm",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "kustomize_to_helm": {
            "handlers": ["kustomize_to_helm"],
            "level": KUSTOMIZE_TO_HELM_LOGLEVEL,
            "propagate": False,
        },
    },
}

logger = logging.getLogger(LOGGER_NAME)


def configure_logging(log_config: Optional[Union[Dict, str]] = None):
    """
    Configures the converter logger.

    :param log_config: (Optional) File path or dict containing log config. If not provided the default
                       configuration is used.
                       - If a dictionary is provided, it is used directly for configuring the logger.
                       - If a string is provided:
                           - ending with '.json', it is read as a JSON file containing log configuration.
                           - ending with '.yaml' or '.yml', it is read as a YAML file containing log
                             configuration.
                           - Otherwise, it is treated as a configuration file in the format specified in
                             the Python logging module documentation.
    """
    if log_config is None:
        logging.config.dictConfig(LOG_CONFIG)
    elif isinstance(log_config, dict):
        logging.config.dictConfig(log_config)
    elif log_config.endswith(".json"):
        with open(log_config) as file:
            loaded_config = json.load(file)
            logging.config.dictConfig(loaded_config)
    elif log_config.endswith((".yaml", ".yml")):
        with open(log_config) as file:
            loaded_config = yaml.safe_load(file)
            logging.config.dictConfig(loaded_config)
    else:
        # See the note about fileConfig() here:
        # https://docs.python.org/3/library/logging.config.html#configuration-file-format
        logging.config.fileConfig(log_config, disable_existing_loggers=False)
