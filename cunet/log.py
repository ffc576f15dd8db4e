"""Logging utilities."""

import logging


_LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def configure_logging(level=logging.INFO):
    logging.basicConfig(level=level, format=_LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def get_logger(name):
    return logging.getLogger(name)
