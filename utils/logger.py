"""Logging setup"""
import logging
import os


def setup_logger(name):
    """Setup logger with consistent format, level taken from LOG_LEVEL"""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO").upper(),
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )
    return logging.getLogger(name)
