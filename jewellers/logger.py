"""Provides a class for creating and configuring loggers."""

import logging
import os


class Logger:
    """
    Class for creating named loggers with a shared console configuration.
    """

    @staticmethod
    def get_logger(name: str, level=None) -> logging.Logger:
        """Creates and returns a logger with the given name and logging level."""
        if level is None:
            level = os.getenv('LOG_LEVEL', 'INFO').upper()

        logger = logging.getLogger(name)
        logger.setLevel(level)

        if not logger.handlers:
            console_handler = logging.StreamHandler()
            console_handler.setLevel(level)

            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        return logger
