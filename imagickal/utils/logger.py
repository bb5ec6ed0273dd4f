"""Package logging configuration"""

import logging
import os
import sys
from typing import Optional

LEVELS = {
    'debug': logging.DEBUG,
    'info': logging.INFO,
    'warning': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
}

class ImagickalLogger:
    _instance: Optional['ImagickalLogger'] = None
    _logger: Optional[logging.Logger] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._setup_logger()
        return cls._instance

    def _setup_logger(self):
        """Setup the stderr logger, level taken from IMAGICKAL_LOG_LEVEL"""
        self._logger = logging.getLogger('imagickal')
        level_name = (os.getenv('IMAGICKAL_LOG_LEVEL') or '').strip().lower()
        self._logger.setLevel(LEVELS.get(level_name, logging.WARNING))

        # Clear any existing handlers
        self._logger.handlers.clear()

        console_handler = logging.StreamHandler(stream=sys.stderr)
        console_handler.setFormatter(logging.Formatter('[%(name)s] %(levelname)s: %(message)s'))
        self._logger.addHandler(console_handler)

    def set_level(self, level: int):
        self._logger.setLevel(level)

    def info(self, message: str):
        self._logger.info(message)

    def error(self, message: str):
        self._logger.error(message)

    def warning(self, message: str):
        self._logger.warning(message)

    def debug(self, message: str):
        self._logger.debug(message)

# Singleton instance
logger = ImagickalLogger()
