# stampcard/log_config.py

"""
Logging configuration for the pass engine.

Uses a dictionary-based setup with a console handler and rotating file
handlers so generation and signing failures are kept on disk without
unlimited growth. Tests get a quiet console-only setup instead.
"""

import os
import logging
import logging.config
import logging.handlers

LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,

    'formatters': {
        'detailed': {
            'format': '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s'
        },
        'simple': {
            'format': '%(asctime)s [%(levelname)s] %(message)s'
        },
        'focused': {
            'format': '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        }
    },

    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
            'level': 'INFO',
        },
        'signing_file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': 'logs/signing.log',
            'formatter': 'focused',
            'level': 'INFO',
            'maxBytes': 10485760,   # 10MB
            'backupCount': 3,
            'encoding': 'utf-8'
        },
        'errors_file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'filename': 'logs/errors.log',
            'formatter': 'detailed',
            'level': 'WARNING',
            'maxBytes': 26214400,   # 25MB
            'backupCount': 2,
            'encoding': 'utf-8'
        },
    },

    'loggers': {
        'stampcard': {
            'handlers': ['console', 'errors_file'],
            'level': 'INFO',
            'propagate': False,
        },
        'stampcard.signing': {
            'handlers': ['signing_file'],
            'level': 'INFO',
            'propagate': True,
        },
        'PIL': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
        'urllib3': {
            'handlers': ['console'],
            'level': 'WARNING',
            'propagate': False,
        },
    },

    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
}


def init_logging(testing: bool = False, debug: bool = False):
    """
    Initialize logging for the engine.

    Args:
        testing: use simple console-only logging (no log files)
        debug: lower the engine logger to DEBUG
    """
    if testing:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s - %(message)s'
        ))

        root_logger = logging.getLogger()
        root_logger.handlers = [console_handler]
        root_logger.setLevel(logging.WARNING)

        logging.getLogger('stampcard').setLevel(logging.DEBUG if debug else logging.INFO)
        return

    os.makedirs('logs', exist_ok=True)
    logging.config.dictConfig(LOGGING_CONFIG)
    if debug:
        logging.getLogger('stampcard').setLevel(logging.DEBUG)
