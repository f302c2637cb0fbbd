"""Logging utility for the SAFE generator"""
import logging
import os
import sys

# Configure logging once for the process; LOG_LEVEL controls verbosity
log_level = os.environ.get('LOG_LEVEL', 'INFO').upper()
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger('safe_generator')


def get_logger(component: str = None) -> logging.Logger:
    """Child logger for a component, e.g. get_logger('templates') -> safe_generator.templates"""
    return logger.getChild(component) if component else logger


def log_error(message: str, error: Exception = None, traceback_str: str = None, component: str = None):
    """Log error with optional exception and traceback"""
    target = get_logger(component)
    if error:
        target.error(f"{message}: {str(error)}", exc_info=error)
    elif traceback_str:
        target.error(f"{message}\n{traceback_str}")
    else:
        target.error(message)


def log_warning(message: str, component: str = None):
    get_logger(component).warning(message)


def log_info(message: str, component: str = None):
    get_logger(component).info(message)


def log_debug(message: str, component: str = None):
    """Log debug (only shown with LOG_LEVEL=DEBUG)"""
    get_logger(component).debug(message)
