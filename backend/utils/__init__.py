# Utils package
from .logging_utils import setup_logging, LogTimer, log_step

__all__ = ['setup_logging', 'LogTimer', 'log_step']
