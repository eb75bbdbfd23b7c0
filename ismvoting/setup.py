"""Logging and environment setup."""
import logging
import os
from os.path import join
import torch

from ismvoting.constants import COMPONENT_LOGGERS


def setup_logging(log_dir=None, mode='voting', level=logging.INFO):
    """
    Attach stream (and, given log_dir, file) handlers to the loggers of all engine components.

    The root logger is left alone so the engine can live inside a larger application.
    Calling it again replaces the handlers. Returns the log file path or None.
    """
    fmt = logging.Formatter(fmt='%(levelname)-7s %(name)-23s - %(message)s')
    handlers = [logging.StreamHandler()]
    log_path = None
    if log_dir is not None:
        os.makedirs(log_dir, exist_ok=True)
        log_path = join(log_dir, '{}.log'.format(mode))
        handlers.append(logging.FileHandler(log_path))
    for handler in handlers:
        handler.setFormatter(fmt)

    for name in COMPONENT_LOGGERS:
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            handler.close()
        logger.handlers = list(handlers)
        logger.setLevel(level)
    if log_path is not None:
        logging.getLogger('Voting').info('Log file is %s', log_path)
    return log_path


def prepare_environment(num_threads=None):
    """Log the torch device and limit the threads used for descriptor distances."""
    logger = logging.getLogger('Voting')
    logger.info('Use cuda: %s', torch.cuda.is_available())
    if num_threads:
        torch.set_num_threads(num_threads)
