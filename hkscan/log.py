import logging
import os


# Configure logging
def setup_logger():
    """Setup logger with a stream handler; file output is added on request"""
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.INFO)
    # turn off propagation to parent logger
    logger.propagate = False

    if logger.handlers:
        return logger

    # add console handler
    ch = logging.StreamHandler()
    ch.setFormatter(_formatter())
    logger.addHandler(ch)

    return logger


def _formatter():
    return logging.Formatter('%(asctime)s - %(levelname)s - %(message)s',
                             datefmt='%Y-%m-%d %H:%M:%S')


def add_file_handler(path: str = 'hkscan.log'):
    """Write log records to a file (used by the command line tool); replaces an earlier log file"""
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            if handler.baseFilename == os.path.abspath(path):
                return handler
            logger.removeHandler(handler)
            handler.close()
    fh = logging.FileHandler(path)
    fh.setFormatter(_formatter())
    logger.addHandler(fh)
    return fh


def set_verbosity(level: int):
    """Map a CLI verbosity count to a logging level (0: warnings, 1: info, 2+: debug)"""
    if level <= 0:
        logger.setLevel(logging.WARNING)
    elif level == 1:
        logger.setLevel(logging.INFO)
    else:
        logger.setLevel(logging.DEBUG)


# create logger instance
logger = setup_logger()
