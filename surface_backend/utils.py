import logging

from . import settings


# -------- logging setup --------

def setup_logger(name, level_str=settings.LOG_LEVEL):
    """
    Sets up a module logger with a console stream handler.
    Safe to call repeatedly: handlers are attached only once per logger.
    """
    log_level = getattr(logging, str(level_str).upper(), logging.INFO)
    formatter = logging.Formatter('%(asctime)s - %(levelname)5s | %(name)s | %(message)s')

    logger = logging.getLogger(name)
    logger.setLevel(log_level)

    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # the JSON-lines bridge owns stdout, so the handler above writes to stderr
    logger.propagate = False
    return logger
