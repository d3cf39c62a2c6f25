# app_logger.py
import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("PORTAL_LOG_LEVEL", "INFO").upper()


def setup_logging():
    level = getattr(logging, _DEFAULT_LEVEL, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger("portal")
    logger.setLevel(level)
    if not any(isinstance(h, logging.StreamHandler) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.setLevel(level)
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name=None) -> logging.Logger:
    """Child of the "portal" logger; "portal.finance" and "finance" name the same one."""
    base = logging.getLogger("portal")
    if not name:
        return base
    if name.startswith("portal."):
        name = name[len("portal."):]
    return base.getChild(name)


logger = setup_logging()
