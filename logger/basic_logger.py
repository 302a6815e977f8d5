import logging

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def setup_logger(level: str = "INFO") -> logging.Logger:
    logger = logging.getLogger()
    logger.propagate = False

    # root logger is shared, so clear handlers to avoid duplicate lines on re-setup
    logger.handlers.clear()
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    # urllib3 logs every retry at WARNING; keep it to real problems
    logging.getLogger("urllib3").setLevel(logging.ERROR)

    return logger
