import logging
import sys

def setup_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Provides a configured logger instance."""
    logger = logging.getLogger(name)

    # Uvicorn reloads re-import modules; only attach the handler once
    if not logger.handlers:
        logger.setLevel(level)

        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)

        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger

logger = setup_logger("legalai")
