import logging
import sys
from collections.abc import MutableMapping
from typing import Any


class OperationLogger(logging.LoggerAdapter):
    """Prefixes every line with the key of the operation it belongs to."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        context = " ".join(f"{key}={value}" for key, value in (self.extra or {}).items())
        if context:
            return f"[{context}] {msg}", kwargs
        return msg, kwargs


def operation_logger(base: logging.Logger | logging.LoggerAdapter | None, **context: object) -> OperationLogger:
    if isinstance(base, logging.LoggerAdapter):
        merged = dict(base.extra or {})
        merged.update(context)
        return OperationLogger(base.logger, merged)
    return OperationLogger(base or logging.getLogger("formscore"), dict(context))


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a console handler to the package logger once."""

    logger = logging.getLogger("formscore")
    if logger.handlers:
        return logger

    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    return logger
