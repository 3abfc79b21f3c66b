import contextvars
import inspect
import logging
import os
from enum import Enum
from typing import Dict, Optional, Sequence

import ddtrace
import json_log_formatter
from ddtrace import tracer

# DO NOT CHANGE LOGGING FORMAT
LOG_FORMAT: str = "%(asctime)s %(levelname)s [%(name)s] [%(filename)s:%(lineno)d] - %(message)s"
# REQUIRED FOR DATADOG COMPATIBILITY

__all__: Sequence[str] = (
    "make_logger",
    "logger_name",
    "make_json_logger",
    "LOG_FORMAT",
    "CustomJSONFormatter",
    "silence_chatty_logger",
    "LoggerTagKey",
    "LoggerTagManager",
)


class LoggerTagKey(str, Enum):
    SCREEN = "screen"
    START_TYPE = "start_type"


class LoggerTagManager:
    _context_vars: Dict[LoggerTagKey, contextvars.ContextVar] = {}

    @classmethod
    def get(cls, key: LoggerTagKey) -> Optional[str]:
        """Get the value from the context variable."""
        ctx_var = cls._context_vars.get(key)
        if ctx_var is not None:
            return ctx_var.get()
        return None

    @classmethod
    def set(cls, key: LoggerTagKey, value: Optional[str]) -> None:
        """Set the value in the context variable. None leaves the current value untouched."""
        if value is not None:
            ctx_var = cls._context_vars.get(key)
            if ctx_var is None:
                ctx_var = contextvars.ContextVar(f"ctx_var_{key.name.lower()}", default=None)
                cls._context_vars[key] = ctx_var
            ctx_var.set(value)


class CustomJSONFormatter(json_log_formatter.JSONFormatter):
    def json_record(self, message: str, extra: dict, record: logging.LogRecord) -> dict:
        extra = super().json_record(message, extra, record)
        extra["level"] = record.levelname
        extra["name"] = record.name
        extra["lineno"] = record.lineno
        extra["pathname"] = record.pathname

        for tag_key in LoggerTagKey:
            tag_value = LoggerTagManager.get(tag_key)
            if tag_value:
                extra[tag_key.value] = tag_value

        current_span = tracer.current_span()
        extra["dd.trace_id"] = current_span.trace_id if current_span else 0
        extra["dd.span_id"] = current_span.span_id if current_span else 0

        # If tracing is not set up, then this should pull values from DD_SERVICE and DD_ENV.
        service_override = ddtrace.config.service or os.getenv("DD_SERVICE")
        if service_override:
            extra["dd.service"] = service_override

        env_override = ddtrace.config.env or os.getenv("DD_ENV")
        if env_override:
            extra["dd.env"] = env_override

        return extra


def make_json_logger(name: str, log_level: int = logging.INFO) -> logging.Logger:
    """Create a JSON logger. This allows us to pass arbitrary key/value data in log messages.

    Outside of Kubernetes the standard text format is used instead, since JSON is hard to read
    in a terminal.
    """
    if name is None or not isinstance(name, str) or len(name) == 0:
        raise ValueError("Name must be a non-empty string.")

    logger = logging.getLogger(name)
    if any(isinstance(handler, logging.StreamHandler) for handler in logger.handlers):
        # logger already initialized
        return logger

    stream_handler = logging.StreamHandler()
    if os.getenv("KUBERNETES_SERVICE_HOST"):
        stream_handler.setFormatter(CustomJSONFormatter())
    else:
        stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))

    logger.addHandler(stream_handler)
    logger.setLevel(log_level)
    logger.propagate = False
    return logger


def make_logger(name: str, log_level: int = logging.INFO) -> logging.Logger:
    return make_json_logger(name, log_level)


def logger_name(*, fallback_name: Optional[str] = None) -> str:
    """Returns the __name__ from where the calling function is defined or its filename if it is "__main__".

    NOTE: If :param:`fallback_name` is provided and non-empty, it is used when the name cannot be
          inferred from the calling __main__ module, instead of raising a ValueError.
    """
    stack = inspect.stack()
    calling_frame = stack[1]
    calling_module = inspect.getmodule(calling_frame[0])
    if calling_module is None:
        raise ValueError(
            f"Cannot obtain module from calling function. Tried to use calling frame {calling_frame}"
        )
    name = calling_module.__name__
    if name == "__main__":
        if hasattr(calling_module, "__file__"):
            return _filename_wo_ext(calling_module.__file__)  # type: ignore
        if fallback_name is not None:
            fallback_name = fallback_name.strip()
            if len(fallback_name) > 0:
                return fallback_name
        raise ValueError("Cannot determine calling module's name from its __file__ attribute!")
    return name


def silence_chatty_logger(*logger_names, quieter=logging.FATAL) -> None:
    """Sets loggers to the `quieter` level, which defaults to the highest (FATAL).

    Accepts a variable number of logger names.
    """
    for name in logger_names:
        logging.getLogger(name).setLevel(quieter)


def _filename_wo_ext(filename: str) -> str:
    """Gets the filename, without the file extension, if present."""
    return os.path.split(filename)[1].split(".", 1)[0]
