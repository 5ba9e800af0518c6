"""Logging setup shared by the CLI and the pipeline."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

MAX_BYTES = 10 * 1024 * 1024
BACKUP_COUNT = 5

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [order_id=%(order_id)s phase=%(phase)s] - %(message)s"


class ContextFormatter(logging.Formatter):
    """Formatter that tolerates records without order_id / phase."""

    def format(self, record):
        if not hasattr(record, "order_id"):
            record.order_id = "-"
        if not hasattr(record, "phase"):
            record.phase = "-"
        return super().format(record)


class ProjectLogAdapter(logging.LoggerAdapter):
    """Stamps every record with the project's order id and current phase."""

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs


def project_logger(logger: logging.Logger, order_id: str, phase: str = "-") -> ProjectLogAdapter:
    return ProjectLogAdapter(logger, {"order_id": order_id, "phase": phase})


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Install the context formatter on the root logger.

    Args:
        level: Log level name
        log_file: Optional path for a rotating file handler
    """
    formatter = ContextFormatter(LOG_FORMAT)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handlers = [handler]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )
    logging.captureWarnings(True)
    # litellm is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
