"""
Logging setup shared by every module.

    from app.core.logging import get_logger

    logger = get_logger(__name__)

GitLab personal access tokens are masked by a filter installed on the root
handler, so a token that ends up in an exception message (for example an
upstream error body echoing a header) is not written to the log.
"""

import logging
import re
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_TOKEN_PATTERNS = (
    re.compile(r"glpat-[A-Za-z0-9_\-]+"),
    re.compile(r"(?i)(bearer\s+)[A-Za-z0-9_\-.]+"),
)


def redact(text: str) -> str:
    """Mask anything that looks like a GitLab token in *text*."""
    text = _TOKEN_PATTERNS[0].sub("glpat-***", text)
    return _TOKEN_PATTERNS[1].sub(r"\1***", text)


class TokenRedactingFilter(logging.Filter):
    """Rewrites the rendered message with tokens masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        masked = redact(message)
        if masked != message:
            record.msg = masked
            record.args = None
        return True


def setup_logging(level: str = "INFO") -> None:
    """
    Configure the root logger. Called once from the application lifespan.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(TokenRedactingFilter())

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[handler],
        force=True,  # Override any existing configuration
    )

    # httpx logs full request URLs at INFO
    for name in ("httpx", "httpcore", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    return logging.getLogger(name)
