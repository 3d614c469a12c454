import logging
import sys
from typing import Optional

import structlog


# Set on handlers installed here so reconfiguring replaces only those.
_HANDLER_MARK = "_des_diffcrypt_handler"


def configure_logging(level: str = "INFO", json: bool = False, handler: Optional[logging.Handler] = None) -> None:
    """
    Route structlog through stdlib logging so `level` filters both, and
    render events as console key/value lines or, with `json`, JSON objects.
    `handler` replaces the default stderr handler (the live UI passes its own).
    """
    if json:
        tail = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        tail = [structlog.dev.ConsoleRenderer(colors=False)]

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))
    setattr(handler, _HANDLER_MARK, True)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if getattr(existing, _HANDLER_MARK, False):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S"),
            structlog.processors.StackInfoRenderer(),
            *tail,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
