"""Project logger.

All modules log under the ``uibind`` logger through ``get_logger(<category>)``:

- ``property``: value changes and bind/unbind events (debug)
- ``dispatcher``: enqueues, worker spawns, slow UI callbacks (warning) and
  failures reported by the default error sink (error)
- ``settings``: settings file loading problems
- ``qt_bridge``: bridge lifecycle

Set ``UIBIND_LOG_CATS=dispatcher,property`` to keep only those categories.
"""

import logging
import os
import sys


def setup_logger(level: int = logging.INFO, name: str = "uibind") -> logging.Logger:
    """Create or update the project logger.

    - Respects env overrides UIBIND_LOG_LEVEL/UIBIND_LOG_CATS on every call
      (so an application configuring logging late still takes effect).
    - Ensures there is exactly one stderr StreamHandler on the base logger and updates
      its formatter/filters instead of bailing out early.
    """
    logger = logging.getLogger(name)

    env_level = (os.getenv("UIBIND_LOG_LEVEL") or "").strip().lower()
    if env_level:
        level_map = {
            "debug": logging.DEBUG,
            "info": logging.INFO,
            "warning": logging.WARNING,
            "error": logging.ERROR,
            "critical": logging.CRITICAL,
        }
        level = level_map.get(env_level, level)
    logger.setLevel(level)

    stream_handler: logging.StreamHandler | None = None
    for h in list(logger.handlers):
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stderr:
            stream_handler = h

    if stream_handler is None:
        stream_handler = logging.StreamHandler(stream=sys.stderr)
        logger.addHandler(stream_handler)

    # Keep output concise: no logger name in messages
    fmt = logging.Formatter(
        fmt="[%(asctime)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    stream_handler.setFormatter(fmt)

    stream_handler.filters.clear()
    cats = (os.getenv("UIBIND_LOG_CATS") or "").strip()
    if cats:
        allowed = {c.strip() for c in cats.split(",") if c.strip()}

        class _CategoryFilter(logging.Filter):
            def filter(self, record: logging.LogRecord) -> bool:
                # record.name like: uibind.dispatcher, uibind.property
                parts = (record.name or "").split(".")
                suffix = parts[-1] if parts else record.name
                return suffix in allowed

        stream_handler.addFilter(_CategoryFilter())

    logger.propagate = False
    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    base = setup_logger()
    return base if not name else base.getChild(name)
