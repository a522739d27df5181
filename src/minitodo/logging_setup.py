from __future__ import annotations

import logging
import sys

_HANDLER_NAME = "minitodo.console"


# PUBLIC_INTERFACE
def setup_logging(level: int = logging.INFO) -> None:
    """
    Attach a formatted stderr handler to the 'minitodo' logger.

    Safe to call more than once: a handler installed by an earlier call is
    replaced, handlers installed by anyone else are left alone.
    """
    logger = logging.getLogger("minitodo")
    logger.setLevel(level)

    for h in list(logger.handlers):
        if h.get_name() == _HANDLER_NAME:
            logger.removeHandler(h)

    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setLevel(level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(handler)
