import logging
import sys

from . import config

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    if getattr(root, "_heavyrent_configured", False):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level or config.LOG_LEVEL)

    # uvicorn.access duplicates the request middleware line
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    root._heavyrent_configured = True
