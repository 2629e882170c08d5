"""Root logger setup for the command-line entry points."""

import logging

LOG_FORMAT = "%(asctime)s [%(name)s] [%(levelname)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # httpx logs every request at INFO; the fetcher already logs per page.
    logging.getLogger("httpx").setLevel(logging.WARNING)
