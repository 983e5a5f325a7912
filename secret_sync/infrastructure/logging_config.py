"""Process-wide logging setup shared by all entrypoints."""

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
    root.setLevel(level)
    # botocore logs full request bodies at DEBUG, which would include secret values
    logging.getLogger("botocore").setLevel(max(logging.INFO, root.level))
