import logging
import sys


def setup_logging(level: str = "INFO"):
    handler = logging.StreamHandler(sys.stdout)
    fmt = logging.Formatter(
        fmt="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    handler.setFormatter(fmt)
    root = logging.getLogger()
    resolved = logging.getLevelName(level.upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
    root.handlers.clear()
    root.addHandler(handler)
    # httpx logs every request at INFO; keep the stream path quiet
    logging.getLogger("httpx").setLevel(logging.WARNING)
