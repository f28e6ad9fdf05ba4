import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure(verbosity: int = 0) -> None:
    """Send log records to stderr. -v gives INFO, -vv (or more) gives DEBUG."""
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=_FORMAT, stream=sys.stderr, force=True)
