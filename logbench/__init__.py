"""LogBench — terminal viewer for JSON-lines request logs."""

import logging

__version__ = '0.1.0'

logging.getLogger(__name__).addHandler(logging.NullHandler())
