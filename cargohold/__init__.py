import logging

__version__ = "0.3.0"

# Create a logger instance. Handlers are attached per session through
# cargohold.logging_utils.open_log_channel, never at import time.
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)
logger.addHandler(logging.NullHandler())
