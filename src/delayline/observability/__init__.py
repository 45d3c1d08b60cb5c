"""observability/ — structured logging for delayline."""

from delayline.observability.logger import get_logger, log_context, setup_logging

__all__ = ["get_logger", "log_context", "setup_logging"]
