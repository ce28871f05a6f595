# utils.py

import logging
import sys
from decimal import Context, Decimal, ROUND_HALF_UP
from queue import Queue
from typing import Optional
from logging.handlers import QueueHandler
from config import LOG_FILE, LOG_LEVEL

# The formatter needs to be defined at the module level
# so the QueueHandler can format the record before putting it in the queue.
log_formatter = logging.Formatter(
    '%(asctime)s - %(name)s - %(levelname)s - [%(funcName)s] - %(message)s'
)

class FormattedQueueHandler(QueueHandler):
    """A QueueHandler that formats the record before putting it on the queue."""
    def emit(self, record):
        self.enqueue(self.format(record))

def setup_logger(log_queue: Optional[Queue] = None, log_file: Optional[str] = LOG_FILE):
    """Configures the application logger: log stream queue, file and stdout."""
    logger = logging.getLogger("OrderEntry")
    if not logger.handlers:
        logger.setLevel(LOG_LEVEL)

        if log_queue is not None:
            queue_handler = FormattedQueueHandler(log_queue)
            queue_handler.setFormatter(log_formatter)
            logger.addHandler(queue_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, mode='a')
            file_handler.setFormatter(log_formatter)
            logger.addHandler(file_handler)

        stdout_handler = logging.StreamHandler(sys.stdout)
        stdout_handler.setFormatter(log_formatter)
        logger.addHandler(stdout_handler)
    return logger

# This global 'log' object will be configured by the lifespan manager in main.py
log = logging.getLogger("OrderEntry")

def format_price(value: Decimal) -> str:
    """Renders a price with exactly two fractional digits, rounding half away from zero."""
    value = Decimal(value)
    # Room for every integer digit, two decimals and a carry from rounding up.
    context = Context(prec=max(value.adjusted() + 1, 1) + 3)
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP, context=context))

def truncate(text: str, limit: int = 500) -> str:
    """Shortens long payloads for log lines."""
    return text if len(text) <= limit else f"{text[:limit]}... ({len(text)} chars)"
