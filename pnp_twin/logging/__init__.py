"""
Structured Logging for PnP Twin
===============================

Bounded Context: Observability

JSON-structured logging with typed event names.

Public API
----------
    LogEvent: Typed event names (enum)
    StructuredLogger: JSON logger implementation
    create_logger: Factory function

Example:
    >>> from pnp_twin.logging import StructuredLogger, LogEvent
    >>> logger = StructuredLogger(component="twin")
    >>> logger.info(
    ...     event=LogEvent.PROPERTY_WRITE_ACKED,
    ...     message="Acknowledged targetTemperature",
    ...     metadata={'ac': 202, 'av': 7}
    ... )
"""

from .events import LogEvent
from .structured import StructuredLogger, create_logger

__all__ = [
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
