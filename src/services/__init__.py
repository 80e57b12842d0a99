"""Services package.

Keep this module lightweight: importing `services` should not trigger
configuration loading or handler installation.
"""

from .event_bus import EventBus, Events, event_bus
from .logger import cleanup_logging, get_logger, setup_logging

__all__ = ["EventBus", "Events", "event_bus", "cleanup_logging", "get_logger", "setup_logging"]
