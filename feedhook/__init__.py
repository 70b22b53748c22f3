"""
FeedHook - RSS/Atom to Webhook Relay
====================================

Polls RSS/Atom feeds and posts every new entry to one or more webhooks.

Main Components:
- Database: SQLite dedup store with connection pooling
- Configuration: JSON config file + environment variables with Pydantic validation
- Processing: feed fetching with retry, novelty detection, image extraction
- Delivery: webhook fan-out with dry-run mode
- Scheduler: per-feed timers derived from the feed's ttl, health-check heartbeat
"""

__version__ = "1.0.0"
__author__ = "FeedHook Development Team"
__description__ = "RSS/Atom feed to webhook relay"

# Core imports for easy access
from .config.settings import load_settings
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedHookError

__all__ = [
    "load_settings",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedHookError",
]
