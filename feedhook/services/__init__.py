"""
FeedHook Services
================

Engine wiring shared by the CLI commands.
"""

from .engine_context import EngineContext, create_engine_context, open_dedup_store

__all__ = [
    'EngineContext',
    'create_engine_context',
    'open_dedup_store'
]
