"""
stun/__init__.py

Public API for the STUN detection core.
"""

from .classifier import (
    has_attribute,
    is_known_server_port,
    is_server_originated,
    is_stun,
    message_type,
)
from .tracker import ConnectionTracker

__all__ = [
    "ConnectionTracker",
    "is_stun",
    "has_attribute",
    "is_server_originated",
    "is_known_server_port",
    "message_type",
]
