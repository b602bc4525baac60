"""
Parsing services.

Services responsible for reading stored events.
"""

from .event_reader import EventReader

__all__ = ["EventReader"]
