"""
Adapters layer - Persistence of workshops, settings, appointments, quotations and notifications.
"""

from .memory_store import InMemoryStore
from .yaml_store import YamlFileStore

__all__ = ["InMemoryStore", "YamlFileStore"]
