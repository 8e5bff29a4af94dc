"""
Storage module for persisted discovery state
"""

from .store import KeyValueStore, MemoryStore, JsonFileStore

__all__ = ['KeyValueStore', 'MemoryStore', 'JsonFileStore']
