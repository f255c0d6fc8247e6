"""
Store adapters. All share the pull/push document contract in stores.base.
"""

from identity_pool.core.stores.file_store import JsonFileStore
from identity_pool.core.stores.http import HttpDocumentStore
from identity_pool.core.stores.memory import InMemoryStore

__all__ = ["HttpDocumentStore", "InMemoryStore", "JsonFileStore"]
