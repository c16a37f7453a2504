"""
Local persistence: the record store and per-record locking.
"""

from .local_store import LocalStore
from .record_locks import RecordLocks

__all__ = ['LocalStore', 'RecordLocks']
