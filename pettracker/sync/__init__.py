"""
Sync package: the outbox, the remote gateway and the processor draining one into the other.
"""

from .remote_gateway import RemoteGateway
from .sync_processor import DrainResult, PullResult, SyncProcessor, SyncResult
from .sync_queue import SyncQueue

__all__ = ['RemoteGateway', 'SyncQueue', 'SyncProcessor', 'DrainResult', 'PullResult', 'SyncResult']
