"""notesync: resilient synchronization core for the notes client.

Retrying request pipeline, reconnecting server-push event stream, and
optimistic cache mutations with rollback.
"""

__version__ = "0.1.0"

from notesync.core.config import SyncConfig
from notesync.exceptions import ConfigError, ConnectionClosedError, NoteSyncError, TransportError

__all__ = [
    "ConfigError",
    "ConnectionClosedError",
    "NoteSyncError",
    "SyncConfig",
    "TransportError",
    "__version__",
]
