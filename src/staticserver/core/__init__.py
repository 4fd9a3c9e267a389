"""
=============================================================================
CORE TRANSPORT COMPONENTS
=============================================================================

The plumbing between the network and the request pipeline:

    ┌─────────────────────────────────────────────────────────────────────┐
    │ SocketServer   listening socket, port retry, accept loop, signals  │
    └──────────────────────────────┬──────────────────────────────────────┘
                                   │ one Connection per accepted socket
                                   ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ ThreadPool     bounded queue + workers; each worker owns a         │
    │                connection until it closes                          │
    └──────────────────────────────┬──────────────────────────────────────┘
                                   │
                                   ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │ Connection     buffered request reads, streamed response writes    │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool, Worker, Task

__all__ = [
    "SocketServer",
    "Connection",
    "ConnectionState",
    "ThreadPool",
    "Worker",
    "Task",
]
