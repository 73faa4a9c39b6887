"""msgboard — real-time message board backend.

Clients post, edit, delete and list messages over HTTP, and every
mutation is pushed to all connected WebSocket subscribers.
"""

__version__ = "0.1.0"
