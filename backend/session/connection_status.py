"""
Connection state for the live session.

Owned by SessionConnector. Observers learn session health only through
transitions of this value (on_state_change).

Within one connection attempt the state moves forward only:
DISCONNECTED/ERROR -> CONNECTING -> CONNECTED. ERROR is reachable from any
state; DISCONNECTED is reached through disconnect() or a remote close.
"""
from enum import Enum


class ConnectionState(str, Enum):
    """Live session lifecycle as seen by the HUD."""
    DISCONNECTED = "DISCONNECTED"
    CONNECTING = "CONNECTING"
    CONNECTED = "CONNECTED"
    ERROR = "ERROR"
