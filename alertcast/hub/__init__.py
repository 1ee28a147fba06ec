from .connection import DisplayConnection, prepare_websocket
from .hub import Hub, SendQueue

__all__ = ["DisplayConnection", "Hub", "SendQueue", "prepare_websocket"]
