# hauhub_chat/__init__.py
from .ConnectionState import ConnectionState
from .EventBus import EventBus
from .client.ChatClientApp import ChatClientApp

__all__ = [
    'ChatClientApp',
    'ConnectionState',
    'EventBus',
]
