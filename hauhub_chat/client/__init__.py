"""Chat client subsystem - transport, dispatch, composition and group switching."""
from hauhub_chat.client.ChatTransport import ChatTransport
from hauhub_chat.client.FrameDispatcher import FrameDispatcher
from hauhub_chat.client.GroupSwitcher import GroupSwitcher
from hauhub_chat.client.MessageComposer import MessageComposer
from hauhub_chat.client.RetryPolicy import RetryPolicy

__all__ = ['ChatTransport', 'FrameDispatcher', 'GroupSwitcher', 'MessageComposer', 'RetryPolicy']
