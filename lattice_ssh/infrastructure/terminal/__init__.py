from .signals import SignalResizeEventSource
from .term import PosixTerm

__all__ = ['PosixTerm', 'SignalResizeEventSource']
