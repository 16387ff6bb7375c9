from .listener import ChannelListener

__all__ = ['ChannelListener']
